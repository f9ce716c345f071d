from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from sqlmodel import Field, SQLModel, UniqueConstraint

from .utils import as_utc, new_id, utcnow


class Course(SQLModel, table=True):
    __tablename__ = "courses"

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str = Field(index=True, nullable=False)

    # Absolute path of the imported folder
    root_path: str = Field(nullable=False)

    created_at: datetime = Field(default_factory=utcnow)


class Section(SQLModel, table=True):
    __tablename__ = "sections"

    id: str = Field(default_factory=new_id, primary_key=True)
    course_id: str = Field(foreign_key="courses.id", ondelete="CASCADE", index=True, nullable=False)
    title: str = Field(nullable=False)
    order_index: int = Field(nullable=False)


class Video(SQLModel, table=True):
    __tablename__ = "videos"

    id: str = Field(default_factory=new_id, primary_key=True)
    course_id: str = Field(foreign_key="courses.id", ondelete="CASCADE", index=True, nullable=False)

    # None for videos that live directly in the course root
    section_id: Optional[str] = Field(
        default=None, foreign_key="sections.id", ondelete="CASCADE", index=True, nullable=True
    )

    title: str = Field(nullable=False)

    # Absolute path to the source file; never copied or moved
    path: str = Field(nullable=False)
    duration: float = Field(default=0.0, nullable=False)

    # Course-wide playback order: root videos first, then sections in turn
    order_index: int = Field(nullable=False)

    __table_args__ = (UniqueConstraint("course_id", "order_index"),)


class Progress(SQLModel, table=True):
    __tablename__ = "progress"

    video_id: str = Field(foreign_key="videos.id", ondelete="CASCADE", primary_key=True)
    course_id: str = Field(foreign_key="courses.id", ondelete="CASCADE", index=True, nullable=False)

    current_time: float = Field(default=0.0, nullable=False)
    is_completed: bool = Field(default=False, nullable=False)

    last_watched_at: datetime = Field(default_factory=utcnow)


class UserSetting(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value: str = Field(nullable=False)


class DailyLearning(SQLModel, table=True):
    __tablename__ = "daily_learning"

    # ISO calendar day in local time
    date: str = Field(primary_key=True)
    duration_seconds: float = Field(default=0.0, nullable=False)


# Read models returned by the store and serialized by the API.


class CourseSummary(BaseModel):
    id: str
    title: str
    root_path: str
    created_at: datetime
    total_videos: int = 0
    started_videos: int = 0
    completed_videos: int = 0
    last_accessed: Optional[datetime] = None

    @field_validator("created_at", "last_accessed")
    @classmethod
    def attach_utc(cls, value):
        return as_utc(value)


class VideoEntry(BaseModel):
    id: str
    course_id: str
    section_id: Optional[str] = None
    title: str
    path: str
    duration: float = 0.0
    order_index: int

    # Progress fields, None until the video is first played
    current_time: Optional[float] = None
    is_completed: Optional[bool] = None
    last_watched_at: Optional[datetime] = None

    @field_validator("last_watched_at")
    @classmethod
    def attach_utc(cls, value):
        return as_utc(value)


class SectionDetail(BaseModel):
    id: str
    course_id: str
    title: str
    order_index: int
    videos: List[VideoEntry] = PydanticField(default_factory=list)


class CourseDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    root_path: str
    created_at: datetime
    root_videos: List[VideoEntry] = PydanticField(default_factory=list, alias="rootVideos")
    sections: List[SectionDetail] = PydanticField(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def attach_utc(cls, value):
        return as_utc(value)


class LibraryStats(BaseModel):
    total_courses: int = 0
    total_videos: int = 0
    completed_videos: int = 0
    today_learning: float = 0.0
