from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import case, delete, func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .db import init_db, make_engine
from .errors import StoreClosedError, StoreError
from .models import (
    Course,
    CourseDetail,
    CourseSummary,
    DailyLearning,
    LibraryStats,
    Progress,
    Section,
    SectionDetail,
    UserSetting,
    Video,
    VideoEntry,
)
from .scan import CourseStructure
from .utils import today_iso, utcnow


def _video_entry(video: Video, progress: Optional[Progress]) -> VideoEntry:
    entry = VideoEntry(**video.model_dump())
    if progress is not None:
        entry.current_time = progress.current_time
        entry.is_completed = progress.is_completed
        entry.last_watched_at = progress.last_watched_at
    return entry


class Store:
    """Course, progress and settings storage on top of one database engine.

    Call open() once before anything else; every other operation may then be
    issued from any thread. Writes serialize inside SQLite, and progress
    writes are single upsert statements, so repeated ticks for the same video
    cannot interleave into a torn row.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> None:
        if self.engine is not None:
            return
        engine = make_engine(self.database_url)
        try:
            init_db(engine)
        except SQLAlchemyError as exc:
            engine.dispose()
            raise StoreError(f"could not initialize database: {exc}") from exc
        self.engine = engine

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self.engine is None:
            raise StoreClosedError("store is not open")
        try:
            with Session(self.engine, expire_on_commit=False) as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    # Courses

    def add_course(self, title: str, root_path: str, structure: CourseStructure) -> str:
        """Insert a course with all its sections and videos in one transaction.

        Videos share one counter across the course: root videos take
        0..n-1, then each section continues where the previous one stopped.
        """
        with self.session() as session:
            course = Course(title=title, root_path=str(root_path))
            session.add(course)
            session.flush()

            order = 0
            for v in structure.videos:
                session.add(
                    Video(course_id=course.id, section_id=None, title=v.name, path=v.path, order_index=order)
                )
                order += 1

            for section_order, s in enumerate(structure.sections):
                section = Section(course_id=course.id, title=s.name, order_index=section_order)
                session.add(section)
                session.flush()
                for v in s.videos:
                    session.add(
                        Video(
                            course_id=course.id,
                            section_id=section.id,
                            title=v.name,
                            path=v.path,
                            order_index=order,
                        )
                    )
                    order += 1

            session.commit()
            return course.id

    def get_courses(self) -> list[CourseSummary]:
        last_accessed = func.max(Progress.last_watched_at)
        stmt = (
            select(
                Course,
                func.count(Video.id),
                func.count(Progress.video_id),
                func.coalesce(func.sum(case((Progress.is_completed, 1), else_=0)), 0),
                last_accessed,
            )
            .outerjoin(Video, Video.course_id == Course.id)
            .outerjoin(Progress, Progress.video_id == Video.id)
            .group_by(Course.id)
            .order_by(func.coalesce(last_accessed, Course.created_at).desc(), Course.created_at.desc())
        )
        with self.session() as session:
            rows = session.exec(stmt).all()

        return [
            CourseSummary(
                **course.model_dump(),
                total_videos=total,
                started_videos=started,
                completed_videos=completed,
                last_accessed=last,
            )
            for course, total, started, completed, last in rows
        ]

    def get_course_details(self, course_id: str) -> Optional[CourseDetail]:
        with self.session() as session:
            course = session.get(Course, course_id)
            if course is None:
                return None

            sections = session.exec(
                select(Section).where(Section.course_id == course_id).order_by(Section.order_index)
            ).all()
            rows = session.exec(
                select(Video, Progress)
                .select_from(Video)
                .outerjoin(Progress, Progress.video_id == Video.id)
                .where(Video.course_id == course_id)
                .order_by(Video.order_index)
            ).all()

        root_videos = []
        by_section = defaultdict(list)
        for video, progress in rows:
            entry = _video_entry(video, progress)
            if video.section_id is None:
                root_videos.append(entry)
            else:
                by_section[video.section_id].append(entry)

        return CourseDetail(
            **course.model_dump(),
            root_videos=root_videos,
            sections=[SectionDetail(**s.model_dump(), videos=by_section[s.id]) for s in sections],
        )

    def delete_course(self, course_id: str) -> None:
        # Sections, videos and progress go with it via ON DELETE CASCADE.
        with self.session() as session:
            session.exec(delete(Course).where(Course.id == course_id))
            session.commit()

    # Videos

    def get_video(self, video_id: str) -> Optional[Video]:
        with self.session() as session:
            return session.get(Video, video_id)

    def next_video(self, video_id: str) -> Optional[Video]:
        """The video that autoplay moves to after `video_id`, if any."""
        with self.session() as session:
            current = session.get(Video, video_id)
            if current is None:
                return None
            return session.exec(
                select(Video)
                .where(Video.course_id == current.course_id, Video.order_index > current.order_index)
                .order_by(Video.order_index)
                .limit(1)
            ).first()

    # Progress

    def get_progress(self, video_id: str) -> Optional[Progress]:
        with self.session() as session:
            return session.get(Progress, video_id)

    def update_progress(self, video_id: str, course_id: str, current_time: float, is_completed: bool) -> None:
        """Record a playback tick.

        The position is always overwritten (seeking back is allowed) while
        the completed flag only ever goes up, so a stale tick arriving after
        the video finished cannot un-complete it.
        """
        stmt = sqlite_insert(Progress).values(
            video_id=video_id,
            course_id=course_id,
            current_time=float(current_time),
            is_completed=bool(is_completed),
            last_watched_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["video_id"],
            set_={
                "current_time": stmt.excluded.current_time,
                "is_completed": func.max(Progress.is_completed, stmt.excluded.is_completed),
                "last_watched_at": stmt.excluded.last_watched_at,
            },
        )
        with self.session() as session:
            session.exec(stmt)
            session.commit()

    def mark_video_complete(self, video_id: str, course_id: str) -> None:
        # Unlike update_progress, an existing position is left alone.
        stmt = sqlite_insert(Progress).values(
            video_id=video_id,
            course_id=course_id,
            current_time=0.0,
            is_completed=True,
            last_watched_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["video_id"],
            set_={
                "is_completed": True,
                "last_watched_at": stmt.excluded.last_watched_at,
            },
        )
        with self.session() as session:
            session.exec(stmt)
            session.commit()

    def reset_video_progress(self, video_id: str) -> None:
        with self.session() as session:
            session.exec(delete(Progress).where(Progress.video_id == video_id))
            session.commit()

    def reset_course_progress(self, course_id: str) -> None:
        with self.session() as session:
            session.exec(delete(Progress).where(Progress.course_id == course_id))
            session.commit()

    # Settings

    def get_setting(self, key: str) -> Optional[str]:
        with self.session() as session:
            row = session.get(UserSetting, key)
            return row.value if row else None

    def set_setting(self, key: str, value: str) -> None:
        stmt = sqlite_insert(UserSetting).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(index_elements=["key"], set_={"value": stmt.excluded.value})
        with self.session() as session:
            session.exec(stmt)
            session.commit()

    # Learning time

    def record_learning_time(self, seconds: float, day: Optional[str] = None) -> None:
        """Add `seconds` to the running total for `day` (default: today, local time)."""
        stmt = sqlite_insert(DailyLearning).values(date=day or today_iso(), duration_seconds=float(seconds))
        stmt = stmt.on_conflict_do_update(
            index_elements=["date"],
            set_={"duration_seconds": DailyLearning.duration_seconds + stmt.excluded.duration_seconds},
        )
        with self.session() as session:
            session.exec(stmt)
            session.commit()

    def get_learning_time(self, day: str) -> float:
        with self.session() as session:
            row = session.get(DailyLearning, day)
            return row.duration_seconds if row else 0.0

    def get_today_learning_time(self) -> float:
        return self.get_learning_time(today_iso())

    def get_stats(self) -> LibraryStats:
        with self.session() as session:
            total_courses = session.exec(select(func.count()).select_from(Course)).one()
            total_videos = session.exec(select(func.count()).select_from(Video)).one()
            completed = session.exec(
                select(func.count()).select_from(Progress).where(Progress.is_completed)
            ).one()
        return LibraryStats(
            total_courses=total_courses,
            total_videos=total_videos,
            completed_videos=completed,
            today_learning=self.get_today_learning_time(),
        )
