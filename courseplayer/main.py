from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import mimetypes
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import Settings, get_settings
from .errors import StoreError
from .models import CourseDetail, CourseSummary, LibraryStats, Progress, Video
from .scan import scan_course_folder
from .store import Store


log = logging.getLogger(__name__)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportIn(CamelModel):
    # None or "" means the folder picker was cancelled.
    path: Optional[str] = None
    title: Optional[str] = None


class ProgressIn(CamelModel):
    video_id: str
    course_id: str
    current_time: float = Field(default=0.0, ge=0.0)
    is_completed: bool = False


class CompleteIn(CamelModel):
    video_id: str
    course_id: str


class SettingIn(BaseModel):
    key: str = Field(min_length=1)
    value: str


class LearningIn(BaseModel):
    seconds: float = Field(ge=0.0)


def get_store(request: Request) -> Store:
    return request.app.state.store


router = APIRouter()


@router.post("/api/courses/import")
def import_course(payload: ImportIn, store: Store = Depends(get_store)):
    """Scan a folder and store it as a new course.

    Scanning happens before any write, so a missing or unreadable folder
    leaves the database untouched.
    """
    if not payload.path:
        return None

    root = Path(payload.path).expanduser().resolve()
    try:
        structure = scan_course_folder(root)
    except (FileNotFoundError, NotADirectoryError):
        raise HTTPException(404, "Folder not found")
    except PermissionError:
        raise HTTPException(403, "Folder is not readable")

    title = payload.title or root.name
    course_id = store.add_course(title, str(root), structure)
    log.info("imported course %s (%s, %d videos)", course_id, root, structure.video_count)
    return {"courseId": course_id, "title": title, "structure": structure}


@router.get("/api/courses", response_model=list[CourseSummary])
def list_courses(store: Store = Depends(get_store)):
    return store.get_courses()


@router.get("/api/courses/{course_id}", response_model=Optional[CourseDetail])
def get_course(course_id: str, store: Store = Depends(get_store)):
    return store.get_course_details(course_id)


@router.delete("/api/courses/{course_id}")
def delete_course(course_id: str, store: Store = Depends(get_store)):
    store.delete_course(course_id)
    log.info("deleted course %s", course_id)
    return {"ok": True}


@router.delete("/api/courses/{course_id}/progress")
def reset_course_progress(course_id: str, store: Store = Depends(get_store)):
    store.reset_course_progress(course_id)
    return {"ok": True}


@router.post("/api/progress")
def save_progress(payload: ProgressIn, store: Store = Depends(get_store)):
    store.update_progress(payload.video_id, payload.course_id, payload.current_time, payload.is_completed)
    return {"ok": True}


@router.post("/api/progress/complete")
def mark_video_complete(payload: CompleteIn, store: Store = Depends(get_store)):
    store.mark_video_complete(payload.video_id, payload.course_id)
    return {"ok": True}


@router.get("/api/progress/{video_id}", response_model=Optional[Progress])
def get_progress(video_id: str, store: Store = Depends(get_store)):
    return store.get_progress(video_id)


@router.delete("/api/progress/{video_id}")
def reset_video_progress(video_id: str, store: Store = Depends(get_store)):
    store.reset_video_progress(video_id)
    return {"ok": True}


@router.get("/api/videos/{video_id}/next", response_model=Optional[Video])
def next_video(video_id: str, store: Store = Depends(get_store)):
    return store.next_video(video_id)


@router.get("/api/settings/{key}", response_model=Optional[str])
def get_setting(key: str, store: Store = Depends(get_store)):
    return store.get_setting(key)


@router.put("/api/settings")
def set_setting(payload: SettingIn, store: Store = Depends(get_store)):
    store.set_setting(payload.key, payload.value)
    return {"ok": True}


@router.post("/api/learning")
def record_learning_time(payload: LearningIn, store: Store = Depends(get_store)):
    store.record_learning_time(payload.seconds)
    return {"ok": True}


@router.get("/api/learning/today")
def today_learning_time(store: Store = Depends(get_store)):
    return {"seconds": store.get_today_learning_time()}


@router.get("/api/stats", response_model=LibraryStats)
def library_stats(store: Store = Depends(get_store)):
    return store.get_stats()


@router.get("/video/{video_id}")
def video_stream(video_id: str, store: Store = Depends(get_store)):
    """Serves the underlying video file.

    FileResponse supports HTTP Range requests in Starlette, so seeking works.
    """
    video = store.get_video(video_id)
    if not video:
        raise HTTPException(404, "Video not found")

    p = Path(video.path)
    if not p.exists() or not p.is_file():
        raise HTTPException(404, "Video file missing")

    media_type, _ = mimetypes.guess_type(p.name)
    return FileResponse(path=str(p), media_type=media_type or "application/octet-stream", filename=p.name)


async def store_error_handler(request: Request, exc: StoreError):
    log.error("storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.database_url.startswith("sqlite"):
            settings.data_dir.mkdir(parents=True, exist_ok=True)
        store = Store(settings.database_url)
        store.open()
        app.state.store = store
        log.info("opened database %s", settings.database_url)
        try:
            yield
        finally:
            store.close()

    app = FastAPI(title="Course Player", lifespan=lifespan)
    app.add_exception_handler(StoreError, store_error_handler)
    app.include_router(router)
    return app


app = create_app()
