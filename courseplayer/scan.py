from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .utils import natural_key


VIDEO_EXTS = {".mp4", ".mkv", ".webm", ".mov"}


@dataclass
class ScannedVideo:
    name: str
    path: str


@dataclass
class ScannedSection:
    name: str
    path: str
    videos: list[ScannedVideo] = field(default_factory=list)


@dataclass
class CourseStructure:
    videos: list[ScannedVideo] = field(default_factory=list)
    sections: list[ScannedSection] = field(default_factory=list)

    @property
    def video_count(self) -> int:
        return len(self.videos) + sum(len(s.videos) for s in self.sections)


def is_video_file(p: Path) -> bool:
    return p.is_file() and p.suffix.lower() in VIDEO_EXTS


def _sort_key(name: str):
    # Ties between e.g. "Intro" and "intro" put lowercase first.
    return (natural_key(name), name.swapcase())


def list_videos(directory: Path) -> list[ScannedVideo]:
    """Video files directly inside `directory`, naturally sorted."""
    videos = [ScannedVideo(name=p.stem, path=str(p)) for p in directory.iterdir() if is_video_file(p)]
    videos.sort(key=lambda v: _sort_key(v.name))
    return videos


def scan_course_folder(root_dir: Union[str, Path]) -> CourseStructure:
    """Map a course folder onto root videos and sections.

    Only one level of nesting is read: each non-hidden subdirectory with at
    least one video becomes a section, anything deeper is ignored. Filesystem
    errors (missing directory, permission denied) propagate to the caller.
    """
    root = Path(root_dir).expanduser().resolve()

    structure = CourseStructure()
    for p in root.iterdir():
        if is_video_file(p):
            structure.videos.append(ScannedVideo(name=p.stem, path=str(p)))
        elif p.is_dir() and not p.name.startswith("."):
            videos = list_videos(p)
            if videos:
                structure.sections.append(ScannedSection(name=p.name, path=str(p), videos=videos))

    structure.videos.sort(key=lambda v: _sort_key(v.name))
    structure.sections.sort(key=lambda s: _sort_key(s.name))
    return structure
