"""
Shared fixtures: a store on a temporary SQLite file, a course folder on disk,
and an API client wired to its own database.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from courseplayer.config import Settings
from courseplayer.main import create_app
from courseplayer.scan import CourseStructure, ScannedSection, ScannedVideo
from courseplayer.store import Store


def touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


@pytest.fixture
def store(tmp_path: Path):
    s = Store(f"sqlite:///{tmp_path / 'player.db'}")
    s.open()
    yield s
    s.close()


@pytest.fixture
def course_dir(tmp_path: Path) -> Path:
    """
    Python Course/
        a.mp4, b.mkv, notes.txt
        Intro/1.mp4, Intro/2.mov
        Part 10/x.webm
        Part 2/y.MP4
        Extras/readme.md
        .hidden/secret.mp4
    """
    root = tmp_path / "Python Course"
    for rel in [
        "a.mp4",
        "b.mkv",
        "notes.txt",
        "Intro/1.mp4",
        "Intro/2.mov",
        "Part 10/x.webm",
        "Part 2/y.MP4",
        "Extras/readme.md",
        ".hidden/secret.mp4",
    ]:
        touch(root / rel)
    return root


@pytest.fixture
def structure() -> CourseStructure:
    return CourseStructure(
        videos=[
            ScannedVideo(name="Welcome", path="/courses/demo/Welcome.mp4"),
            ScannedVideo(name="Setup", path="/courses/demo/Setup.mp4"),
        ],
        sections=[
            ScannedSection(
                name="1 Basics",
                path="/courses/demo/1 Basics",
                videos=[
                    ScannedVideo(name="Variables", path="/courses/demo/1 Basics/Variables.mp4"),
                    ScannedVideo(name="Loops", path="/courses/demo/1 Basics/Loops.mp4"),
                ],
            ),
            ScannedSection(
                name="2 Advanced",
                path="/courses/demo/2 Advanced",
                videos=[ScannedVideo(name="Generators", path="/courses/demo/2 Advanced/Generators.mp4")],
            ),
        ],
    )


@pytest.fixture
def client(tmp_path: Path):
    data_dir = tmp_path / "data"
    settings = Settings(data_dir=data_dir, database_url=f"sqlite:///{data_dir / 'player.db'}")
    with TestClient(create_app(settings)) as c:
        yield c
