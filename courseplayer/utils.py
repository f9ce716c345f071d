from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from typing import Optional


def natural_key(s: str):
    """Sort key that treats digit runs as integers ("2" < "10")."""
    # Odd indices hold the captured digit runs.
    return [int(t) if i % 2 else t.casefold() for i, t in enumerate(re.split(r"(\d+)", s))]


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def today_iso() -> str:
    """Local calendar day, e.g. "2024-05-01"."""
    return date.today().isoformat()
