"""Storage and naming utilities."""

from __future__ import annotations

import os
import re
from datetime import datetime


def timestamp_slug(dt: datetime | None = None) -> str:
    now = dt or datetime.now()
    return now.strftime("%Y-%m-%d")


def build_session_basename(title: str, dt: datetime | None = None) -> str:
    slug = re.sub(r"[^\w-]+", "-", title.strip()).strip("-") if title else ""
    now = dt or datetime.now()
    return f"{timestamp_slug(now)}--{now.strftime('%H%M%S')}--{slug or 'Meeting'}"


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def ensure_structure(base_dir: str) -> dict:
    root = base_dir or os.getcwd()
    paths = {
        "root": root,
        "recordings": os.path.join(root, "Recordings"),
        "notes": os.path.join(root, "Notes"),
        "sessions": os.path.join(root, "Sessions"),
        "logs": os.path.join(root, "Logs"),
    }
    for path in paths.values():
        ensure_dir(path)
    return paths


def session_paths(base_dir: str, basename: str) -> dict:
    paths = ensure_structure(base_dir)
    return {
        "audio": os.path.join(paths["recordings"], f"{basename}.wav"),
        "meeting": os.path.join(paths["sessions"], f"{basename}.meeting.json"),
        "report": os.path.join(paths["sessions"], f"{basename}.report.json"),
        "note": os.path.join(paths["notes"], f"{basename}.md"),
        "transcript": os.path.join(paths["notes"], f"{basename}.txt"),
        "logs": paths["logs"],
    }
