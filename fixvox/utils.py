from __future__ import annotations

import os
import unicodedata
from pathlib import Path
from typing import List

# Characters that cannot appear in a file name on any platform we write to.
INVALID_FILE_NAME_CHARS = frozenset('<>:"/\\|?*' + "".join(chr(c) for c in range(32)))


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def safe_int(v: str, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return default


def parse_csv(v: str) -> List[str]:
    parts = [p.strip() for p in v.split(",")]
    return [p for p in parts if p]


def fmt_hhmmss(total_seconds: int) -> str:
    h = total_seconds // 3600
    m = (total_seconds % 3600) // 60
    s = total_seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def file_size_mb(p: Path) -> float:
    try:
        return p.stat().st_size / (1024 * 1024)
    except Exception:
        return float("nan")


def default_workers() -> int:
    return os.cpu_count() or 1


def scrub_file_name(name: str) -> str:
    """Make `name` usable as a single path component."""
    name = unicodedata.normalize("NFC", name)
    if any(c in INVALID_FILE_NAME_CHARS for c in name):
        name = "".join(c for c in name if c not in INVALID_FILE_NAME_CHARS)
    return name.strip()


def track_number_width(track_count: int) -> int:
    digits = 1
    while track_count >= 10:
        track_count //= 10
        digits += 1
    return digits


def format_track_number(track_id: int, width: int) -> str:
    return f"{track_id:0{width}d}"


def track_file_name(track_id: int, width: int) -> str:
    return format_track_number(track_id, width) + ".mp3"
