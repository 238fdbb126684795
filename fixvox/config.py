from __future__ import annotations

import dataclasses
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from .utils import default_workers, parse_csv, safe_int

CONFIGURATION_FILE = "configuration.json"
ARTISTS_FILE = "artists.json"


@dataclass(frozen=True)
class Config:
    config_dir: Path
    output_dir: Path
    log_dir: Path
    temp_dir: Path
    temp_prefix: str

    archive_extensions: List[str]

    max_workers: int
    extract_workers: int
    memory_buffer_limit: int
    read_chunk_size: int
    stale_scope_age_sec: int

    publisher: str
    genre: str

    log_level: str

    @staticmethod
    def from_env() -> "Config":
        home = Path.home()
        config_dir = Path(
            os.getenv("FIXVOX_CONFIG_DIR", str(home / "Documents" / "FixVox"))
        ).expanduser()

        extensions = [
            s.lower()
            for s in parse_csv(os.getenv("FIXVOX_ARCHIVE_EXTENSIONS", ".zip"))
        ]
        extensions = [s if s.startswith(".") else f".{s}" for s in extensions]

        workers = default_workers()

        return Config(
            config_dir=config_dir,
            output_dir=Path(
                os.getenv("FIXVOX_OUTPUT_DIR", str(home / "Music" / "FixVox"))
            ).expanduser(),
            log_dir=Path(
                os.getenv("FIXVOX_LOG_DIR", str(config_dir / "logs"))
            ).expanduser(),
            temp_dir=Path(os.getenv("FIXVOX_TEMP_DIR", tempfile.gettempdir())),
            temp_prefix=os.getenv("FIXVOX_TEMP_PREFIX", "FixVox"),
            archive_extensions=extensions,
            max_workers=max(
                1, safe_int(os.getenv("FIXVOX_MAX_WORKERS", str(workers)), workers)
            ),
            extract_workers=max(
                1,
                safe_int(
                    os.getenv("FIXVOX_EXTRACT_WORKERS", str(workers // 2)),
                    workers // 2,
                ),
            ),
            memory_buffer_limit=safe_int(
                os.getenv("FIXVOX_MEMORY_BUFFER_LIMIT", str(512 * 1024)),
                512 * 1024,
            ),
            read_chunk_size=max(
                16,
                safe_int(os.getenv("FIXVOX_READ_CHUNK_SIZE", str(64 * 1024)), 64 * 1024),
            ),
            stale_scope_age_sec=safe_int(
                os.getenv("FIXVOX_STALE_SCOPE_AGE_SEC", "86400"),
                86400,
            ),
            publisher=os.getenv("FIXVOX_PUBLISHER", "LibriVox"),
            genre=os.getenv("FIXVOX_GENRE", "Audiobook"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @staticmethod
    def load() -> "Config":
        """Environment settings, overridden by configuration.json when present."""
        cfg = Config.from_env()
        data = load_json(cfg.config_dir / CONFIGURATION_FILE)
        output = data.get("OutputFolder") or data.get("output_dir")
        if isinstance(output, str) and output.strip():
            cfg = dataclasses.replace(cfg, output_dir=Path(output).expanduser())
        return cfg


def load_json(path: Path) -> Dict[str, Any]:
    """
    Read a JSON object from `path`. A missing file is an empty object; a file
    that exists but is malformed raises.
    """
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object")
    return data


def load_artists(cfg: Config) -> Dict[str, str]:
    """Tag artist name (case-folded) -> preferred artist name."""
    data = load_json(cfg.config_dir / ARTISTS_FILE)
    return {
        str(k).casefold(): str(v)
        for k, v in data.items()
        if isinstance(v, str) and v.strip()
    }
