from __future__ import annotations

import logging
import shutil
import threading
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Dict, List, Optional, Set, Tuple

from mutagen.id3 import ID3, ID3NoHeaderError, TCON, TLEN, TPOS, TPUB, TRCK

from .config import Config
from .duration import measure_duration
from .replace import replace_file
from .utils import (
    ensure_dir,
    fmt_hhmmss,
    format_track_number,
    scrub_file_name,
    track_file_name,
    track_number_width,
)

UNKNOWN_ARTIST = "Unknown"
UNKNOWN_ALBUM = "Unknown"
COPY_BUFFER_SIZE = 64 * 1024


@dataclass(frozen=True)
class Track:
    track_id: int
    entry_name: str
    path: Path

    @property
    def entry_stem(self) -> str:
        return PurePosixPath(self.entry_name).stem


def _text(tags: Optional[ID3], frame_id: str) -> Optional[str]:
    if tags is None:
        return None
    frame = tags.get(frame_id)
    if frame is None or not frame.text:
        return None
    value = str(frame.text[0]).strip()
    return value or None


def read_tags(path: Path) -> Optional[ID3]:
    try:
        return ID3(str(path))
    except ID3NoHeaderError:
        return None


class TrackFixer:
    """
    Turns one zip archive of MP3 files into `<output>/<artist>/<album>/<n>.mp3`
    with consistent track, disc, length, publisher and genre tags.
    """

    def __init__(
        self,
        cfg: Config,
        logger: logging.Logger,
        artists: Optional[Dict[str, str]] = None,
    ):
        self.cfg = cfg
        self.logger = logger
        self.artists = artists or {}
        # Extraction is blocking and long running; keep it off the main pool.
        self._extract_pool = ThreadPoolExecutor(
            max_workers=cfg.extract_workers, thread_name_prefix="extract"
        )
        # destinations written by this fixer; guards the exists-then-move step
        self._placed: Set[Path] = set()
        self._place_lock = threading.Lock()

    def __enter__(self) -> "TrackFixer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._extract_pool.shutdown(wait=True)

    def transform(self, stream: BinaryIO, work_dir: Path) -> bool:
        with zipfile.ZipFile(stream) as zf:
            entries = sorted(
                (
                    info
                    for info in zf.infolist()
                    if not info.is_dir()
                    and PurePosixPath(info.filename).suffix.lower() == ".mp3"
                ),
                key=lambda info: PurePosixPath(info.filename).name.casefold(),
            )
            if not entries:
                self.logger.info("No MP3 tracks in archive")
                return False

            width = track_number_width(len(entries))
            tracks = [
                Track(
                    track_id=i,
                    entry_name=PurePosixPath(info.filename).name,
                    path=work_dir / track_file_name(i, width),
                )
                for i, info in enumerate(entries, start=1)
            ]

            self._extract_pool.submit(
                self._extract, zf, list(zip(entries, tracks))
            ).result()

        for track in tracks:
            self.fix_track(track, len(tracks), width, work_dir)
        return True

    def _extract(self, zf: zipfile.ZipFile, pairs: List[Tuple[zipfile.ZipInfo, Track]]) -> None:
        for info, track in pairs:
            with zf.open(info) as src, track.path.open("wb") as dst:
                shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)

    def resolve_artist(self, tags: Optional[ID3]) -> str:
        artist = _text(tags, "TPE2") or _text(tags, "TPE1")
        if not artist:
            return UNKNOWN_ARTIST
        artist = self.artists.get(artist.casefold(), artist)
        return scrub_file_name(artist) or UNKNOWN_ARTIST

    def resolve_album(self, tags: Optional[ID3], track: Track) -> str:
        album = _text(tags, "TALB")
        if album:
            album = scrub_file_name(album)
        return album or scrub_file_name(track.entry_stem) or UNKNOWN_ALBUM

    def fix_track(self, track: Track, track_count: int, width: int, work_dir: Path) -> Path:
        tags = read_tags(track.path)
        artist = self.resolve_artist(tags)
        album = self.resolve_album(tags, track)

        with track.path.open("rb") as f:
            duration = measure_duration(f, self.cfg.read_chunk_size)

        self.write_tags(track.path, track.track_id, track_count, width, duration)

        dest_dir = self.cfg.output_dir / artist / album
        ensure_dir(dest_dir)
        dest = dest_dir / track.path.name
        self.place(track.path, dest, work_dir)

        self.logger.info(
            "Track %s | %s / %s | %s",
            dest.name,
            artist,
            album,
            fmt_hhmmss(int(duration)),
        )
        return dest

    def place(self, src: Path, dest: Path, work_dir: Path) -> None:
        """Move a finished track to `dest`, replacing any file already there."""
        with self._place_lock:
            if dest in self._placed:
                self.logger.warning(
                    "Track %s was already written in this run; replacing it", dest
                )
            self._placed.add(dest)
            if dest.exists():
                replace_file(dest, src, work_dir, self.logger)
            else:
                shutil.move(str(src), str(dest))

    def write_tags(
        self, path: Path, track_id: int, track_count: int, width: int, duration: float
    ) -> None:
        try:
            tags = ID3(str(path))
        except ID3NoHeaderError:
            tags = ID3()

        number = format_track_number(track_id, width)
        count = format_track_number(track_count, width)

        tags.setall("TPOS", [TPOS(encoding=3, text="1/1")])
        tags.setall("TRCK", [TRCK(encoding=3, text=f"{number}/{count}")])
        tags.setall("TPUB", [TPUB(encoding=3, text=self.cfg.publisher)])
        tags.setall("TLEN", [TLEN(encoding=3, text=str(int(round(duration * 1000))))])
        tags.setall("TCON", [TCON(encoding=3, text=self.cfg.genre)])
        tags.save(str(path))
