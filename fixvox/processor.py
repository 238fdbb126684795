from __future__ import annotations

import io
import logging
import os
import stat
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Iterable, List, Optional, Tuple

from .config import Config
from .exceptions import BatchFailure, FixVoxError, InputInspectionError, TransformFailure
from .tempdirs import TempDirManager
from .utils import file_size_mb

Transform = Callable[[BinaryIO, Path], bool]

READ_BUFFER_SIZE = 16 * 1024

_WIN_UNSUPPORTED = (
    getattr(stat, "FILE_ATTRIBUTE_READONLY", 0x1)
    | getattr(stat, "FILE_ATTRIBUTE_OFFLINE", 0x1000)
    | getattr(stat, "FILE_ATTRIBUTE_REPARSE_POINT", 0x400)
)


def _is_unsupported(st: os.stat_result) -> bool:
    """Read-only, offline and reparse-point (symlink) files are skipped."""
    attrs = getattr(st, "st_file_attributes", None)
    if attrs is not None:
        return bool(attrs & _WIN_UNSUPPORTED)
    return stat.S_ISLNK(st.st_mode) or not (st.st_mode & stat.S_IWUSR)


def job_keys(files: List[Path]) -> List[str]:
    """
    Working directory keys for one batch: the file's base name, with a counter
    appended when the same name (ignoring case) was already used, so that two
    archives from different folders never share a working directory.
    """
    counts: Dict[str, int] = {}
    keys: List[str] = []
    for f in files:
        k = f.name.casefold()
        n = counts.get(k, 0) + 1
        counts[k] = n
        keys.append(f.name if n == 1 else f"{f.name}~{n}")
    return keys


class FileProcessor:
    def __init__(
        self,
        cfg: Config,
        logger: logging.Logger,
        temp_dirs: Optional[TempDirManager] = None,
    ):
        self.cfg = cfg
        self.logger = logger
        self.temp_dirs = temp_dirs or TempDirManager(
            cfg.temp_dir, cfg.temp_prefix, logger
        )

    def __enter__(self) -> "FileProcessor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.temp_dirs.dispose()

    def _is_archive(self, p: Path) -> bool:
        return p.suffix.lower() in self.cfg.archive_extensions

    def _inspect(self, path: Path) -> List[Path]:
        try:
            st = os.lstat(path)
            if stat.S_ISDIR(st.st_mode):
                return sorted(
                    p.resolve()
                    for p in path.rglob("*")
                    if self._is_archive(p) and p.is_file()
                )
            if _is_unsupported(st) or not stat.S_ISREG(st.st_mode):
                self.logger.debug("Skipping unsupported input %s", path)
                return []
            return [path.resolve()]
        except OSError as e:
            raise InputInspectionError(path, str(e)) from e

    def _expand(self, arg: str) -> List[Path]:
        try:
            return self._inspect(Path(arg))
        except InputInspectionError as e:
            self.logger.warning("%s", e)
            return []

    def discover(self, inputs: Iterable[str]) -> List[Path]:
        """
        Expand `inputs` into the files to process: directories are searched
        recursively for archives, plain files are taken as given. The result is
        de-duplicated case-insensitively.
        """
        args = list(inputs)
        if not args:
            return []
        with ThreadPoolExecutor(
            max_workers=min(self.cfg.max_workers, len(args)),
            thread_name_prefix="discover",
        ) as pool:
            expanded = list(pool.map(self._expand, args))

        seen = set()
        out: List[Path] = []
        for paths in expanded:
            for p in paths:
                k = str(p).casefold()
                if k in seen:
                    continue
                seen.add(k)
                out.append(p)
        return out

    def open_input(self, path: Path, size: int) -> BinaryIO:
        f = open(path, "rb", buffering=READ_BUFFER_SIZE)
        if size > self.cfg.memory_buffer_limit:
            self.logger.debug("Streaming %s (%.1f MB)", path.name, file_size_mb(path))
            if hasattr(os, "posix_fadvise"):
                try:
                    os.posix_fadvise(f.fileno(), 0, 0, os.POSIX_FADV_SEQUENTIAL)
                except OSError:
                    f.close()
                    raise
            return f
        with f:
            return io.BytesIO(f.read())

    def process_file(
        self, path: Path, transform: Transform, key: Optional[str] = None
    ) -> Optional[Path]:
        """
        Run `transform` on one file inside its own working directory.

        Returns the file's path when it counts as processed, None when the
        transform declined it. The working directory is cleaned up before any
        failure is re-raised.
        """
        path = path.absolute()
        if path.stat().st_size < 1:
            return path

        key = key or path.name
        error: Optional[BaseException] = None
        accepted = False

        try:
            dir_future = self.temp_dirs.get_directory(key)
            with self.open_input(path, path.stat().st_size) as stream:
                work_dir = dir_future.result()
                accepted = transform(stream, work_dir)
        except Exception as e:
            error = e

        try:
            self.temp_dirs.cleanup_directory(key)
        except Exception:
            self.logger.warning("Working directory cleanup failed for %s", key, exc_info=True)

        if error is not None:
            if isinstance(error, FixVoxError):
                raise error
            raise TransformFailure(path, str(error)) from error

        return path if accepted else None

    def process_files(self, inputs: Iterable[str], transform: Transform) -> List[Path]:
        """
        Process every file `inputs` expands to, in parallel. Each file is
        isolated: a failure does not stop the others. Once all are done, a
        BatchFailure is raised if any failed; it carries the files that did
        succeed.
        """
        files = self.discover(inputs)
        self.logger.info("Processing %d file(s)", len(files))
        if not files:
            return []

        with ThreadPoolExecutor(
            max_workers=min(self.cfg.max_workers, len(files)),
            thread_name_prefix="process",
        ) as pool:
            tasks: List[Tuple[Path, "Future[Optional[Path]]"]] = [
                (f, pool.submit(self.process_file, f, transform, key))
                for f, key in zip(files, job_keys(files))
            ]
            wait_futures([t for _, t in tasks])

        processed: List[Path] = []
        failures: List[Tuple[Path, BaseException]] = []
        for f, task in tasks:
            e = task.exception()
            if e is not None:
                self.logger.error("FAIL: %s | err=%s", f, e, exc_info=e)
                failures.append((f, e))
                continue
            result = task.result()
            if result is not None:
                processed.append(result)
            else:
                self.logger.info("Excluded: %s", f)

        if failures:
            raise BatchFailure(processed, failures) from failures[0][1]
        return processed
