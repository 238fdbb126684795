from __future__ import annotations

import logging
import os
import secrets
import shutil
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from pathlib import Path
from typing import Callable, Dict, List

from .backoff import retry, short_delay
from .exceptions import CreationExhausted, DeletionFailed
from .utils import ensure_dir

CREATE_ATTEMPTS = 5
DELETE_ATTEMPTS = 50
DISPOSE_ATTEMPTS = 3
# bytes; leaves room for "-<suffix>" under the usual 255-byte name limit
DIR_NAME_LIMIT = 200


def _random_suffix() -> str:
    return secrets.token_hex(6)


def _dir_name(key: str) -> str:
    return os.fsdecode(os.fsencode(key)[:DIR_NAME_LIMIT])


class TempDirManager:
    """
    Per-job working directories under one process-wide scope directory:

        <base_dir>/<prefix>-<random>/<key>-<random>/

    Keys are case-insensitive. The first request for a key starts the creation
    on the manager's pool; every request made before `cleanup_directory` gets
    the same `Future`.
    """

    def __init__(
        self,
        base_dir: Path,
        prefix: str,
        logger: logging.Logger,
        max_workers: int = 4,
        delay: Callable[[], float] = short_delay,
    ):
        self.scope_dir = base_dir / f"{prefix}-{_random_suffix()}"
        self.logger = logger
        self.delay = delay
        self._dirs: Dict[str, "Future[Path]"] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tempdir"
        )

    def __enter__(self) -> "TempDirManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def get_directory(self, key: str) -> "Future[Path]":
        fut: "Future[Path]" = Future()
        existing = self._dirs.setdefault(key.casefold(), fut)
        if existing is not fut:
            return existing
        try:
            self._executor.submit(self._run_creation, key, fut)
        except RuntimeError as e:
            # pool already shut down: fail the future so waiters never hang
            fut.set_exception(e)
            if self._dirs.get(key.casefold()) is fut:
                del self._dirs[key.casefold()]
            raise
        return fut

    def _run_creation(self, key: str, fut: "Future[Path]") -> None:
        if not fut.set_running_or_notify_cancel():
            return
        try:
            fut.set_result(self._create_directory(key))
        except BaseException as e:
            fut.set_exception(e)

    def _create_directory(self, key: str) -> Path:
        def attempt(_n: int) -> Path:
            ensure_dir(self.scope_dir)
            path = self.scope_dir / f"{_dir_name(key)}-{_random_suffix()}"
            # exist_ok=False turns a name collision into a retryable error
            path.mkdir(exist_ok=False)
            return path

        path = retry(
            attempt,
            attempts=CREATE_ATTEMPTS,
            description=f"Create working directory for {key}",
            exhausted=CreationExhausted,
            delay=self.delay,
            logger=self.logger,
        )
        self.logger.debug("Created working directory %s", path)
        return path

    def cleanup_directory(self, key: str) -> None:
        """Forget `key` and delete its directory. Never raises."""
        fut = self._dirs.pop(key.casefold(), None)
        if fut is None:
            return

        try:
            path = fut.result()
        except Exception as e:
            self.logger.debug("No directory to clean up for %s: %s", key, e)
            return

        if not path.exists():
            return

        def attempt(_n: int) -> None:
            shutil.rmtree(path, ignore_errors=True)
            if path.exists():
                raise OSError(f"{path} still exists")

        try:
            retry(
                attempt,
                attempts=DELETE_ATTEMPTS,
                description=f"Delete working directory {path}",
                exhausted=DeletionFailed,
                delay=self.delay,
                logger=self.logger,
            )
        except DeletionFailed as e:
            self.logger.warning("Abandoning working directory: %s", e)

    def dispose(self) -> None:
        """Drain outstanding creations, then remove the scope directory."""
        pending: List["Future[Path]"] = list(self._dirs.values())
        self._dirs.clear()

        wait_futures(pending)
        for fut in pending:
            e = fut.exception()
            if e is not None:
                self.logger.debug("Working directory creation failed: %s", e)

        self._executor.shutdown(wait=True)

        for n in range(DISPOSE_ATTEMPTS):
            try:
                if self.scope_dir.exists():
                    shutil.rmtree(self.scope_dir)
                return
            except OSError as e:
                self.logger.debug("Scope cleanup failed (%d): %s", n + 1, e)
            time.sleep(self.delay())


def cleanup_stale_scopes(
    base_dir: Path, prefix: str, max_age_sec: int, logger: logging.Logger
) -> int:
    """
    Remove scope directories left behind by earlier runs. Only scopes whose
    mtime is older than `max_age_sec` are touched; a younger one may belong to
    a process that is still running.
    """
    if not base_dir.is_dir():
        return 0
    cutoff = time.time() - max_age_sec
    removed = 0
    for p in base_dir.glob(f"{prefix}-*"):
        try:
            if not p.is_dir() or p.is_symlink() or p.stat().st_mtime > cutoff:
                continue
            shutil.rmtree(p)
            removed += 1
        except OSError as e:
            logger.warning("Failed to delete stale scope %s: %s", p.name, e)

    if removed > 0:
        logger.info("Startup temp cleanup: removed %d scopes from %s", removed, base_dir)
    return removed
