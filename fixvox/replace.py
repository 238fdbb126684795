from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path

from .backoff import retry
from .exceptions import NameGenerationExhausted, ReplaceRollbackFailure

NAME_ATTEMPTS = 4


def _move(src: Path, dst: Path) -> None:
    shutil.move(str(src), str(dst))


def create_temp_filename(temp_dir: Path, original: Path) -> Path:
    """An unused `<temp_dir>/<stem>.<random hex>` path."""

    def attempt(_n: int) -> Path:
        candidate = temp_dir / f"{original.stem}.{uuid.uuid4().hex}"
        if candidate.exists():
            raise FileExistsError(str(candidate))
        return candidate

    return retry(
        attempt,
        attempts=NAME_ATTEMPTS,
        description=f"Generate temporary name for {original.name}",
        retry_on=(FileExistsError,),
        exhausted=NameGenerationExhausted,
        delay=lambda: 0.0,
    )


def replace_file(
    original: Path, new_file: Path, backup_dir: Path, logger: logging.Logger
) -> None:
    """
    Put `new_file` at `original`'s path.

    The original's access and modification times are copied onto the new file
    first. The original is moved aside into `backup_dir`; if the new file then
    cannot be moved into place, the original is moved back before the error
    propagates. The backup is deleted once the swap succeeds.
    """
    st = original.stat()
    os.utime(new_file, ns=(st.st_atime_ns, st.st_mtime_ns))

    backup = create_temp_filename(backup_dir, original)

    _move(original, backup)

    try:
        _move(new_file, original)
    except BaseException:
        try:
            _move(backup, original)
        except OSError as rollback_error:
            logger.error(
                "Rollback failed, original content is at %s: %s", backup, rollback_error
            )
            raise ReplaceRollbackFailure(original, backup) from rollback_error
        raise

    try:
        backup.unlink()
    except OSError as e:
        logger.warning("Unable to delete backup file %s: %s", backup, e)
