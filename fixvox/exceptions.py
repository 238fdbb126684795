from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple


class FixVoxError(Exception):
    pass


class InputInspectionError(FixVoxError):
    """An input path could not be inspected; the input is dropped."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Unable to inspect {path}: {reason}")
        self.path = path


class RetriesExhausted(FixVoxError):
    def __init__(self, description: str, attempts: int):
        super().__init__(f"{description} failed after {attempts} attempts")
        self.description = description
        self.attempts = attempts


class CreationExhausted(RetriesExhausted):
    """A working directory could not be created."""


class DeletionFailed(RetriesExhausted):
    """A directory was still present after every delete attempt."""


class NameGenerationExhausted(RetriesExhausted):
    """No unused temporary file name could be found."""


class ReplaceRollbackFailure(FixVoxError):
    """
    The new file could not be moved into place and the original could not be
    moved back either. The original content is left at `backup_path`.
    """

    def __init__(self, original_path: Path, backup_path: Path):
        super().__init__(
            f"Unable to restore {original_path} from backup {backup_path}"
        )
        self.original_path = original_path
        self.backup_path = backup_path


class TransformFailure(FixVoxError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"Transform failed for {path}: {reason}")
        self.path = path


class BatchFailure(FixVoxError):
    def __init__(
        self,
        processed: List[Path],
        failures: List[Tuple[Path, BaseException]],
    ):
        first: Optional[Tuple[Path, BaseException]] = failures[0] if failures else None
        msg = f"{len(failures)} file(s) failed"
        if first is not None:
            msg += f"; first: {first[0]}: {first[1]}"
        super().__init__(msg)
        self.processed = processed
        self.failures = failures
