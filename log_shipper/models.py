"""
Data models for the log shipping pipeline.

This module defines the small value types passed between the directory
watcher, the upload dispatcher and the pipeline controller.
"""

import enum
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FileEvent:
    """A newly created file observed in the watched directory."""

    path: str


@dataclass(frozen=True)
class UploadTask:
    """A single file upload request."""

    file_path: str
    is_final: bool = False


@dataclass(frozen=True)
class UploadOutcome:
    """
    Result of a storage backend call.

    The HTTP status and the error are reported side by side; a call only
    counts as successful when there is no error and the status is 2xx.
    A transport failure without any HTTP response carries status code 0.
    """

    status_code: int
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        """Whether the call succeeded."""
        return self.error is None and is_success_code(self.status_code)


class PipelineState(str, enum.Enum):
    """Lifecycle states of the pipeline controller."""

    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PipelineResult(str, enum.Enum):
    """How a pipeline run ended."""

    # Stop() was requested.
    STOPPED = "stopped"
    # No new file for longer than the idle threshold; the final upload was done.
    FINISHED = "finished"


def is_success_code(code: int) -> bool:
    return 200 <= code < 300
