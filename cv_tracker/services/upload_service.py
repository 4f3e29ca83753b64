"""
Upload widget state machine.

One UploadTask backs one file picker / drop zone. Selecting a file validates
it (size, then extension), runs a progress source from 0 to 100 on a single
asyncio task, and on success notifies the owner with the validated file.

States: idle -> uploading -> success, or idle -> error (validation) and
uploading -> error (progress source failure). remove() returns to idle from
anywhere, retry() returns to idle from error.

The success notification is scheduled with ``loop.call_soon`` after the state
change, at most once per selection. remove(), a new selection or dispose()
invalidate a pending notification.
"""
import asyncio
import logging
from typing import AsyncIterator, Callable, Iterable, Optional, Sequence

from cv_tracker.core.exceptions import FileValidationError, TrackerError, UploadFailed
from cv_tracker.schemas.upload import FileCandidate, UploadSnapshot, UploadState
from .file_service import format_file_size, validate_file

logger = logging.getLogger(__name__)

ProgressSource = Callable[[FileCandidate], AsyncIterator[int]]
FileSelectCallback = Callable[[Optional[FileCandidate]], None]

DEFAULT_ACCEPT = (".pdf", ".doc", ".docx")
DEFAULT_MAX_SIZE_MB = 10


def simulated_progress(step: int = 10, interval: float = 0.1) -> ProgressSource:
    """
    Progress source that advances by ``step`` every ``interval`` seconds.

    It does not measure any transfer; a real upload can be plugged in instead
    as long as it yields integers up to 100.
    """
    if step <= 0:
        raise ValueError("step must be positive")

    async def source(candidate: FileCandidate) -> AsyncIterator[int]:
        progress = 0
        while progress < 100:
            await asyncio.sleep(interval)
            progress = min(100, progress + step)
            yield progress

    return source


class UploadTask:
    """Client-side state of one file selection interaction."""

    def __init__(
        self,
        on_file_select: FileSelectCallback,
        accept: Sequence[str] = DEFAULT_ACCEPT,
        max_size_mb: float = DEFAULT_MAX_SIZE_MB,
        progress_source: Optional[ProgressSource] = None,
        disabled: bool = False,
        label: str = "file",
    ):
        self.on_file_select = on_file_select
        self.accept = list(accept)
        self.max_size_mb = max_size_mb
        self.progress_source = progress_source or simulated_progress()
        self.disabled = disabled
        self.label = label

        self.state = UploadState.IDLE
        self.progress = 0
        self.selected_file: Optional[FileCandidate] = None
        self.error: Optional[TrackerError] = None
        self.drag_active = False

        self._timer: Optional[asyncio.Task] = None
        self._generation = 0
        self._notified = False
        self._disposed = False

    # -- selection -----------------------------------------------------

    def select_file(self, candidate: FileCandidate) -> bool:
        """
        Validate a file and start its upload.

        Must be called from within a running event loop.

        Returns:
            True if the upload started, False if validation failed
        """
        if self._disposed:
            raise RuntimeError("UploadTask has been disposed")

        self._cancel_timer()
        self._generation += 1
        self._notified = False

        try:
            validate_file(candidate, self.accept, self.max_size_mb)
        except FileValidationError as e:
            logger.info(f"Rejected {self.label} '{candidate.file_name}': {e.message}")
            self.selected_file = None
            self.progress = 0
            self.error = e
            self.state = UploadState.ERROR
            return False

        self.error = None
        self.selected_file = candidate
        self.progress = 0
        self.state = UploadState.UPLOADING
        self._timer = asyncio.get_running_loop().create_task(
            self._run(self._generation, candidate)
        )
        return True

    def pick(self, files: Iterable[FileCandidate]) -> bool:
        """File picker change event: the first file wins, ignored while disabled."""
        if self.disabled:
            return False
        first = next(iter(files), None)
        if first is None:
            return False
        return self.select_file(first)

    def drag_enter(self) -> None:
        self.drag_active = True

    def drag_over(self) -> None:
        self.drag_active = True

    def drag_leave(self) -> None:
        self.drag_active = False

    def drop(self, files: Iterable[FileCandidate]) -> bool:
        """Drop event: clears the drag highlight, then behaves like pick()."""
        self.drag_active = False
        return self.pick(files)

    # -- terminal transitions --------------------------------------------

    def remove(self) -> None:
        """Cancel any upload, clear the selection and notify with None."""
        self._cancel_timer()
        self._generation += 1
        self.state = UploadState.IDLE
        self.progress = 0
        self.error = None
        self.selected_file = None
        if not self._disposed:
            self.on_file_select(None)

    def retry(self) -> bool:
        """Leave the error state so a new file can be picked. Does not re-upload."""
        if self.state is not UploadState.ERROR:
            return False
        self.error = None
        self.state = UploadState.IDLE
        return True

    def dispose(self) -> None:
        """Release the timer; the task never notifies again."""
        self._cancel_timer()
        self._generation += 1
        self._disposed = True

    async def aclose(self) -> None:
        timer = self._timer
        self.dispose()
        if timer is not None:
            await asyncio.wait({timer})

    async def __aenter__(self) -> "UploadTask":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # -- inspection ------------------------------------------------------

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    def snapshot(self) -> UploadSnapshot:
        return UploadSnapshot(
            state=self.state,
            progress=self.progress,
            file_name=self.selected_file.file_name if self.selected_file else None,
            size_label=format_file_size(self.selected_file.size) if self.selected_file else None,
            error_message=self.error_message,
            drag_active=self.drag_active,
        )

    async def wait(self) -> UploadState:
        """Wait until the current upload settles and its notification (if any) ran."""
        timer = self._timer
        if timer is not None:
            await asyncio.wait({timer})
        # let the call_soon notification run
        await asyncio.sleep(0)
        return self.state

    # -- internals -------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            if not self._timer.done():
                self._timer.cancel()
            self._timer = None

    async def _run(self, generation: int, candidate: FileCandidate) -> None:
        try:
            async for value in self.progress_source(candidate):
                # progress never goes backwards and never exceeds 100
                self.progress = max(self.progress, min(100, int(value)))
                if self.progress >= 100:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Upload of {self.label} '{candidate.file_name}' failed: {e}")
            if generation == self._generation:
                self._timer = None
                self.error = UploadFailed(original_error=e)
                self.state = UploadState.ERROR
            return

        if generation != self._generation:
            return
        self._timer = None
        self.progress = 100
        self.state = UploadState.SUCCESS
        self._schedule_notification(generation, candidate)

    def _schedule_notification(self, generation: int, candidate: FileCandidate) -> None:
        if self._notified:
            return
        self._notified = True
        asyncio.get_running_loop().call_soon(self._deliver, generation, candidate)

    def _deliver(self, generation: int, candidate: FileCandidate) -> None:
        if self._disposed or generation != self._generation or self.state is not UploadState.SUCCESS:
            return
        self.on_file_select(candidate)

