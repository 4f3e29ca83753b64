"""
Unit tests for the UploadTask state machine.

Progress sources are replaced with small async generators so every test
controls exactly when progress happens.
"""

from __future__ import annotations

import asyncio

import pytest

from cv_tracker.core.exceptions import FileTooLarge, UnsupportedFileType, UploadFailed
from cv_tracker.schemas.upload import UploadState
from cv_tracker.services.upload_service import UploadTask, simulated_progress
from tests.factories import make_file

MB = 1024 * 1024


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
def _make_task(source=None, **kwargs) -> tuple[UploadTask, list]:
    calls: list = []
    task = UploadTask(
        calls.append,
        progress_source=source or simulated_progress(step=50, interval=0),
        **kwargs,
    )
    return task, calls


def _blocking_source(release: asyncio.Event):
    async def source(candidate):
        yield 10
        await release.wait()
        yield 100

    return source


async def _drain(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class TestValidation:
    async def test_oversize_file_goes_to_error_without_uploading(self):
        task, calls = _make_task()

        started = task.select_file(make_file(size=11 * MB))

        assert started is False
        assert task.state is UploadState.ERROR
        assert isinstance(task.error, FileTooLarge)
        assert task.error_message == "File size must be less than 10MB"
        assert task.progress == 0
        assert task.selected_file is None
        assert not task.has_pending_timer
        await _drain()
        assert calls == []

    async def test_wrong_extension_goes_to_error_without_uploading(self):
        task, calls = _make_task()

        started = task.select_file(make_file("photo.png"))

        assert started is False
        assert task.state is UploadState.ERROR
        assert isinstance(task.error, UnsupportedFileType)
        assert ".pdf" in task.error_message
        assert not task.has_pending_timer
        await _drain()
        assert calls == []

    async def test_size_is_checked_before_extension(self):
        task, _ = _make_task()

        task.select_file(make_file("photo.png", size=11 * MB))

        assert isinstance(task.error, FileTooLarge)

    async def test_file_at_exact_limit_is_accepted(self):
        task, _ = _make_task()

        assert task.select_file(make_file(size=10 * MB)) is True
        assert task.state is UploadState.UPLOADING
        await task.aclose()

    async def test_custom_accept_list(self):
        task, _ = _make_task(accept=[".txt"])

        assert task.select_file(make_file("cover.pdf")) is False
        assert task.select_file(make_file("cover.TXT")) is True
        await task.aclose()


# ---------------------------------------------------------------------------
# Upload and notification
# ---------------------------------------------------------------------------
class TestUpload:
    async def test_valid_file_reaches_success_and_notifies_once(self):
        task, calls = _make_task()
        candidate = make_file()

        assert task.select_file(candidate) is True
        assert task.state is UploadState.UPLOADING

        state = await task.wait()
        await _drain()

        assert state is UploadState.SUCCESS
        assert task.progress == 100
        assert calls == [candidate]
        assert not task.has_pending_timer

    async def test_progress_is_monotonic_and_capped(self):
        reached = asyncio.Event()
        release = asyncio.Event()

        async def source(candidate):
            yield 30
            yield 20
            reached.set()
            await release.wait()
            yield 250

        task, calls = _make_task(source)
        task.select_file(make_file())

        await reached.wait()
        assert task.progress == 30
        assert task.state is UploadState.UPLOADING

        release.set()
        await task.wait()
        assert task.progress == 100
        assert task.state is UploadState.SUCCESS
        assert len(calls) == 1

    async def test_failing_progress_source_ends_in_error(self):
        async def source(candidate):
            yield 10
            raise OSError("connection reset")

        task, calls = _make_task(source)
        task.select_file(make_file())

        state = await task.wait()

        assert state is UploadState.ERROR
        assert isinstance(task.error, UploadFailed)
        assert calls == []

    async def test_new_selection_supersedes_running_upload(self):
        never = asyncio.Event()

        async def source(candidate):
            yield 10
            if candidate.file_name == "first.pdf":
                await never.wait()
            yield 100

        task, calls = _make_task(source)
        first = make_file("first.pdf")
        second = make_file("second.pdf")

        task.select_file(first)
        await _drain()
        task.select_file(second)
        await task.wait()
        await _drain()

        assert task.state is UploadState.SUCCESS
        assert calls == [second]

    async def test_snapshot_reports_file_and_size(self):
        task, _ = _make_task()
        task.select_file(make_file("letter.pdf", content=b"x" * 1536))
        await task.wait()

        snapshot = task.snapshot()

        assert snapshot.state is UploadState.SUCCESS
        assert snapshot.progress == 100
        assert snapshot.file_name == "letter.pdf"
        assert snapshot.size_label == "1.5 KB"
        assert snapshot.error_message is None


# ---------------------------------------------------------------------------
# remove / retry / dispose
# ---------------------------------------------------------------------------
class TestTerminalTransitions:
    async def test_remove_while_uploading_cancels_and_notifies_none(self):
        release = asyncio.Event()
        task, calls = _make_task(_blocking_source(release))
        task.select_file(make_file())
        await _drain()
        assert task.state is UploadState.UPLOADING

        task.remove()

        assert task.state is UploadState.IDLE
        assert task.progress == 0
        assert not task.has_pending_timer
        assert calls == [None]

        release.set()
        await _drain()
        assert calls == [None]
        assert task.state is UploadState.IDLE

    async def test_remove_after_success(self):
        task, calls = _make_task()
        candidate = make_file()
        task.select_file(candidate)
        await task.wait()

        task.remove()

        assert task.state is UploadState.IDLE
        assert task.selected_file is None
        assert calls == [candidate, None]

    async def test_remove_from_error(self):
        task, calls = _make_task()
        task.select_file(make_file("photo.png"))

        task.remove()

        assert task.state is UploadState.IDLE
        assert task.error is None
        assert calls == [None]

    async def test_remove_from_idle(self):
        task, calls = _make_task()

        task.remove()

        assert task.state is UploadState.IDLE
        assert calls == [None]

    async def test_retry_only_leaves_error(self):
        task, calls = _make_task()
        assert task.retry() is False

        task.select_file(make_file("photo.png"))
        assert task.retry() is True

        assert task.state is UploadState.IDLE
        assert task.error_message is None
        assert calls == []

    async def test_dispose_cancels_timer_and_silences_task(self):
        release = asyncio.Event()
        task, calls = _make_task(_blocking_source(release))
        task.select_file(make_file())
        await _drain()

        await task.aclose()
        release.set()
        await _drain()

        assert task.is_disposed
        assert not task.has_pending_timer
        assert calls == []

    async def test_remove_after_dispose_does_not_notify(self):
        task, calls = _make_task()
        task.dispose()

        task.remove()

        assert calls == []

    async def test_select_after_dispose_raises(self):
        task, _ = _make_task()
        task.dispose()

        with pytest.raises(RuntimeError):
            task.select_file(make_file())

    async def test_context_manager_disposes(self):
        release = asyncio.Event()
        async with UploadTask(lambda f: None, progress_source=_blocking_source(release)) as task:
            task.select_file(make_file())
        assert task.is_disposed
        assert not task.has_pending_timer


# ---------------------------------------------------------------------------
# Picker and drop zone events
# ---------------------------------------------------------------------------
class TestPickerEvents:
    async def test_pick_uses_first_file(self):
        task, calls = _make_task()
        first = make_file("a.pdf")

        assert task.pick([first, make_file("b.pdf")]) is True
        await task.wait()

        assert calls == [first]

    async def test_pick_ignored_when_disabled(self):
        task, calls = _make_task(disabled=True)

        assert task.pick([make_file()]) is False
        assert task.state is UploadState.IDLE

    async def test_pick_with_no_files(self):
        task, _ = _make_task()

        assert task.pick([]) is False
        assert task.state is UploadState.IDLE

    async def test_drag_highlight(self):
        task, _ = _make_task()

        task.drag_enter()
        assert task.drag_active
        task.drag_leave()
        assert not task.drag_active

        task.drag_over()
        task.drop([make_file()])
        assert not task.drag_active
        await task.wait()
        assert task.state is UploadState.SUCCESS


class TestSimulatedProgress:
    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError):
            simulated_progress(step=0)

    async def test_counts_up_to_100(self):
        source = simulated_progress(step=30, interval=0)

        values = [value async for value in source(make_file())]

        assert values == [30, 60, 90, 100]
