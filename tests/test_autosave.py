import asyncio

import pytest

from asesor.services.autosave import AutoSaver, AutoSaveSession


class _Recorder:
    def __init__(self) -> None:
        self.saved: list[str] = []

    async def __call__(self, content: str) -> None:
        self.saved.append(content)


@pytest.mark.asyncio
async def test_quiet_period_saves_latest_edit_once() -> None:
    recorder = _Recorder()
    saver = AutoSaver(recorder, delay=0.05, interval=60)

    saver.notify_edit("<p>a</p>")
    saver.notify_edit("<p>ab</p>")
    saver.notify_edit("<p>abc</p>")
    await asyncio.sleep(0.2)

    assert recorder.saved == ["<p>abc</p>"]
    assert saver.session.has_unsaved_changes is False
    assert saver.session.save_count == 1
    await saver.stop()
    assert recorder.saved == ["<p>abc</p>"]


@pytest.mark.asyncio
async def test_interval_saves_while_edits_keep_coming() -> None:
    recorder = _Recorder()
    saver = AutoSaver(recorder, delay=10, interval=0.05)
    saver.start()

    saver.notify_edit("<p>draft</p>")
    await asyncio.sleep(0.2)

    assert recorder.saved[0] == "<p>draft</p>"
    assert saver.session.has_unsaved_changes is False
    await saver.stop()


@pytest.mark.asyncio
async def test_stop_flushes_pending_changes() -> None:
    recorder = _Recorder()
    saver = AutoSaver(recorder, delay=10, interval=60)
    saver.start()

    saver.notify_edit("<p>unsaved</p>")
    await saver.stop()

    assert recorder.saved == ["<p>unsaved</p>"]
    assert await saver.flush() is False


@pytest.mark.asyncio
async def test_failed_save_keeps_changes_dirty() -> None:
    async def failing(content: str) -> None:
        raise RuntimeError("database offline")

    saver = AutoSaver(failing, delay=0.01, interval=60)
    saver.notify_edit("<p>x</p>")
    await asyncio.sleep(0.1)

    assert saver.session.has_unsaved_changes is True
    with pytest.raises(RuntimeError):
        await saver.flush()


def test_stale_save_does_not_clear_newer_edit() -> None:
    session = AutoSaveSession()
    session.mark_dirty("v1")
    session.mark_dirty("v2")

    session.mark_saved("v1")

    assert session.has_unsaved_changes is True
    assert session.content == "v2"
    assert session.save_count == 1
