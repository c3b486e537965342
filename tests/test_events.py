"""Tests for the progress channel."""
import pytest

from publisher.models import ProgressUpdate
from publisher.utils.events import ProgressChannel, ProgressEvent


def test_progress_never_decreases_per_kind():
    channel = ProgressChannel()
    channel.emit("release", ProgressUpdate(50, "compiling"))
    event = channel.emit("release", ProgressUpdate(30, "uploading"))

    assert event.percent == 50
    assert event.message == "uploading"
    assert channel.latest("release").percent == 50


def test_kinds_are_tracked_separately():
    channel = ProgressChannel()
    channel.emit("release", ProgressUpdate(80, "uploading"))
    channel.emit("preview", ProgressUpdate(10, "compiling"))

    assert channel.latest("release").percent == 80
    assert channel.latest("preview").percent == 10
    assert channel.latest("other") is None


def test_empty_message_defaults():
    event = ProgressChannel().emit("preview", ProgressUpdate(5))
    assert event.message == "working"
    assert str(event) == "[preview] working (5.0%)"


def test_listeners_receive_events_and_errors_are_contained():
    channel = ProgressChannel()
    received = []

    def broken(event):
        raise ValueError("listener bug")

    channel.on(broken)
    channel.on(received.append)
    channel.emit("release", ProgressUpdate(10, "a"))
    channel.off(received.append)
    channel.emit("release", ProgressUpdate(20, "b"))

    assert received == [ProgressEvent("release", 10.0, "a")]


def test_emit_after_close_is_dropped():
    channel = ProgressChannel()
    channel.close()
    assert channel.closed is True
    assert channel.emit("release", ProgressUpdate(10, "late")) is None


@pytest.mark.asyncio
async def test_iteration_drains_then_stops_on_close():
    channel = ProgressChannel()
    channel.emit("release", ProgressUpdate(10, "a"))
    channel.emit("preview", ProgressUpdate(20, "b"))
    channel.close()
    channel.close()

    events = [event async for event in channel]

    assert [(e.kind, e.percent) for e in events] == [("release", 10.0), ("preview", 20.0)]
