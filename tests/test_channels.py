"""Tests for session channels."""

from __future__ import annotations

import pytest

from query_console.session.channels import (
    Channel,
    ChannelClosedError,
    InsertText,
    SessionChannels,
)
from query_console.session.state import SessionState


class TestChannel:
    """Tests for Channel."""

    def test_publish_reaches_subscribers_in_order(self) -> None:
        channel: Channel[InsertText] = Channel("insert_text")
        received: list[tuple[str, str]] = []
        channel.subscribe(lambda message: received.append(("a", message.text)))
        channel.subscribe(lambda message: received.append(("b", message.text)))

        channel.publish(InsertText(text="x"))

        assert received == [("a", "x"), ("b", "x")]

    def test_unsubscribe(self) -> None:
        channel: Channel[InsertText] = Channel("insert_text")
        received: list[InsertText] = []
        unsubscribe = channel.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        channel.publish(InsertText(text="x"))

        assert received == []
        assert channel.subscriber_count == 0

    def test_publish_without_subscribers(self) -> None:
        channel: Channel[InsertText] = Channel("insert_text")
        channel.publish(InsertText(text="x"))

    def test_closed_channel_rejects_publish_and_subscribe(self) -> None:
        channel: Channel[InsertText] = Channel("insert_text")
        channel.subscribe(lambda _message: None)
        channel.close()

        assert channel.closed
        assert channel.subscriber_count == 0
        with pytest.raises(ChannelClosedError, match="insert_text"):
            channel.publish(InsertText(text="x"))
        with pytest.raises(ChannelClosedError):
            channel.subscribe(lambda _message: None)


class TestSessionChannels:
    """Tests for SessionChannels."""

    def test_channels_are_per_instance(self) -> None:
        first = SessionChannels()
        second = SessionChannels()
        assert first.toggle_run is not second.toggle_run

    def test_close_closes_every_channel(self) -> None:
        channels = SessionChannels()
        channels.close()
        assert channels.toggle_run.closed
        assert channels.download.closed
        assert channels.state_changed.closed

    def test_state_changed_carries_session_state(self) -> None:
        channels = SessionChannels()
        states: list[SessionState] = []
        channels.state_changed.subscribe(states.append)
        channels.state_changed.publish(SessionState.RUNNING)
        assert states == [SessionState.RUNNING]
