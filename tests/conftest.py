"""Pytest configuration and fixtures."""

import asyncio

import pytest

from fusebot.config import FuseConfig
from fusebot.intake import EventSource, RawEnvelope
from fusebot.models import MessageHandle
from fusebot.publisher import SlackAPIError

CHANNEL = "C123"
TS = "1700000000.000100"


# ---------------------------------------------------------------------------
# In-memory Slack surfaces
# ---------------------------------------------------------------------------


class FakePublisher:
    """Records every Web API operation instead of calling Slack."""

    def __init__(self, *, fail: set[str] | None = None, ts: str = TS):
        self.fail = fail or set()
        self.ts = ts
        self.calls: list[tuple] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    def _record(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        if op in self.fail:
            raise SlackAPIError(op, "simulated_failure")

    async def post(self, channel_id, body, button_label):
        self._record("post", channel_id, body, button_label)
        return MessageHandle(channel_id=channel_id, ts=self.ts)

    async def strip_controls(self, handle, fallback_body):
        self._record("strip", handle, fallback_body)

    async def delete(self, handle):
        self._record("delete", handle)

    async def notify_ephemeral(self, channel_id, actor_id, text):
        self._record("ephemeral", channel_id, actor_id, text)


class FakeSource(EventSource):
    """Queue-backed event source; push envelopes, None to close, or an exception."""

    name = "fake"

    def __init__(self, *, fail_connect: bool = False):
        self.fail_connect = fail_connect
        self.queue: asyncio.Queue = asyncio.Queue()
        self.acked: list[str] = []
        self.connected = False
        self.disconnected = False

    async def connect(self) -> None:
        if self.fail_connect:
            raise ConnectionError("apps.connections.open failed")
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnected = True

    async def receive(self):
        item = await self.queue.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def ack(self, envelope_id: str) -> None:
        self.acked.append(envelope_id)

    def push(self, item) -> None:
        self.queue.put_nowait(item)

    def push_click(
        self,
        actor_id: str,
        envelope_id: str,
        *,
        action_id: str = "delete_message",
        channel_id: str = CHANNEL,
        ts: str = TS,
    ) -> None:
        self.push(interaction_envelope(actor_id, envelope_id, action_id=action_id, channel_id=channel_id, ts=ts))


def interaction_envelope(
    actor_id: str,
    envelope_id: str,
    *,
    action_id: str = "delete_message",
    channel_id: str = CHANNEL,
    ts: str = TS,
) -> RawEnvelope:
    return RawEnvelope(
        type="interactive",
        envelope_id=envelope_id,
        payload={
            "type": "block_actions",
            "user": {"id": actor_id},
            "channel": {"id": channel_id},
            "message": {"ts": ts},
            "actions": [{"action_id": action_id, "value": "delete"}],
        },
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def handle():
    return MessageHandle(channel_id=CHANNEL, ts=TS)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def sample_env():
    """A complete, valid environment."""
    return {
        "SLACK_BOT_TOKEN": "xoxb-test",
        "SLACK_APP_TOKEN": "xapp-test",
        "SLACK_CHANNEL_ID": CHANNEL,
        "MESSAGE": "Deploy finished :rocket:",
        "TIMEOUT_SECONDS": "5",
        "MAX_DELAY_SECONDS": "0",
        "DELETE_BUTTON_LABEL": "Delete",
        "TIMEOUT_MESSAGE": "Deploy finished (expired)",
        "ALLOWED_USER_IDS": "U1",
        "UNAUTHORIZED_MESSAGE": "You can't delete this",
    }


@pytest.fixture
def sample_config(sample_env):
    return FuseConfig(
        bot_token=sample_env["SLACK_BOT_TOKEN"],
        app_token=sample_env["SLACK_APP_TOKEN"],
        channel_id=CHANNEL,
        message=sample_env["MESSAGE"],
        timeout_seconds=5,
        max_delay_seconds=0,
        button_label="Delete",
        timeout_message=sample_env["TIMEOUT_MESSAGE"],
        allowed_user_ids=frozenset({"U1"}),
        unauthorized_message=sample_env["UNAUTHORIZED_MESSAGE"],
    )
