"""
Core data model — the values flowing between intake, arbiter and publisher.

Defines the posted message handle, the closed set of inbound events the
arbiter understands, and the outcome/resolution it commits to.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict


class MessageHandle(BaseModel):
    """Identifies a posted message: channel plus message timestamp."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    ts: str


class Outcome(str, Enum):
    DELETED_BY_USER = "deleted_by_user"
    TIMED_OUT = "timed_out"
    UNAUTHORIZED = "unauthorized"  # rejected attempt, never committed
    STREAM_DISCONNECTED = "stream_disconnected"

    @property
    def terminal(self) -> bool:
        return self is not Outcome.UNAUTHORIZED


class Resolution(BaseModel):
    """The single terminal decision committed for a run."""

    model_config = ConfigDict(frozen=True)

    outcome: Outcome
    detail: str = ""
    clean: bool = True


# ---------------------------------------------------------------------------
# Inbound events
# ---------------------------------------------------------------------------


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Empty when there is nothing to acknowledge back to the source.
    envelope_id: str = ""


class InteractionEvent(_Event):
    """A user pressed an interactive control."""

    actor_id: str
    action_id: str
    target: MessageHandle | None = None


class DisconnectEvent(_Event):
    """The live event stream is gone (announced or inferred)."""

    reason: str = ""
    clean: bool = True


class OtherEvent(_Event):
    """Anything the arbiter ignores."""

    kind: str = ""


InboundEvent = Union[InteractionEvent, DisconnectEvent, OtherEvent]
