"""
Slack publisher — the outbound half of the Slack integration.

Posts the interactive message and later applies one of its terminal
mutations (strip the button, or delete the message) through the Web API.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fusebot.models import MessageHandle

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"

DELETE_ACTION_ID = "delete_message"
DELETE_ACTION_VALUE = "delete"
ACTIONS_BLOCK_ID = "actions"


class SlackAPIError(RuntimeError):
    """A Web API call failed at the transport level or returned ok=false."""

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error


def _text_section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def build_message_blocks(body: str, button_label: str) -> list[dict[str, Any]]:
    """Message body followed by the danger-styled delete button."""
    return [
        _text_section(body),
        {
            "type": "actions",
            "block_id": ACTIONS_BLOCK_ID,
            "elements": [
                {
                    "type": "button",
                    "action_id": DELETE_ACTION_ID,
                    "value": DELETE_ACTION_VALUE,
                    "style": "danger",
                    "text": {"type": "plain_text", "text": button_label},
                }
            ],
        },
    ]


class SlackPublisher:
    """Slack Web API client for the single posted message."""

    def __init__(
        self,
        bot_token: str,
        *,
        base_url: str = SLACK_API_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {bot_token}",
            "Content-Type": "application/json; charset=utf-8",
        }
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "SlackPublisher":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=30.0)
            self._owns_client = True

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def post(self, channel_id: str, body: str, button_label: str) -> MessageHandle:
        """Post the message with its delete button. Single attempt."""
        data = await self._call(
            "chat.postMessage",
            {
                "channel": channel_id,
                "text": body,
                "blocks": build_message_blocks(body, button_label),
            },
        )
        return MessageHandle(channel_id=data.get("channel", channel_id), ts=data["ts"])

    async def strip_controls(self, handle: MessageHandle, fallback_body: str) -> None:
        """Replace the message content, dropping the button."""
        await self._call(
            "chat.update",
            {
                "channel": handle.channel_id,
                "ts": handle.ts,
                "text": fallback_body,
                "blocks": [_text_section(fallback_body)],
            },
        )

    async def delete(self, handle: MessageHandle) -> None:
        await self._call("chat.delete", {"channel": handle.channel_id, "ts": handle.ts})

    async def notify_ephemeral(self, channel_id: str, actor_id: str, text: str) -> None:
        """Send a notice only `actor_id` can see."""
        await self._call(
            "chat.postEphemeral",
            {"channel": channel_id, "user": actor_id, "text": text},
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = self._client or httpx.AsyncClient(timeout=30.0)
        try:
            resp = await client.post(
                f"{self.base_url}/{method}",
                json=payload,
                headers=self._headers,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            raise SlackAPIError(method, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise SlackAPIError(method, f"invalid response body: {exc}") from exc
        finally:
            if not self._client:
                await client.aclose()

        if not data.get("ok"):
            raise SlackAPIError(method, data.get("error", "unknown_error"))
        for warning in data.get("response_metadata", {}).get("warnings", []):
            logger.debug("%s warning: %s", method, warning)
        return data
