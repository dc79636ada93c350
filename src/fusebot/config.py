"""
Configuration — loaded once at startup from the environment.

Every setting is required. A `.env` file next to the working directory is
read first when present; variables already set in the environment win.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fusebot.auth import AllowList

logger = logging.getLogger(__name__)

# field name → environment variable
ENV_VARS: dict[str, str] = {
    "bot_token": "SLACK_BOT_TOKEN",
    "app_token": "SLACK_APP_TOKEN",
    "channel_id": "SLACK_CHANNEL_ID",
    "message": "MESSAGE",
    "timeout_seconds": "TIMEOUT_SECONDS",
    "max_delay_seconds": "MAX_DELAY_SECONDS",
    "button_label": "DELETE_BUTTON_LABEL",
    "timeout_message": "TIMEOUT_MESSAGE",
    "allowed_user_ids": "ALLOWED_USER_IDS",
    "unauthorized_message": "UNAUTHORIZED_MESSAGE",
}


class ConfigError(ValueError):
    """A required setting is missing or malformed."""


class FuseConfig(BaseModel):
    """Settings for a single notification run."""

    model_config = ConfigDict(frozen=True)

    bot_token: str
    app_token: str
    channel_id: str
    message: str
    timeout_seconds: int = Field(ge=0)
    max_delay_seconds: int = Field(ge=0)
    button_label: str
    timeout_message: str
    allowed_user_ids: frozenset[str]
    unauthorized_message: str

    @property
    def allow_list(self) -> AllowList:
        return AllowList(self.allowed_user_ids)


def load_config(
    env: Mapping[str, str] | None = None,
    env_file: str | Path | None = ".env",
) -> FuseConfig:
    """Build a FuseConfig, raising ConfigError on the first bad setting."""
    values: dict[str, str | None] = {}
    if env_file is not None:
        path = Path(env_file)
        if path.is_file():
            values.update(dotenv_values(path))
        else:
            logger.info("No .env file found, using environment variables")
    values.update(os.environ if env is None else env)

    fields: dict[str, object] = {}
    for field, name in ENV_VARS.items():
        raw = values.get(name)
        if not raw:
            raise ConfigError(f"{name} environment variable is required")
        if field == "allowed_user_ids":
            allowed = AllowList.from_csv(raw)
            if not allowed:
                raise ConfigError(f"Invalid {name}: no user ids given")
            fields[field] = frozenset(allowed)
        else:
            fields[field] = raw

    try:
        return FuseConfig(**fields)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else ""
        raise ConfigError(f"Invalid {ENV_VARS.get(field, field)}: {error['msg']}") from None
