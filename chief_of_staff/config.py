"""Environment-sourced configuration for the agents."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


class ConfigError(Exception):
    """Raised at start-up when required configuration is missing or malformed."""


#: Keys that must be present before any agent touches Gmail or the model.
REQUIRED_KEYS = ("ANTHROPIC_API_KEY", "USER_GOOGLE_EMAIL")


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class AssistantConfig:
    """Settings for the email assistant; build with ``from_env()``."""

    vip_domains: list[str] = field(default_factory=list)
    vip_senders: list[str] = field(default_factory=list)
    work_hours_start: int = 9
    work_hours_end: int = 17
    lookback_hours: int = 48
    user_email: str = ""
    anthropic_api_key: str = ""

    @classmethod
    def from_env(cls) -> AssistantConfig:
        """Build AssistantConfig from environment variables."""
        return cls(
            vip_domains=_split_list(os.environ.get("EMAIL_VIP_DOMAINS", "")),
            vip_senders=_split_list(os.environ.get("EMAIL_VIP_SENDERS", "")),
            work_hours_start=_int_env("EMAIL_WORK_HOURS_START", 9),
            work_hours_end=_int_env("EMAIL_WORK_HOURS_END", 17),
            lookback_hours=_int_env("EMAIL_LOOKBACK_HOURS", 48),
            user_email=os.environ.get("USER_GOOGLE_EMAIL", "").strip(),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", "").strip(),
        )

    def require_credentials(self) -> None:
        """Raise ConfigError naming every missing credential."""
        values = {
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "USER_GOOGLE_EMAIL": self.user_email,
        }
        missing = [key for key in REQUIRED_KEYS if not values[key]]
        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)} "
                "(set it in the environment or in .env)"
            )
