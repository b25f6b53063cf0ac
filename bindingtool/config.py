"""
Fetch configuration.

Built once at process start from the environment and passed into the
manifest source and fetcher.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from bindingtool.errors import ValidationError

DEFAULT_MAX_SIMULTANEOUS = 5
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 5.0


class FetchConfig(BaseModel):
    """Network and concurrency settings for manifest and dependency fetches."""

    model_config = ConfigDict(frozen=True)

    # Concurrency
    max_simultaneous: int = Field(
        default=DEFAULT_MAX_SIMULTANEOUS, ge=1, description="Parallel downloads"
    )

    # Timeouts (seconds)
    connect_timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT, gt=0, description="Connection timeout"
    )
    read_timeout: float = Field(
        default=DEFAULT_READ_TIMEOUT, gt=0, description="Response read timeout"
    )
    request_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Whole-request timeout; overrides read_timeout when set",
    )

    # Transport
    proxy: str | None = Field(default=None, description="Proxy URL")
    ca_bundle: str | None = Field(
        default=None, description="PEM file with trusted CA certificates"
    )
    github_token: str | None = Field(
        default=None, description="Token for the GitHub releases API"
    )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FetchConfig:
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            FetchConfig instance.

        Raises:
            ValidationError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ

        return cls(
            max_simultaneous=_read_int(
                env, "BT_MAX_SIMULTANEOUS", DEFAULT_MAX_SIMULTANEOUS
            ),
            connect_timeout=_read_seconds(env, "BT_CONN_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
            read_timeout=_read_seconds(env, "BT_READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
            request_timeout=_read_seconds(env, "BT_REQ_TIMEOUT", None),
            proxy=env.get("PROXY") or None,
            ca_bundle=env.get("SSL_CERT_FILE") or None,
            github_token=env.get("GITHUB_TOKEN") or None,
        )


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(
            f"{name} must be a whole number", context={"value": raw}
        ) from None
    if value < 1:
        raise ValidationError(f"{name} must be at least 1", context={"value": raw})
    return value


def _read_seconds(
    env: Mapping[str, str], name: str, default: float | None
) -> float | None:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(
            f"{name} must be a number of seconds", context={"value": raw}
        ) from None
    if value <= 0:
        raise ValidationError(f"{name} must be positive", context={"value": raw})
    return value
