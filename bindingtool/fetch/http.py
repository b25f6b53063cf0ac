"""
HTTP client construction.

One httpx client is configured from FetchConfig and shared by every
worker; httpx clients are safe to use from multiple threads.
"""

from __future__ import annotations

import logging
import ssl
import time

import httpx

from bindingtool import __version__
from bindingtool.config import FetchConfig
from bindingtool.errors import FetchTimeoutError, ValidationError

logger = logging.getLogger(__name__)

USER_AGENT = f"binding-tool/{__version__}"


def build_timeout(config: FetchConfig) -> httpx.Timeout:
    """
    Translate configured timeouts into an httpx.Timeout.

    The request timeout, when set, replaces the read timeout for every
    phase after connecting.
    """
    after_connect = (
        config.request_timeout if config.request_timeout is not None else config.read_timeout
    )
    connect = config.connect_timeout
    if config.request_timeout is not None:
        connect = min(connect, config.request_timeout)
    return httpx.Timeout(
        connect=connect,
        read=after_connect,
        write=after_connect,
        pool=after_connect,
    )


def build_ssl_context(config: FetchConfig) -> ssl.SSLContext:
    """
    Build the TLS trust configuration.

    Uses the PEM bundle named by SSL_CERT_FILE when set, else the system
    trust store.
    """
    try:
        return ssl.create_default_context(cafile=config.ca_bundle)
    except (OSError, ssl.SSLError) as e:
        raise ValidationError(
            f"cannot load CA certificates: {e}", context={"SSL_CERT_FILE": config.ca_bundle}
        ) from e


def create_client(
    config: FetchConfig,
    *,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """
    Create an HTTP client for manifest and dependency downloads.

    Args:
        config: Fetch configuration.
        transport: Optional transport, e.g. httpx.MockTransport in tests.

    Returns:
        Configured httpx.Client. Callers close it.
    """
    kwargs: dict = {
        "timeout": build_timeout(config),
        "follow_redirects": True,
        "headers": {"User-Agent": USER_AGENT},
    }

    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["verify"] = build_ssl_context(config)
        if config.proxy:
            kwargs["proxy"] = config.proxy

    logger.debug(
        "HTTP client: connect=%ss read=%ss request=%s proxy=%s",
        config.connect_timeout,
        config.read_timeout,
        config.request_timeout,
        "yes" if config.proxy else "env",
    )

    try:
        return httpx.Client(**kwargs)
    except ValueError as e:
        # Raised for unsupported proxy URLs
        raise ValidationError(f"PROXY must be a URL: {e}") from e


class Deadline:
    """Wall-clock budget for one whole request."""

    def __init__(self, seconds: float | None, *, url: str = "") -> None:
        self.seconds = seconds
        self.url = url
        self._expires = None if seconds is None else time.monotonic() + seconds

    def check(self) -> None:
        """
        Raise if the budget is spent.

        Raises:
            FetchTimeoutError: If the deadline has passed.
        """
        if self._expires is not None and time.monotonic() > self._expires:
            raise FetchTimeoutError(
                f"request exceeded {self.seconds}s",
                hint="Raise BT_REQ_TIMEOUT for large downloads.",
                context={"url": self.url},
            )
