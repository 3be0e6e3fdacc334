"""Exception types raised by the HTTP connectors."""
from __future__ import annotations

from typing import Optional


class ConnectorError(Exception):
    """Base class for upstream transport and protocol failures."""


class PandaScoreError(ConnectorError):
    def __init__(self, status: Optional[int], body: str = "", timed_out: bool = False):
        self.status = status
        self.body = body
        self.timed_out = timed_out
        if timed_out:
            msg = f"PandaScore request timed out: {body}"
        else:
            msg = f"PandaScore API error {status}: {body}"
        super().__init__(msg)


class StartGGError(ConnectorError):
    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class RateLimitedError(ConnectorError):
    """The wiki answered 429."""
