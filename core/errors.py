from __future__ import annotations


class DashboardError(Exception):
    """Base class for failures that abort a dashboard load."""


class InvalidAddressError(DashboardError):
    def __init__(self, address: str):
        super().__init__("Invalid wallet address")
        self.address = address


class UpstreamError(DashboardError):
    """An indexer or RPC call failed (timeout, non-2xx status, malformed payload)."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
