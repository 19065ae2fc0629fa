"""Exception types raised across the query pipeline."""

from __future__ import annotations


class OntoRAGError(Exception):
    """Base class for all ontorag errors."""


class UninitializedStateError(OntoRAGError):
    """An operation was invoked before its required load step completed."""


class UpstreamFailure(OntoRAGError):
    """A retrieval or completion service call failed or timed out."""

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider
