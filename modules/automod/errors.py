from __future__ import annotations


class AutoModError(Exception):
    """Base class for errors raised by the auto moderation engine."""


class EngineClosedError(AutoModError):
    """The engine was shut down and cannot be started again."""
