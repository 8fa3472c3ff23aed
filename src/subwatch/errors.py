from __future__ import annotations


class SubwatchError(Exception):
    """Base class for errors raised by subwatch."""


class ConfigError(SubwatchError):
    pass


class ChannelError(SubwatchError):
    """Telegram API call failed or credentials are missing."""


class SessionError(SubwatchError):
    """Browser could not be launched or the portal login failed."""


class StoreError(SubwatchError):
    pass


class InvalidTransition(StoreError):
    def __init__(self, fingerprint: str, current: str, target: str):
        super().__init__(f"{fingerprint}: cannot go from {current} to {target}")
        self.fingerprint = fingerprint
        self.current = current
        self.target = target


class DuplicateEntry(StoreError):
    pass
