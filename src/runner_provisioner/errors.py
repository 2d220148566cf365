"""Typed exceptions for ci-runner-provisioner.

All provisioning errors inherit from ProvisionError.
Each carries structured context (address, instance id, phrase, attempts)
so a failed invocation can be diagnosed from its log alone.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class ProvisionError(Exception):
    """Base exception for all provisioning errors."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(ProvisionError):
    """Invocation input is missing or invalid, or remote configuration failed."""

    def __init__(self, message: str, *, fields: Iterable[str] | None = None):
        field_list = list(fields or [])
        super().__init__(message, context={"fields": field_list} if field_list else None)
        self.fields = field_list


class RemoteCommandError(ConfigurationError):
    """A command executed over the remote shell failed."""

    def __init__(
        self,
        message: str,
        *,
        address: str | None = None,
        exit_status: int | None = None,
        output: str = "",
    ):
        super().__init__(message)
        context = {"address": address, "exit_status": exit_status}
        self.context.update({k: v for k, v in context.items() if v is not None})
        self.address = address
        self.exit_status = exit_status
        self.output = output

    def __str__(self) -> str:
        base = super().__str__()
        if self.output:
            # Keep the tail; the interesting part of a failed script is at the end
            tail = self.output[-2000:]
            return f"{base}\n{tail}"
        return base


class HTTPError(ProvisionError):
    """HTTP request could not be completed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
        method: str = "GET",
    ):
        context = {"status_code": status_code, "url": url, "method": method}
        super().__init__(message, context={k: v for k, v in context.items() if v is not None})
        self.status_code = status_code
        self.url = url
        self.method = method


class ProviderError(HTTPError):
    """Cloud provider API returned a non-success response."""


class RegistryError(HTTPError):
    """CI service API returned a non-success response."""


class TimeoutError(ProvisionError):
    """Operation timed out or a retry budget was exhausted."""

    def __init__(
        self,
        message: str,
        *,
        address: str | None = None,
        attempts: int | None = None,
        timeout_seconds: float | None = None,
    ):
        context = {"address": address, "attempts": attempts, "timeout_seconds": timeout_seconds}
        super().__init__(message, context={k: v for k, v in context.items() if v is not None})
        self.address = address
        self.attempts = attempts
        self.timeout_seconds = timeout_seconds


class NotFoundError(ProvisionError):
    """No instance matched a search phrase."""

    def __init__(self, message: str, *, phrase: str):
        super().__init__(message, context={"phrase": phrase})
        self.phrase = phrase


class AmbiguousMatchError(ProvisionError):
    """More than one instance matched a search phrase."""

    def __init__(self, message: str, *, phrase: str, matches: Iterable[int]):
        match_ids = list(matches)
        super().__init__(message, context={"phrase": phrase, "matches": match_ids})
        self.phrase = phrase
        self.matches = match_ids
