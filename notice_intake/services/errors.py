"""Failures raised by the notice intake pipeline."""

from __future__ import annotations

from collections.abc import Iterator, Mapping


class IntakeError(Exception):
    """Base class for pipeline failures."""


class Unauthorized(IntakeError):
    """No caller identity could be resolved from the request."""


class Forbidden(IntakeError):
    """The caller may not submit the requested notice type."""


class NotFound(IntakeError):
    """A referenced record does not exist."""


class MalformedPayload(IntakeError):
    """An attached file is not a well-formed base64 data URI."""


class StorageFailure(IntakeError):
    """The database or blob storage rejected a write."""


class ErrorCollector(Mapping[str, list[str]]):
    """Ordered field path to messages mapping built up across pipeline stages."""

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        messages = self._errors.setdefault(field, [])
        if message not in messages:
            messages.append(message)

    def __getitem__(self, field: str) -> list[str]:
        return self._errors[field]

    def __iter__(self) -> Iterator[str]:
        return iter(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def as_dict(self) -> dict[str, list[str]]:
        return {field: list(messages) for field, messages in self._errors.items()}


class ValidationFailed(IntakeError):
    """One or more structural problems; carries every problem found."""

    def __init__(self, errors: Mapping[str, list[str]]) -> None:
        self.errors = {field: list(messages) for field, messages in errors.items()}
        super().__init__(f"{len(self.errors)} field(s) failed validation")
