"""
Abstract base class for draft storage backends.

The wizard controller persists its draft through this interface only —
never through a specific database or file API. A payload is the JSON
encoding of the wizard state; the store treats it as an opaque string.
"""

from abc import ABC, abstractmethod


class DraftStore(ABC):
    """
    Durable key → payload storage used by the wizard controller.

    Saving happens on every mutation and is fire-and-forget from the
    controller's point of view.
    """

    @abstractmethod
    def load(self, key: str) -> str | None:
        """Return the stored payload, or None if nothing is stored."""
        ...

    @abstractmethod
    def save(self, key: str, payload: str) -> None:
        """Store (or replace) the payload under key."""
        ...

    @abstractmethod
    def clear(self, key: str) -> None:
        """Remove the payload stored under key, if any."""
        ...


class InMemoryDraftStore(DraftStore):
    """Process-local store for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def load(self, key: str) -> str | None:
        return self._data.get(key)

    def save(self, key: str, payload: str) -> None:
        self._data[key] = payload

    def clear(self, key: str) -> None:
        self._data.pop(key, None)
