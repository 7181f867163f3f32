"""Subscriber handles and the per-channel subscriber set.

Learn: A subscriber is anything with send(str) and close(). The relay never
looks inside it: a send that raises means the connection is gone, and the
handle is dropped from the set. Membership is by identity, so two handles
wrapping the same kind of transport never compare equal.
"""

from typing import Iterator, Protocol


class Subscriber(Protocol):
    def send(self, message: str) -> None: ...

    def close(self) -> None: ...


class SubscriberSet:
    """Insertion-ordered collection of live handles, keyed by identity."""

    def __init__(self):
        self._handles: dict[int, Subscriber] = {}

    def add(self, handle: Subscriber) -> None:
        self._handles[id(handle)] = handle

    def discard(self, handle: Subscriber) -> bool:
        """Remove a handle. Returns False if it was already gone."""
        current = self._handles.get(id(handle))
        if current is not handle:
            return False
        del self._handles[id(handle)]
        return True

    def snapshot(self) -> list[Subscriber]:
        """Copy of the current members, safe to iterate while pruning."""
        return list(self._handles.values())

    def __contains__(self, handle) -> bool:
        return self._handles.get(id(handle)) is handle

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        return len(self._handles)
