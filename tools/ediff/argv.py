"""Growable argument vector handed to exec."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class ArgVector:
    """Ordered list of owned strings, always terminated by a ``None`` slot.

    The live prefix (``to_list()``) is a complete argument list for
    ``os.execv``/``os.execvp`` after every push. Storage grows by doubling
    when the sentinel would otherwise be pushed out of the last slot.
    """

    def __init__(self, starting_capacity: int) -> None:
        if starting_capacity <= 0:
            raise ValueError("starting_capacity must be > 0")
        self._slots: list[str | None] = [None] * starting_capacity
        self._count = 0

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def push(self, value: str) -> None:
        if self._count >= self.capacity:
            raise RuntimeError("argument vector lost its sentinel slot")
        if self._count + 1 == self.capacity:
            self._slots.extend([None] * self.capacity)
        # str() of a str subclass yields a plain, independent str.
        self._slots[self._count] = str(value)
        self._count += 1
        self._slots[self._count] = None

    def extend(self, values: Iterable[str]) -> None:
        for value in values:
            self.push(value)

    def copy(self) -> "ArgVector":
        clone = ArgVector(self.capacity)
        clone.extend(self)
        return clone

    def to_list(self) -> list[str]:
        return [slot for slot in self._slots[: self._count] if slot is not None]

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_list())

    def __getitem__(self, index: int) -> str | None:
        # Index ``len(self)`` is the sentinel, as in a C argv.
        if not -self._count <= index <= self._count:
            raise IndexError("argument index out of range")
        if index < 0:
            index += self._count
        return self._slots[index]

    def __repr__(self) -> str:
        return f"ArgVector({self.to_list()!r}, capacity={self.capacity})"
