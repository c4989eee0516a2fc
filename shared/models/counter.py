"""Per-owner sequence counters used to mint human-readable identifiers."""

from enum import StrEnum

from pydantic import BaseModel


class CounterKind(StrEnum):
    """Entities that get sequential numbers, and the prefix of their identifiers."""

    BATCH = "batch"
    PRODUCT = "product"

    @property
    def prefix(self) -> str:
        return "b" if self is CounterKind.BATCH else "p"


class Counter(BaseModel):
    """One document per (owner_id, kind); unique index on that pair.

    value is the last number issued; the next one is value + 1.
    """

    owner_id: str
    kind: CounterKind
    value: int = 0
