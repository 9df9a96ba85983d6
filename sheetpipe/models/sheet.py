from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Sheet model: a named grid of cells without an embedded schema.

Cell is a tagged union over the four value kinds a workbook cell can hold.
Type information beyond these kinds does not survive into a sheet.
"""

__all__ = [
    "CellKind",
    "Cell",
    "EMPTY",
    "Sheet",
]


class CellKind(Enum):
    NUMBER = "number"
    TEXT = "text"
    BOOLEAN = "boolean"
    EMPTY = "empty"


@dataclass(frozen=True)
class Cell:
    kind: CellKind
    value: Any = None

    @staticmethod
    def number(value: int | float) -> Cell:
        return Cell(CellKind.NUMBER, value)

    @staticmethod
    def text(value: str) -> Cell:
        return Cell(CellKind.TEXT, value)

    @staticmethod
    def boolean(value: bool) -> Cell:
        return Cell(CellKind.BOOLEAN, value)

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    def __repr__(self) -> str:  # pragma: no cover (debug aid)
        if self.kind is CellKind.EMPTY:
            return "Cell(EMPTY)"
        return f"Cell({self.kind.value}, {self.value!r})"


EMPTY = Cell(CellKind.EMPTY)


@dataclass
class Sheet:
    """A single named sheet. Rows may differ in length."""

    name: str
    rows: list[list[Cell]] = field(default_factory=list)

    def append(self, row: list[Cell]) -> None:
        self.rows.append(row)

    @property
    def width(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def __len__(self) -> int:
        return len(self.rows)

    def values(self) -> list[list[Any]]:
        """Plain Python grid, Empty as None (workbook writer input)."""
        return [[None if c.is_empty else c.value for c in row] for row in self.rows]
