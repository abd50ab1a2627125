"""Ship templates and placed ship instances."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Coordinate:
    """Immutable board coordinate."""

    row: int
    col: int


class Orientation(Enum):
    """Allowed ship orientations."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    def toggled(self) -> Orientation:
        """Return the other orientation (the front-end's rotate action)."""
        return Orientation.VERTICAL if self is Orientation.HORIZONTAL else Orientation.HORIZONTAL


@dataclass(frozen=True)
class ShipSpec:
    """A ship class from the catalog: a name and the number of cells it spans."""

    name: str
    length: int

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError(f"Ship length must be positive, got {self.length} for {self.name!r}.")


DEFAULT_CATALOG: tuple[ShipSpec, ...] = (
    ShipSpec("Carrier", 5),
    ShipSpec("Battleship", 4),
    ShipSpec("Cruiser", 3),
    ShipSpec("Submarine", 3),
    ShipSpec("Destroyer", 2),
)


def footprint(anchor: Coordinate, orientation: Orientation, length: int) -> tuple[Coordinate, ...]:
    """Return the ``length`` contiguous cells starting at ``anchor`` along ``orientation``."""
    if orientation is Orientation.HORIZONTAL:
        return tuple(Coordinate(anchor.row, anchor.col + offset) for offset in range(length))
    return tuple(Coordinate(anchor.row + offset, anchor.col) for offset in range(length))


@dataclass
class Ship:
    """A ship placed on a board."""

    spec: ShipSpec
    anchor: Coordinate
    orientation: Orientation
    hit_count: int = 0
    sunk: bool = False
    _cells: frozenset[Coordinate] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._cells = frozenset(footprint(self.anchor, self.orientation, self.spec.length))

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def length(self) -> int:
        return self.spec.length

    def coordinates(self) -> list[Coordinate]:
        """Return the ordered list of coordinates occupied by this ship."""
        return list(footprint(self.anchor, self.orientation, self.spec.length))

    def covers(self, coord: Coordinate) -> bool:
        return coord in self._cells

    def register_hit(self) -> bool:
        """Count one more hit and return True if that sank the ship."""
        if self.sunk:
            raise RuntimeError(f"{self.name} is already sunk.")
        self.hit_count += 1
        if self.hit_count == self.spec.length:
            self.sunk = True
        return self.sunk
