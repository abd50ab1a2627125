"""Single-side board: a fixed grid of cell states plus the fleet placed on it."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from .ship import DEFAULT_CATALOG, Coordinate, Ship, ShipSpec

BOARD_SIZE = 10


class CellState(Enum):
    """State of a single grid cell."""

    EMPTY = "empty"
    OCCUPIED = "occupied"
    HIT = "hit"
    MISS = "miss"

    @property
    def attacked(self) -> bool:
        return self is CellState.HIT or self is CellState.MISS


@dataclass(frozen=True)
class ShipStatus:
    """Name and sunk flag of one ship, in placement order."""

    name: str
    sunk: bool


BoardView = tuple[tuple[CellState, ...], ...]


def untried_cells(view: BoardView) -> list[Coordinate]:
    """Every cell of ``view`` that has not been attacked yet, in row-major order."""
    return [
        Coordinate(row, col)
        for row, cells in enumerate(view)
        for col, state in enumerate(cells)
        if not state.attacked
    ]


def validate_catalog(catalog: Sequence[ShipSpec], size: int = BOARD_SIZE) -> None:
    """Reject catalogs that cannot possibly be laid out on a ``size`` grid."""
    if not catalog:
        raise ValueError("Ship catalog must not be empty.")
    names = [spec.name for spec in catalog]
    if len(set(names)) != len(names):
        raise ValueError(f"Ship names must be distinct: {names}.")
    too_long = [spec.name for spec in catalog if spec.length > size]
    if too_long:
        raise ValueError(f"Ships longer than the {size}x{size} grid: {too_long}.")
    if sum(spec.length for spec in catalog) > size * size:
        raise ValueError("Ship catalog does not fit on the grid.")


@dataclass
class Board:
    """A square grid and the fleet placed on it, owned by one side."""

    size: int = BOARD_SIZE
    catalog: tuple[ShipSpec, ...] = DEFAULT_CATALOG
    owner: str = "unknown"
    ships: list[Ship] = field(default_factory=list)
    cells: list[CellState] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("Board size must be positive.")
        self.catalog = tuple(self.catalog)
        validate_catalog(self.catalog, self.size)
        self.cells = [CellState.EMPTY] * (self.size * self.size)

    def is_valid_coordinate(self, coord: Coordinate) -> bool:
        """Check whether a coordinate lies inside the board boundaries."""
        return 0 <= coord.row < self.size and 0 <= coord.col < self.size

    def cell_state(self, coord: Coordinate) -> CellState:
        if not self.is_valid_coordinate(coord):
            raise ValueError(f"Coordinate {coord} is outside the {self.size}x{self.size} board.")
        return self.cells[coord.row * self.size + coord.col]

    def set_cell_state(self, coord: Coordinate, state: CellState) -> None:
        if not self.is_valid_coordinate(coord):
            raise ValueError(f"Coordinate {coord} is outside the {self.size}x{self.size} board.")
        self.cells[coord.row * self.size + coord.col] = state

    def count(self, state: CellState) -> int:
        return self.cells.count(state)

    @property
    def fleet_complete(self) -> bool:
        return len(self.ships) == len(self.catalog)

    @property
    def next_ship_index(self) -> int | None:
        """Catalog index of the next ship to place, or None once the fleet is down."""
        return None if self.fleet_complete else len(self.ships)

    def ship_at(self, coord: Coordinate) -> Ship | None:
        """Return the ship whose footprint contains ``coord``, if any."""
        for ship in self.ships:
            if ship.covers(coord):
                return ship
        return None

    def all_sunk(self) -> bool:
        """True once no cell of the board is still occupied by an unhit ship part."""
        return CellState.OCCUPIED not in self.cells

    def view(self, hide_ships: bool = False) -> BoardView:
        """Read-only grid projection; unhit ship cells read as empty when ``hide_ships``."""
        rows = []
        for row in range(self.size):
            start = row * self.size
            cells = self.cells[start : start + self.size]
            if hide_ships:
                cells = [CellState.EMPTY if c is CellState.OCCUPIED else c for c in cells]
            rows.append(tuple(cells))
        return tuple(rows)

    def ship_statuses(self) -> list[ShipStatus]:
        return [ShipStatus(ship.name, ship.sunk) for ship in self.ships]

    def untried_coordinates(self) -> list[Coordinate]:
        return untried_cells(self.view())
