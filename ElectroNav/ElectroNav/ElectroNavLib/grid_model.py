# ElectroNav/ElectroNav/ElectroNavLib/grid_model.py
"""Recording-grid geometry.

Holes are laid out row by row (top row first), each row centred on the
grid's vertical axis. The hole sequence order is stable: the recording
history and click-to-hole lookups index holes by their position in
``GridModel.holes()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ElectroNavLib.errors import InvalidArgument, OutOfRange


@dataclass(frozen=True)
class GridHole:
    """One insertion point on the grid.

    Example::

        h = GridHole(index=0, x_mm=-1.0, y_mm=1.0, row=1, column=1)
    """

    index: int  # 0-based position in GridModel.holes()
    x_mm: float  # grid-local, mm
    y_mm: float  # grid-local, mm
    row: int  # 1-based, top row first
    column: int  # 1-based, left to right


@dataclass(frozen=True)
class GridModel:
    """Static grid description.

    Example::

        grid = GridModel(holes_per_column=(1, 3, 1), inter_hole_spacing=1.0)
        grid.coordinate_of(2, 1)  # (-1.0, 0.0)
    """

    holes_per_column: tuple[int, ...]  # holes in each row, top row first
    inter_hole_spacing: float = 1.0  # mm centre-to-centre
    hole_diameter: float = 0.5  # mm
    outer_radius: float | None = None  # mm; derived from the layout when None
    width: float = 10.0  # mm, grid thickness (guide tubes start at this height)
    guide_top: float = 5.0  # mm, height of the guide-tube collar above the grid
    name: str = ""
    _cache: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        counts = tuple(int(n) for n in self.holes_per_column)
        if not counts or any(n < 1 for n in counts):
            raise InvalidArgument("every grid row needs at least one hole")
        if self.inter_hole_spacing <= 0 or self.hole_diameter <= 0:
            raise InvalidArgument("hole spacing and diameter must be positive")
        object.__setattr__(self, "holes_per_column", counts)
        if self.outer_radius is None:
            extent = max(
                (max(counts) - 1) / 2, (len(counts) - 1) / 2
            ) * self.inter_hole_spacing
            object.__setattr__(self, "outer_radius", extent + self.hole_diameter)

    @classmethod
    def circular(
        cls,
        diameter_mm: float,
        inter_hole_spacing: float = 1.0,
        hole_diameter: float = 0.5,
        **kwargs,
    ) -> GridModel:
        """Build the hole layout that fits inside a round chamber.

        Each row holds every hole whose centre lies at least one hole
        diameter inside the chamber wall.

        Example::

            grid = GridModel.circular(19.0)
        """
        radius = diameter_mm / 2
        usable = radius - hole_diameter
        if usable < 0:
            raise InvalidArgument("chamber is smaller than a single hole")
        n_rows = 2 * int(np.floor(usable / inter_hole_spacing)) + 1
        counts = []
        for i in range(1, n_rows + 1):
            y = ((n_rows + 1) / 2 - i) * inter_hole_spacing
            half_chord = np.sqrt(max(usable**2 - y**2, 0.0))
            counts.append(2 * int(np.floor(half_chord / inter_hole_spacing)) + 1)
        kwargs.setdefault("outer_radius", radius)
        return cls(
            holes_per_column=tuple(counts),
            inter_hole_spacing=inter_hole_spacing,
            hole_diameter=hole_diameter,
            **kwargs,
        )

    @property
    def holes_per_dim(self) -> int:
        """Number of rows."""
        return len(self.holes_per_column)

    def coordinate_of(self, row: int, column: int) -> tuple[float, float]:
        """Grid-local (x, y) in mm of the hole at 1-based ``(row, column)``."""
        if not 1 <= row <= self.holes_per_dim:
            raise OutOfRange(f"row {row} outside 1..{self.holes_per_dim}")
        cols_in_row = self.holes_per_column[row - 1]
        if not 1 <= column <= cols_in_row:
            raise OutOfRange(f"column {column} outside 1..{cols_in_row} in row {row}")
        spacing = self.inter_hole_spacing
        x = (-(cols_in_row - 1) / 2 + (column - 1)) * spacing
        y = ((self.holes_per_dim + 1) / 2 - row) * spacing
        return float(x), float(y)

    def holes(self) -> list[GridHole]:
        """All holes, row by row then column by column."""
        if "holes" not in self._cache:
            holes = []
            for row, n_cols in enumerate(self.holes_per_column, start=1):
                for column in range(1, n_cols + 1):
                    x, y = self.coordinate_of(row, column)
                    holes.append(GridHole(len(holes), x, y, row, column))
            self._cache["holes"] = holes
        return list(self._cache["holes"])

    @property
    def coordinates(self) -> np.ndarray:
        """(N, 2) array of hole centres in ``holes()`` order."""
        return np.array([(h.x_mm, h.y_mm) for h in self.holes()], dtype=float)

    def hole_index(self, x: float, y: float) -> int | None:
        """Index of the hole nearest to a grid-local click.

        Returns None when the click is farther than half a hole spacing
        plus a hole radius from every hole centre.
        """
        coords = self.coordinates
        dist = np.hypot(coords[:, 0] - x, coords[:, 1] - y)
        nearest = int(np.argmin(dist))
        if dist[nearest] > self.inter_hole_spacing / 2 + self.hole_diameter / 2:
            return None
        return nearest

    def snap(self, x: float, y: float) -> tuple[float, float]:
        """Coordinates of the hole nearest to (x, y), however far away."""
        coords = self.coordinates
        nearest = int(np.argmin(np.hypot(coords[:, 0] - x, coords[:, 1] - y)))
        return float(coords[nearest, 0]), float(coords[nearest, 1])

    def hole(self, index: int) -> GridHole:
        holes = self.holes()
        if not 0 <= index < len(holes):
            raise OutOfRange(f"hole index {index} outside 0..{len(holes) - 1}")
        return holes[index]


GRIDS = {
    "19mm cylindrical": dict(diameter_mm=19.0, inter_hole_spacing=1.0, hole_diameter=0.5),
    "22mm cylindrical": dict(diameter_mm=22.0, inter_hole_spacing=1.0, hole_diameter=0.5),
    "19mm cylindrical 1.5mm": dict(diameter_mm=19.0, inter_hole_spacing=1.5, hole_diameter=0.7),
}


def get_grid(grid_id: str) -> GridModel:
    """Look up a named grid.

    Example::

        grid = get_grid("19mm cylindrical")
    """
    try:
        params = GRIDS[grid_id]
    except KeyError:
        raise InvalidArgument(
            f"unknown grid {grid_id!r}; available: {', '.join(sorted(GRIDS))}"
        ) from None
    return GridModel.circular(name=grid_id, **params)
