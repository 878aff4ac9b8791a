# ElectroNav/ElectroNav/ElectroNavLib/geometry.py
"""World-space electrode geometry for the rendering layer.

Everything here is built in grid-local coordinates (z up, grid surface at
z = 0, electrode depth measured downwards) and pushed through the
grid-to-MRI RigidTransform. The rendering layer turns the cylinders into
meshes; nothing here draws.

Example::

    cylinders = electrode_cylinders(session.selected, xform, grid)
    x, y, z = cylinder_surface(cylinders[0])
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ElectroNavLib.electrode_model import Electrode
from ElectroNavLib.grid_model import GridModel
from ElectroNavLib.registration import RigidTransform

# Per-electrode highlight colours (RGB, 0-1), cycled by electrode position
ELECTRODE_COLORS = [
    (1.0, 0.0, 0.0),  # red
    (0.0, 0.0, 1.0),  # blue
    (1.0, 0.0, 1.0),  # magenta
    (0.0, 1.0, 0.0),  # green
    (0.0, 1.0, 1.0),  # cyan
]

CONTACT_RADIUS_SCALE = 0.55  # contacts drawn slightly proud of the shaft


@dataclass
class Cylinder:
    """A straight (possibly conical) segment in scanner space."""

    kind: str  # "shaft", "tip", "contact", "guide", "guide_top"
    start: np.ndarray  # (3,) mm
    end: np.ndarray  # (3,) mm
    radius_start: float  # mm
    radius_end: float  # mm
    color: tuple[float, float, float] = (0.5, 0.5, 0.5)
    contact: int | None = None  # 1-based contact number for kind == "contact"

    @property
    def length(self) -> float:
        return float(np.linalg.norm(self.end - self.start))


def electrode_color(position: int) -> tuple[float, float, float]:
    return ELECTRODE_COLORS[position % len(ELECTRODE_COLORS)]


def electrode_cylinders(
    electrode: Electrode,
    transform: RigidTransform,
    grid: GridModel,
) -> list[Cylinder]:
    """Shaft, tip, contacts, guide tube and guide collar of one electrode.

    Args:
        electrode: Electrode whose target and depth place the segments.
        transform: Grid-to-MRI transform.
        grid: Grid supplying hole diameter, thickness and collar height.

    Returns:
        Cylinders in the order shaft, tip, contacts 1..n, guide, guide_top.
    """
    x, y = electrode.target
    depth = electrode.current_depth
    radius = electrode.diameter / 2
    colors = electrode.electrode_type.colors

    def segment(kind, z0, z1, r0, r1, color, contact=None):
        ends = transform.apply(np.array([[x, y, z0], [x, y, z1]]))
        return Cylinder(kind, ends[0], ends[1], r0, r1, tuple(color), contact)

    tip_top = -depth + electrode.tip_length
    cylinders = [
        segment("shaft", tip_top, -depth + electrode.length, radius, radius, colors["shaft"]),
        segment("tip", -depth, tip_top, 0.0, radius, colors["shaft"]),
    ]
    contact_radius = electrode.diameter * CONTACT_RADIUS_SCALE
    for i in range(1, electrode.contact_number + 1):
        z = electrode.contact_local_z(i)
        cylinders.append(
            segment(
                "contact",
                z,
                z + electrode.contact_diameter,
                contact_radius,
                contact_radius,
                electrode.quality_color(i),
                contact=i,
            )
        )
    guide_r = grid.hole_diameter / 2
    cylinders.append(
        segment("guide", grid.width, grid.width - electrode.guide_length, guide_r, guide_r, colors["guide"])
    )
    cylinders.append(
        segment(
            "guide_top",
            grid.width,
            grid.width + grid.guide_top,
            grid.hole_diameter,
            grid.hole_diameter,
            colors["guide"],
        )
    )
    return cylinders


def cylinder_surface(cylinder: Cylinder, n: int = 100) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vertex rings of a cylinder: X, Y, Z each (2, n + 1), start ring first."""
    axis = cylinder.end - cylinder.start
    length = np.linalg.norm(axis)
    direction = axis / length if length > 0 else np.array([0.0, 0.0, 1.0])
    helper = np.array([1.0, 0.0, 0.0]) if abs(direction[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    u = np.cross(direction, helper)
    u /= np.linalg.norm(u)
    v = np.cross(direction, u)

    theta = np.linspace(0.0, 2.0 * np.pi, n + 1)
    ring = np.outer(np.cos(theta), u) + np.outer(np.sin(theta), v)  # (n+1, 3)
    start = cylinder.start + cylinder.radius_start * ring
    end = cylinder.end + cylinder.radius_end * ring
    verts = np.stack([start, end])  # (2, n+1, 3)
    return verts[..., 0], verts[..., 1], verts[..., 2]


def zoom_limits(points, margin: float = 15.0) -> np.ndarray:
    """(3, 2) axis limits enclosing ``points`` plus ``margin`` mm."""
    pts = np.atleast_2d(np.asarray(points, dtype=float))
    return np.column_stack([pts.min(axis=0) - margin, pts.max(axis=0) + margin])


def crosshair_planes(point, lower_mm, upper_mm) -> list[np.ndarray]:
    """Three axis-aligned rectangles (4, 3) through ``point`` spanning the bounds."""
    point = np.asarray(point, dtype=float)
    lo, hi = np.asarray(lower_mm, dtype=float), np.asarray(upper_mm, dtype=float)
    planes = []
    for axis in range(3):
        a, b = (k for k in range(3) if k != axis)
        rect = np.zeros((4, 3))
        rect[:, axis] = point[axis]
        rect[:, a] = [lo[a], hi[a], hi[a], lo[a]]
        rect[:, b] = [lo[b], lo[b], hi[b], hi[b]]
        planes.append(rect)
    return planes
