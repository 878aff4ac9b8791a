"""Outlines of a single atlas structure on the current slice.

Core algorithm functions operate on numpy arrays for testability.
``outline_structure`` ties them to a VolumeLayer and SliceDescriptor and
returns polylines in scanner space lying on the displayed slice plane.

Example::

    label = atlas.label_at(clicked_mm)
    desc = resolve_slice(atlas, contact_mm, axis=1)
    outline = outline_structure(atlas, label, desc, names)
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from scipy import ndimage
from skimage import measure

from ElectroNavLib.errors import InvalidArgument
from ElectroNavLib.slice_resolver import SliceDescriptor, free_axes
from ElectroNavLib.volume import VolumeLayer


@dataclass
class StructureOutline:
    label: int
    name: str = ""
    polylines_mm: list[np.ndarray] = field(default_factory=list)  # each (M, 3), closed
    anchor_mm: np.ndarray | None = None  # where to place the name

    @property
    def empty(self) -> bool:
        return not self.polylines_mm


def trace_boundaries(mask2d: np.ndarray) -> list[np.ndarray]:
    """Closed boundary polylines of a binary mask, in (row, col) voxel units.

    The mask is zero-padded first so regions touching the slab edge still
    give closed contours. Each polyline's first and last points coincide.

    Example::

        mask = np.zeros((10, 10), dtype=bool)
        mask[3:6, 3:6] = True
        [poly] = trace_boundaries(mask)
    """
    mask = np.asarray(mask2d, dtype=bool)
    if mask.ndim != 2:
        raise InvalidArgument(f"mask must be 2-D, got shape {mask.shape}")
    if not mask.any():
        return []
    padded = np.pad(mask.astype(float), 1, mode="constant", constant_values=0.0)
    return [contour - 1.0 for contour in measure.find_contours(padded, 0.5)]


def label_anchor(mask2d: np.ndarray) -> tuple[int, int] | None:
    """Voxel of the mask nearest its centre of mass (inside the structure)."""
    mask = np.asarray(mask2d, dtype=bool)
    if not mask.any():
        return None
    centroid = np.array(ndimage.center_of_mass(mask))
    rows, cols = np.nonzero(mask)
    nearest = int(np.argmin((rows - centroid[0]) ** 2 + (cols - centroid[1]) ** 2))
    return int(rows[nearest]), int(cols[nearest])


def structure_mask(layer: VolumeLayer, label: int, descriptor: SliceDescriptor) -> np.ndarray:
    """Boolean mask of ``label`` on the descriptor's slice.

    Indexed by the two free axes in volume order (not display order).
    """
    a, b = free_axes(descriptor.axis)
    if not descriptor.valid or label == 0:
        return np.zeros((layer.dim_vox[a], layer.dim_vox[b]), dtype=bool)
    cut = [slice(None)] * 3
    cut[descriptor.axis] = int(descriptor.index_vox[descriptor.axis])
    return np.asarray(layer.samples[tuple(cut)]) == label


def _to_world(points: np.ndarray, layer: VolumeLayer, descriptor: SliceDescriptor) -> np.ndarray:
    a, b = free_axes(descriptor.axis)
    world = np.empty((len(points), 3))
    world[:, descriptor.axis] = descriptor.plane_mm
    world[:, a] = (points[:, 0] - layer.origin_vox[a]) * layer.voxel_dim[a]
    world[:, b] = (points[:, 1] - layer.origin_vox[b]) * layer.voxel_dim[b]
    return world


def outline_structure(
    layer: VolumeLayer,
    label: int,
    descriptor: SliceDescriptor,
    names: dict[int, str] | None = None,
) -> StructureOutline:
    """Outline ``label`` on the slice described by ``descriptor``.

    Returns an outline with no polylines when the structure does not cut
    this slice or the slice is out of the volume.
    """
    name = display_name(names.get(label, "")) if names else ""
    mask = structure_mask(layer, label, descriptor)
    polylines = [_to_world(p, layer, descriptor) for p in trace_boundaries(mask)]
    anchor = label_anchor(mask)
    anchor_mm = None
    if anchor is not None:
        anchor_mm = _to_world(np.array([anchor], dtype=float), layer, descriptor)[0]
    return StructureOutline(label=int(label), name=name, polylines_mm=polylines, anchor_mm=anchor_mm)


def load_label_names(path: str) -> dict[int, str]:
    """Read an atlas label table of ``<index> <name>`` lines.

    Blank lines and lines starting with ``#`` are skipped.
    """
    names = {}
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split(None, 1)
            try:
                index = int(parts[0])
            except ValueError as exc:
                raise InvalidArgument(f"bad label line in {path}: {line!r}") from exc
            names[index] = parts[1].strip() if len(parts) > 1 else ""
    return names


def display_name(raw: str, hemisphere_prefix: int = 2) -> str:
    """Strip the hemisphere prefix and underscores: ``"R_Amygdala"`` -> ``"Amygdala"``."""
    if len(raw) <= hemisphere_prefix:
        return raw.replace("_", " ").strip()
    return raw[hemisphere_prefix:].replace("_", " ").strip()
