# ElectroNav/ElectroNav/ElectroNavLib/slice_resolver.py
"""Slice extraction for the three canonical planes.

Given a scanner-space point (usually the selected contact), each layer is
cut through that point along one axis. Points outside a layer's voxel
grid do not raise: the slice comes back blank with ``valid=False`` so the
display keeps working while the cursor is out of range.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import ndimage

from ElectroNavLib.errors import InvalidArgument
from ElectroNavLib.volume import VolumeLayer

PLANES = ("sagittal", "coronal", "axial")  # fixed axis 0, 1, 2
KERNEL_SIZE = 5


@dataclass
class SliceDescriptor:
    """One layer's slice through one plane.

    ``data`` and ``alpha`` are in display orientation: sagittal and
    coronal slabs are transposed so rows run along z.
    """

    axis: int  # fixed axis: 0 sagittal, 1 coronal, 2 axial
    index_vox: np.ndarray  # 0-based voxel index of the cut point, all 3 axes
    corners_mm: np.ndarray  # (4, 3) slice rectangle in scanner space
    valid: bool
    data: np.ndarray  # 2-D
    alpha: np.ndarray | None = None  # 2-D, same shape as data
    plane_mm: float = 0.0  # position of the plane along the fixed axis

    @property
    def plane(self) -> str:
        return PLANES[self.axis]


def free_axes(axis: int) -> tuple[int, int]:
    if axis not in (0, 1, 2):
        raise InvalidArgument(f"axis must be 0, 1 or 2, got {axis!r}")
    return tuple(a for a in range(3) if a != axis)


def gaussian_kernel(size: int = KERNEL_SIZE, sigma: float = 1.0) -> np.ndarray:
    """Normalised 2-D Gaussian kernel of ``size`` x ``size``.

    Example::

        k = gaussian_kernel(5, 1.0)
        k.sum()  # 1.0
    """
    if sigma <= 0:
        raise InvalidArgument("sigma must be positive")
    half = (size - 1) / 2
    x = np.arange(size) - half
    xx, yy = np.meshgrid(x, x)
    kernel = np.exp(-(xx**2 + yy**2) / (2.0 * sigma**2))
    kernel[kernel < np.finfo(float).eps * kernel.max()] = 0.0
    return kernel / kernel.sum()


def smooth_slice(slab: np.ndarray, sigma: float, size: int = KERNEL_SIZE) -> np.ndarray:
    """Convolve with a Gaussian, zero-padded at the edges; sigma <= 0 is a no-op."""
    if sigma <= 0:
        return slab
    return ndimage.convolve(
        np.asarray(slab, dtype=float), gaussian_kernel(size, sigma), mode="constant", cval=0.0
    )


def slice_corners(layer: VolumeLayer, point_mm, axis: int) -> np.ndarray:
    a, b = free_axes(axis)
    lo, hi = layer.lower_bound_mm, layer.upper_bound_mm
    corners = np.zeros((4, 3))
    corners[:, axis] = float(point_mm[axis])
    corners[:, a] = [lo[a], hi[a], hi[a], lo[a]]
    corners[:, b] = [lo[b], lo[b], hi[b], hi[b]]
    return corners


def resolve_slice(
    layer: VolumeLayer,
    point_mm,
    axis: int,
    kernel_size: int = KERNEL_SIZE,
) -> SliceDescriptor:
    """Cut ``layer`` through ``point_mm`` perpendicular to ``axis``.

    Args:
        layer: Volume layer to slice.
        point_mm: Scanner-space point (x, y, z) in mm.
        axis: Fixed axis, 0 sagittal / 1 coronal / 2 axial.
        kernel_size: Smoothing kernel width, used when ``layer.sigma > 0``.

    Returns:
        SliceDescriptor; ``valid`` is False and the slab all zeros when the
        point lies outside the volume on any axis.

    Example::

        desc = resolve_slice(native, [0.0, -12.5, 3.0], axis=2)
        desc.data.shape  # (dim_x, dim_y)
    """
    point = np.asarray(point_mm, dtype=float)
    a, b = free_axes(axis)
    index = layer.voxel_index(point)
    valid = layer.contains(index)

    if valid:
        cut = [slice(None)] * 3
        cut[axis] = int(index[axis])
        data = np.asarray(layer.samples[tuple(cut)], dtype=float)
        alpha = None if layer.alpha is None else np.asarray(layer.alpha[tuple(cut)], dtype=float)
    else:
        print(
            f"[ElectroNav] Requested {PLANES[axis]} slice out of volume "
            f"'{layer.name}' (voxel {index.tolist()}, dims {list(layer.dim_vox)})"
        )
        shape = (layer.dim_vox[a], layer.dim_vox[b])
        data = np.zeros(shape)
        alpha = None if layer.alpha is None else np.zeros(shape)

    # Sagittal and coronal slabs are stored (in-plane, z); show z as rows
    if axis < 2:
        data = data.T
        alpha = None if alpha is None else alpha.T

    if valid and layer.sigma > 0:
        data = smooth_slice(data, layer.sigma, kernel_size)
        if alpha is not None:
            alpha = smooth_slice(alpha, layer.sigma, kernel_size)

    return SliceDescriptor(
        axis=axis,
        index_vox=index,
        corners_mm=slice_corners(layer, point, axis),
        valid=valid,
        data=data,
        alpha=alpha,
        plane_mm=float(point[axis]),
    )


def resolve_views(layer: VolumeLayer, point_mm, kernel_size: int = KERNEL_SIZE) -> list[SliceDescriptor]:
    """Sagittal, coronal and axial slices through the same point."""
    return [resolve_slice(layer, point_mm, axis, kernel_size) for axis in range(3)]


def match_shape(slab: np.ndarray, shape: tuple[int, int]) -> np.ndarray:
    """Nearest-neighbour resample ``slab`` to exactly ``shape``."""
    if slab.shape == tuple(shape):
        return slab
    factors = [t / s for t, s in zip(shape, slab.shape)]
    out = ndimage.zoom(slab, factors, order=0)
    # zoom rounds the output size; crop or edge-pad to the exact shape
    out = out[: shape[0], : shape[1]]
    pad = [(0, shape[0] - out.shape[0]), (0, shape[1] - out.shape[1])]
    return np.pad(out, pad, mode="edge") if any(p[1] for p in pad) else out


def composite_slices(
    layers: list[VolumeLayer], descriptors: list[SliceDescriptor]
) -> np.ndarray:
    """Blend one plane's slices back to front into an RGB image.

    The first layer is the native MRI, drawn grey and opaque. Each later
    visible layer is drawn in its colour with weight ``opacity * alpha``
    (or ``opacity`` where it has no alpha). Invalid slices add nothing.

    Returns:
        Float array (H, W, 3) in [0, 1], H x W the native slice shape.
    """
    if not layers or len(layers) != len(descriptors):
        raise InvalidArgument("need one descriptor per layer")
    base = descriptors[0]
    gray = np.clip(base.data, 0.0, 1.0)
    rgb = np.repeat(gray[:, :, None], 3, axis=2)
    shape = gray.shape

    for layer, desc in zip(layers[1:], descriptors[1:]):
        if not layer.visible or not desc.valid or layer.opacity <= 0:
            continue
        alpha = np.ones(desc.data.shape) if desc.alpha is None else desc.alpha
        weight = np.clip(layer.opacity * match_shape(alpha, shape), 0.0, 1.0)[:, :, None]
        color = np.asarray(layer.color, dtype=float)[None, None, :]
        rgb = rgb * (1.0 - weight) + color * weight
    return rgb
