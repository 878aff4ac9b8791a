"""Volume loading and per-layer display state.

Core functions operate on numpy arrays for testability. ``NiftiVolumeLoader``
reads NIfTI files with nibabel; any object satisfying the ``VolumeLoader``
protocol can stand in for it.

Volumes are indexed ``samples[x, y, z]`` in RAS+ orientation. Voxel
indices are 0-based and ``origin_vox`` is the (possibly fractional) voxel
index of scanner position (0, 0, 0), so a point ``p`` in mm falls in voxel
``round(origin_vox + p / voxel_dim)``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import numpy as np

from ElectroNavLib.errors import InvalidArgument

NATIVE_CLIP = 10000.0  # native intensities above this are clipped before scaling
LAYER_ROLES = ("native", "atlas", "structure")


@dataclass
class LoadedVolume:
    """What a volume loader hands back.

    Example::

        v = LoadedVolume(
            samples=np.zeros((10, 10, 10)), voxel_dim=np.array([0.5, 0.5, 0.5]),
            origin_vox=np.array([5.0, 5.0, 5.0]), affine_offset_mm=np.array([-2.5, -2.5, -2.5]),
        )
    """

    samples: np.ndarray  # 3-D scalar array, [x, y, z]
    voxel_dim: np.ndarray  # mm per voxel along x, y, z
    origin_vox: np.ndarray  # 0-based voxel index of scanner (0, 0, 0)
    affine_offset_mm: np.ndarray  # scanner position of voxel (0, 0, 0)
    path: str = ""

    @property
    def dim_vox(self) -> tuple[int, int, int]:
        return tuple(self.samples.shape)


@runtime_checkable
class VolumeLoader(Protocol):
    """Protocol for volume readers.

    Example::

        loader = NiftiVolumeLoader()
        volume = loader.load("/data/M01/T1.nii.gz")
    """

    name: str

    def load(self, path: str) -> LoadedVolume:
        """Read a 3-D volume from disk."""
        ...


class NiftiVolumeLoader:
    """Reads .nii / .nii.gz volumes with nibabel, reoriented to RAS+."""

    name = "NIfTI (nibabel)"

    def load(self, path: str) -> LoadedVolume:
        import nibabel as nib
        from nibabel.filebasedimages import ImageFileError

        try:
            img = nib.load(path)
        except (FileNotFoundError, ImageFileError) as exc:
            raise InvalidArgument(f"cannot read volume {path}: {exc}") from exc
        img = nib.as_closest_canonical(img)
        samples = np.asarray(img.dataobj, dtype=float)
        if samples.ndim == 4 and samples.shape[3] == 1:
            samples = samples[..., 0]
        if samples.ndim != 3:
            raise InvalidArgument(f"{path} is not a 3-D volume (shape {samples.shape})")
        if samples.size == 0:
            raise InvalidArgument(f"{path}: volume is empty")

        affine = img.affine
        voxel_dim = np.asarray(img.header.get_zooms()[:3], dtype=float)
        origin_vox = (np.linalg.inv(affine) @ [0.0, 0.0, 0.0, 1.0])[:3]
        return LoadedVolume(
            samples=samples,
            voxel_dim=voxel_dim,
            origin_vox=origin_vox,
            affine_offset_mm=np.asarray(affine[:3, 3], dtype=float),
            path=path,
        )


def loader_for(path: str) -> VolumeLoader:
    """Pick a loader from the file extension."""
    lower = path.lower()
    if lower.endswith(".nii") or lower.endswith(".nii.gz"):
        return NiftiVolumeLoader()
    raise InvalidArgument(f"no volume loader for {os.path.basename(path)}")


@dataclass(frozen=True)
class AtlasConvention:
    """How an atlas volume encodes its labels.

    NeuroMaps-style atlases store right-hemisphere labels offset by 1000;
    folding subtracts the offset so both hemispheres share label values.
    Use ``hemisphere_offset=None`` for atlases that do not do this.
    """

    hemisphere_offset: int | None = 1000

    def fold(self, labels: np.ndarray) -> np.ndarray:
        if self.hemisphere_offset is None:
            return labels
        out = np.array(labels, dtype=float, copy=True)
        above = out > self.hemisphere_offset
        out[above] -= self.hemisphere_offset
        return out


NEUROMAPS = AtlasConvention(hemisphere_offset=1000)
UNFOLDED = AtlasConvention(hemisphere_offset=None)


def normalize_intensity(samples: np.ndarray, clip: float = NATIVE_CLIP) -> np.ndarray:
    """Clip at ``clip`` and scale into [0, 1).

    Example::

        normalize_intensity(np.array([0.0, 50.0, 20000.0]))
        # -> [0.0, ~0.005, 0.9999]
    """
    if samples.size == 0:
        raise InvalidArgument("volume is empty")
    data = np.minimum(np.asarray(samples, dtype=float), clip)
    lo, hi = float(data.min()), float(data.max())
    if hi == lo:
        return np.zeros_like(data)
    return (data - lo) / (hi - lo) * (1.0 - 1e-4)


@dataclass
class VolumeLayer:
    """One slice layer: a volume plus how it is drawn.

    Example::

        native = VolumeLayer.from_loaded(NiftiVolumeLoader().load(t1_path), "native")
        atlas = VolumeLayer.from_loaded(loader.load(atlas_path), "atlas", opacity=0.5)
    """

    name: str
    role: str  # "native" | "atlas" | "structure"
    samples: np.ndarray
    voxel_dim: np.ndarray
    origin_vox: np.ndarray
    affine_offset_mm: np.ndarray
    alpha: np.ndarray | None = None  # per-voxel membership in [0, 1]
    opacity: float = 1.0
    sigma: float = 0.0  # Gaussian smoothing sd, voxels of the slice
    color: tuple[float, float, float] = (0.5, 0.5, 0.5)
    visible: bool = True
    current_slice: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=int))

    def __post_init__(self):
        if self.role not in LAYER_ROLES:
            raise InvalidArgument(f"unknown layer role {self.role!r}")
        self.samples = np.asarray(self.samples)
        if self.samples.ndim != 3:
            raise InvalidArgument(f"layer samples must be 3-D, got shape {self.samples.shape}")
        self.voxel_dim = np.asarray(self.voxel_dim, dtype=float)
        self.origin_vox = np.asarray(self.origin_vox, dtype=float)
        self.affine_offset_mm = np.asarray(self.affine_offset_mm, dtype=float)
        if np.any(self.voxel_dim <= 0):
            raise InvalidArgument("voxel dimensions must be positive")
        if self.alpha is not None and self.alpha.shape != self.samples.shape:
            raise InvalidArgument("alpha mask must match the volume shape")

    @classmethod
    def from_loaded(
        cls,
        volume: LoadedVolume,
        role: str,
        name: str | None = None,
        convention: AtlasConvention = NEUROMAPS,
        **kwargs,
    ) -> VolumeLayer:
        """Apply the load-time conventions for ``role`` to a loaded volume.

        Native volumes are clipped and scaled into [0, 1). Atlas volumes
        get an alpha mask of their non-zero voxels and hemisphere folding.
        Structure masks use themselves as alpha.
        """
        samples = volume.samples
        alpha = None
        if role == "native":
            samples = normalize_intensity(samples)
        elif role == "atlas":
            alpha = (samples > 0).astype(float)
            samples = convention.fold(samples)
        elif role == "structure":
            alpha = (samples > 0).astype(float)
            samples = alpha.copy()
        else:
            raise InvalidArgument(f"unknown layer role {role!r}")
        if name is None:
            name = os.path.basename(volume.path) or role
        return cls(
            name=name,
            role=role,
            samples=samples,
            voxel_dim=volume.voxel_dim,
            origin_vox=volume.origin_vox,
            affine_offset_mm=volume.affine_offset_mm,
            alpha=alpha,
            **kwargs,
        )

    @property
    def dim_vox(self) -> tuple[int, int, int]:
        return tuple(self.samples.shape)

    @property
    def lower_bound_mm(self) -> np.ndarray:
        return self.affine_offset_mm

    @property
    def upper_bound_mm(self) -> np.ndarray:
        return self.affine_offset_mm + np.asarray(self.dim_vox) * self.voxel_dim

    def voxel_index(self, point_mm) -> np.ndarray:
        """0-based voxel index containing ``point_mm`` (may lie outside the volume)."""
        point = np.asarray(point_mm, dtype=float)
        return np.rint(self.origin_vox + point / self.voxel_dim).astype(int)

    def contains(self, index) -> bool:
        index = np.asarray(index)
        return bool(np.all(index >= 0) and np.all(index < np.asarray(self.dim_vox)))

    def world_from_voxel(self, index) -> np.ndarray:
        return (np.asarray(index, dtype=float) - self.origin_vox) * self.voxel_dim

    def label_at(self, point_mm) -> int:
        """Atlas label under ``point_mm``; 0 outside the volume."""
        index = self.voxel_index(point_mm)
        if not self.contains(index):
            return 0
        return int(self.samples[tuple(index)])


class LayerStack:
    """Ordered slice layers, drawn back to front. Layer 0 is the native MRI."""

    def __init__(self, layers: list[VolumeLayer] | None = None):
        self._layers: list[VolumeLayer] = []
        for layer in layers or []:
            self.add(layer)

    def add(self, layer: VolumeLayer) -> int:
        if not self._layers and layer.role != "native":
            raise InvalidArgument("the first layer must be the native MRI")
        if self._layers and layer.role == "native":
            raise InvalidArgument("the stack already has a native layer")
        if self._layers and not np.allclose(layer.voxel_dim, self.native.voxel_dim):
            print(
                f"[ElectroNav] Layer '{layer.name}' voxel size {layer.voxel_dim.tolist()} "
                f"does not match native MRI {self.native.voxel_dim.tolist()}"
            )
        self._layers.append(layer)
        return len(self._layers) - 1

    def remove(self, index: int) -> VolumeLayer:
        if index == 0:
            raise InvalidArgument("the native layer cannot be removed")
        return self._layers.pop(index)

    @property
    def native(self) -> VolumeLayer:
        if not self._layers:
            raise InvalidArgument("no volumes loaded")
        return self._layers[0]

    def atlas(self) -> VolumeLayer | None:
        return next((l for l in self._layers if l.role == "atlas"), None)

    def __getitem__(self, index: int) -> VolumeLayer:
        return self._layers[index]

    def __iter__(self):
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)
