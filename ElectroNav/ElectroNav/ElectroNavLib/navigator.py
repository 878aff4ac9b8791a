# ElectroNav/ElectroNav/ElectroNavLib/navigator.py
"""Application state and the operations the GUI calls.

``NavigatorLogic`` owns every piece of mutable state (session, grid,
transform, volume layers, view settings). GUI callbacks call one mutator,
then ``refresh()`` to get everything the renderer needs for the redraw.

Example::

    logic = NavigatorLogic(load_defaults(params_path, subject_id="M01"))
    logic.load_transform("/data/M01/M01_ElectroNav.xform")
    logic.load_volumes("/data/M01/T1.nii.gz", "/data/atlas/NeuroMaps.nii")
    logic.set_target_from_click(2.1, 1.9)
    view = logic.refresh()
"""

from __future__ import annotations

import datetime
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from ElectroNavLib.config import Defaults
from ElectroNavLib.electrode_catalog import ElectrodeCatalog
from ElectroNavLib.errors import InvalidArgument, OutOfRange
from ElectroNavLib.geometry import Cylinder, crosshair_planes, electrode_cylinders, zoom_limits
from ElectroNavLib.grid_model import get_grid
from ElectroNavLib.history import HistoryStore
from ElectroNavLib.registration import RigidTransform
from ElectroNavLib.session import Session
from ElectroNavLib.slice_resolver import SliceDescriptor, composite_slices, resolve_views
from ElectroNavLib.structure_outline import StructureOutline, load_label_names, outline_structure
from ElectroNavLib.volume import (
    AtlasConvention,
    LayerStack,
    VolumeLayer,
    VolumeLoader,
    loader_for,
)


@dataclass
class ViewState:
    """Everything the renderer needs for one redraw."""

    point_mm: np.ndarray  # selected contact (or tip) in scanner space
    active_axis: int
    slices: list[list[SliceDescriptor]] = field(default_factory=list)  # [layer][axis]
    composite: np.ndarray | None = None  # RGB of the active plane
    outline: StructureOutline | None = None
    electrodes: dict[int, list[Cylinder]] = field(default_factory=dict)  # by handle
    crosshair: list[np.ndarray] = field(default_factory=list)
    zoom: np.ndarray | None = None  # (3, 2) axis limits when zoomed


class NavigatorLogic:
    """Controller for one navigation session.

    Example::

        logic = NavigatorLogic()
        logic.session.selected.set_depth("start", 10.0)
        logic.rate_selected_contact(5, 3)
        logic.save_session(confirm_overwrite=ask_user)
    """

    def __init__(
        self,
        defaults: Defaults | None = None,
        catalog: ElectrodeCatalog | None = None,
        loader: VolumeLoader | None = None,
    ):
        self.defaults = defaults or Defaults()
        self.catalog = catalog or ElectrodeCatalog.default()
        self._loader = loader
        self.grid = get_grid(self.defaults.grid_id)
        self.transform = RigidTransform.identity()
        self.session = Session.start(
            self.defaults.subject_id, self.catalog, self.defaults.electrode_id
        )
        first = self.session.selected
        first.guide_length = float(self.defaults.guide_length)
        first.quality_colormap = tuple(tuple(c) for c in self.defaults.quality_colormap)
        self.layers = LayerStack()
        self.active_axis = 2
        self.structure_label = 0
        self.label_names: dict[int, str] = {}
        self.zoom_on = False

    # -------------------------------------------------------------------------
    # Transform
    # -------------------------------------------------------------------------

    def load_transform(self, path: str) -> RigidTransform:
        """Load and install a grid-to-MRI transform; the old one stays on error."""
        self.set_transform(RigidTransform.load(path))
        print(f"[ElectroNav] Loaded transform from {path}")
        return self.transform

    def set_transform(self, transform: RigidTransform) -> None:
        self.transform = transform

    # -------------------------------------------------------------------------
    # Volumes
    # -------------------------------------------------------------------------

    def _load(self, path: str):
        loader = self._loader or loader_for(path)
        return loader.load(path)

    def _layer_style(self, index: int) -> dict:
        colors = self.defaults.layer_colors
        opacity = self.defaults.layer_opacity
        return {
            "color": tuple(colors[min(index, len(colors) - 1)]),
            "opacity": float(opacity[min(index, len(opacity) - 1)]),
        }

    def load_volumes(
        self,
        mri_path: str,
        atlas_path: str | None = None,
        label_table: str | None = None,
    ) -> LayerStack:
        """Replace all layers with a native MRI and optional atlas.

        Example::

            logic.load_volumes("/data/M01/T1.nii.gz", "/data/atlas/NeuroMaps.nii")
        """
        stack = LayerStack()
        stack.add(VolumeLayer.from_loaded(self._load(mri_path), "native", **self._layer_style(0)))
        if atlas_path:
            convention = AtlasConvention(self.defaults.atlas_hemisphere_offset)
            stack.add(
                VolumeLayer.from_loaded(
                    self._load(atlas_path), "atlas", convention=convention, **self._layer_style(1)
                )
            )
        names = load_label_names(label_table) if label_table else {}
        self.layers = stack
        self.label_names = names
        self.structure_label = 0
        print(f"[ElectroNav] Loaded {len(stack)} volume layer(s)")
        return stack

    def add_layer(self, path: str, role: str = "structure", name: str | None = None) -> int:
        """Append a structure mask (or extra atlas) above the existing layers."""
        if len(self.layers) == 0:
            raise InvalidArgument("load the native MRI before adding layers")
        layer = VolumeLayer.from_loaded(
            self._load(path), role, name=name, **self._layer_style(len(self.layers))
        )
        return self.layers.add(layer)

    def remove_layer(self, index: int) -> None:
        self._check_layer(index)
        self.layers.remove(index)

    def _check_layer(self, index: int) -> None:
        if not 0 <= index < len(self.layers):
            raise OutOfRange(f"layer {index} outside 0..{len(self.layers) - 1}")

    def set_layer_opacity(self, index: int, opacity: float) -> float:
        self._check_layer(index)
        self.layers[index].opacity = float(np.clip(opacity, 0.0, 1.0))
        return self.layers[index].opacity

    def set_layer_sigma(self, index: int, sigma: float) -> float:
        """Set smoothing, clamped into [0, sigma_max]."""
        self._check_layer(index)
        self.layers[index].sigma = float(np.clip(sigma, 0.0, self.defaults.sigma_max))
        return self.layers[index].sigma

    def set_layer_visible(self, index: int, visible: bool) -> None:
        self._check_layer(index)
        self.layers[index].visible = bool(visible)

    def set_active_axis(self, axis: int) -> None:
        if axis not in (0, 1, 2):
            raise InvalidArgument(f"axis must be 0, 1 or 2, got {axis!r}")
        self.active_axis = axis

    # -------------------------------------------------------------------------
    # Electrode edits
    # -------------------------------------------------------------------------

    def set_target_from_click(self, x: float, y: float) -> bool:
        """Snap a grid-schematic click to a hole; False if no hole is near."""
        index = self.grid.hole_index(x, y)
        if index is None:
            return False
        hole = self.grid.hole(index)
        self.session.selected.set_target(hole.x_mm, hole.y_mm)
        return True

    def rate_selected_contact(self, contact: int, rating: float) -> int:
        electrode = self.session.selected
        stored = electrode.rate_contact(contact, rating)
        electrode.select_contact(contact)
        return stored

    def select_structure_at(self, point_mm) -> int:
        """Pick the atlas structure under a clicked point (0 clears it)."""
        atlas = self.layers.atlas()
        self.structure_label = 0 if atlas is None else atlas.label_at(point_mm)
        return self.structure_label

    def selected_point(self) -> np.ndarray:
        return self.session.selected.selected_world_position(self.transform)

    # -------------------------------------------------------------------------
    # Redraw
    # -------------------------------------------------------------------------

    def refresh(self) -> ViewState:
        """Recompute slices, outline and electrode geometry for the current state."""
        point = self.selected_point()
        view = ViewState(point_mm=point, active_axis=self.active_axis)

        for layer in self.layers:
            descriptors = resolve_views(layer, point, self.defaults.smoothing_kernel_size)
            layer.current_slice = descriptors[0].index_vox
            view.slices.append(descriptors)

        if view.slices:
            view.composite = composite_slices(
                list(self.layers), [d[self.active_axis] for d in view.slices]
            )
            native = self.layers.native
            view.crosshair = crosshair_planes(point, native.lower_bound_mm, native.upper_bound_mm)

        atlas = self.layers.atlas()
        if atlas is not None and self.structure_label:
            index = list(self.layers).index(atlas)
            view.outline = outline_structure(
                atlas, self.structure_label, view.slices[index][self.active_axis], self.label_names
            )

        for electrode in self.session.electrodes:
            view.electrodes[electrode.handle] = electrode_cylinders(
                electrode, self.transform, self.grid
            )

        if self.zoom_on:
            selected = self.session.selected
            points = [c.position_mm for c in selected.contacts(self.transform)]
            points.append(selected.tip_world_position(self.transform))
            view.zoom = zoom_limits(points, self.defaults.zoom_level)
        return view

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _history(self) -> HistoryStore:
        if not self.defaults.history_path:
            raise InvalidArgument("no history file configured")
        return HistoryStore(self.defaults.history_path)

    def save_session(self, confirm_overwrite: Callable[[str], bool] | None = None) -> bool:
        return self._history().save(self.session.to_record(), confirm_overwrite)

    def load_session(self, date: datetime.date) -> list[int]:
        """Replace the electrodes with a stored session; returns removed handles."""
        removed = self.session.load_from(self._history().load_by_date(date))
        print(
            f"[ElectroNav] Loaded session {date:%d-%b-%Y} "
            f"({len(self.session)} electrodes, {len(removed)} removed)"
        )
        return removed

    def export_csv(self, path: str) -> None:
        """Export every contact's scanner-space position and rating.

        Example::

            logic.export_csv("/output/contacts.csv")
        """
        import csv

        with open(path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["Electrode", "Contact", "X", "Y", "Z", "Rating"])
            for electrode in self.session.electrodes:
                for contact in electrode.contacts(self.transform):
                    x, y, z = contact.position_mm
                    writer.writerow([electrode.id, contact.index, x, y, z, contact.rating])
