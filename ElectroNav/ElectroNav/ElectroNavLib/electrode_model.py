# ElectroNav/ElectroNav/ElectroNavLib/electrode_model.py
from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ElectroNavLib.electrode_catalog import ElectrodeType
from ElectroNavLib.errors import InvalidArgument, OutOfRange
from ElectroNavLib.registration import RigidTransform

# Rating colours, worst (0) to best (K-1)
QUALITY_COLORMAP = (
    (0.0, 0.0, 0.0),
    (1.0, 0.0, 0.0),
    (1.0, 0.5, 0.0),
    (1.0, 1.0, 0.0),
    (0.0, 1.0, 0.0),
)

DEPTH_COMPONENTS = ("start", "microdrive")


@dataclass
class Contact:
    """A single recording contact in world space.

    Example::

        c = Contact(index=1, position_mm=(7.0, 2.0, -1.0), rating=3, label="PLX24_A_1")
    """

    index: int  # 1-based (1 = deepest, nearest the tip)
    position_mm: tuple[float, float, float]  # scanner space, mm
    rating: int = 0
    label: str = ""


@dataclass
class Electrode:
    """One electrode in the current session.

    Depth is measured downwards from the grid surface, so contact ``i``
    sits at grid-local ``z = -current_depth + tip_length + (i-1) * contact_spacing``.
    ``current_depth`` tracks ``start_depth + microdrive_depth`` except after
    ``set_total_depth``, which overrides it until either component is
    edited again.

    Example::

        e = Electrode.from_type(ElectrodeCatalog.default().lookup("PLX24"))
        e.set_depth("start", 10.0)
        e.set_depth("microdrive", 2.5)
        e.current_depth  # 12.5
    """

    id: str
    electrode_type: ElectrodeType
    contact_data: list[int] = field(default_factory=list)
    handle: int = 0  # stable key for drawables, issued by the session
    target: tuple[float, float] = (0.0, 0.0)  # grid-local (x, y) mm
    start_depth: float = 0.0  # mm
    microdrive_depth: float = 0.0  # mm
    current_depth: float = 0.0  # mm
    guide_length: float = 27.0  # mm
    selected_contact: int | None = 1  # 1-based; None = tip selected
    quality_colormap: tuple = QUALITY_COLORMAP

    def __post_init__(self):
        if not self.contact_data:
            self.contact_data = [0] * self.electrode_type.contact_number
        if len(self.quality_colormap) < 1:
            raise InvalidArgument("quality colormap needs at least one colour")

    @classmethod
    def from_type(
        cls, electrode_type: ElectrodeType, electrode_id: str | None = None, **kwargs
    ) -> Electrode:
        if electrode_id is None:
            electrode_id = f"{electrode_type.brand}{electrode_type.contact_number}"
        return cls(id=electrode_id, electrode_type=electrode_type, **kwargs)

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    @property
    def brand(self) -> str:
        return self.electrode_type.brand

    @property
    def diameter(self) -> float:
        return self.electrode_type.diameter

    @property
    def tip_length(self) -> float:
        return self.electrode_type.tip_length

    @property
    def contact_diameter(self) -> float:
        return self.electrode_type.contact_diameter

    @property
    def contact_spacing(self) -> float:
        return self.electrode_type.contact_spacing

    @property
    def length(self) -> float:
        return self.electrode_type.length

    @property
    def contact_number(self) -> int:
        return len(self.contact_data)

    @property
    def quality_levels(self) -> int:
        """K, the number of distinct quality ratings."""
        return len(self.quality_colormap)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def set_target(self, x: float, y: float) -> None:
        self.target = (float(x), float(y))

    def set_depth(self, component: str, value: float) -> None:
        """Set the start or microdrive depth and recompute the total."""
        value = _finite(value, "depth")
        if component == "start":
            self.start_depth = value
        elif component == "microdrive":
            self.microdrive_depth = value
        else:
            raise InvalidArgument(
                f"unknown depth component {component!r}; expected one of {DEPTH_COMPONENTS}"
            )
        self.current_depth = self.start_depth + self.microdrive_depth

    def set_total_depth(self, value: float) -> None:
        """Override current_depth without touching start/microdrive depths."""
        self.current_depth = _finite(value, "depth")

    def resize_contacts(self, n: int) -> None:
        """Grow (zero-filled) or truncate the contact ratings to ``n`` entries.

        Truncated ratings are dropped, not remembered. The selection cursor
        is clamped to the new last contact.
        """
        n = _contact_count(n)
        if n > self.contact_number:
            self.contact_data = self.contact_data + [0] * (n - self.contact_number)
        else:
            self.contact_data = self.contact_data[:n]
        if self.selected_contact is not None and self.selected_contact > n:
            self.selected_contact = n

    def rate_contact(self, index: int, rating: float) -> int:
        """Store a quality rating for 1-based contact ``index``.

        The rating is rounded half up and saturated into ``[0, K-1]``; it is
        never rejected for being out of range.

        Returns:
            The rating actually stored.
        """
        self._check_contact(index)
        stored = saturate_rating(rating, self.quality_levels)
        self.contact_data[index - 1] = stored
        return stored

    def select_contact(self, index: int) -> int:
        """Move the cursor to contact ``index``, clamped into ``[1, contact_number]``."""
        self.selected_contact = int(np.clip(int(index), 1, self.contact_number))
        return self.selected_contact

    def select_tip(self) -> None:
        self.selected_contact = None

    @property
    def tip_selected(self) -> bool:
        return self.selected_contact is None

    def apply_type(self, electrode_type: ElectrodeType, contact_number: int | None = None) -> None:
        """Switch to another electrode model, keeping depth and target."""
        n = electrode_type.contact_number if contact_number is None else contact_number
        n = _contact_count(n)
        self.electrode_type = electrode_type
        self.id = f"{electrode_type.brand}{n}"
        self.resize_contacts(n)

    # -------------------------------------------------------------------------
    # Positions
    # -------------------------------------------------------------------------

    def contact_local_z(self, index: int) -> float:
        self._check_contact(index)
        return -self.current_depth + self.tip_length + (index - 1) * self.contact_spacing

    def selected_local_z(self) -> float:
        if self.selected_contact is None:
            return -self.current_depth
        return self.contact_local_z(self.selected_contact)

    def contact_world_position(self, index: int, transform: RigidTransform) -> np.ndarray:
        """Scanner-space position of 1-based contact ``index``.

        Example::

            xform = RigidTransform.from_translation_rotation((5, 0, -3))
            e.set_target(2, 2)
            e.contact_world_position(1, xform)  # tip_length=2 -> [7., 2., -1.]
        """
        return transform.apply([*self.target, self.contact_local_z(index)])

    def selected_world_position(self, transform: RigidTransform) -> np.ndarray:
        return transform.apply([*self.target, self.selected_local_z()])

    def tip_world_position(self, transform: RigidTransform) -> np.ndarray:
        return transform.apply([*self.target, -self.current_depth])

    def contacts(self, transform: RigidTransform) -> list[Contact]:
        """All contacts with world positions and ratings."""
        out = []
        for i, rating in enumerate(self.contact_data, start=1):
            pos = self.contact_world_position(i, transform)
            out.append(Contact(i, tuple(float(v) for v in pos), rating, f"{self.id}_{i}"))
        return out

    def quality_color(self, index: int) -> tuple[float, float, float]:
        self._check_contact(index)
        return tuple(self.quality_colormap[self.contact_data[index - 1]])

    def _check_contact(self, index: int) -> None:
        if not 1 <= index <= self.contact_number:
            raise OutOfRange(f"contact {index} outside 1..{self.contact_number}")


def _finite(value, name: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"{name} must be a number, got {value!r}") from exc
    if not np.isfinite(value):
        raise InvalidArgument(f"{name} must be finite")
    return value


def saturate_rating(rating, levels: int) -> int:
    """Round ``rating`` half up and clip it into ``[0, levels-1]``."""
    rating = _finite(rating, "rating")
    return int(np.clip(np.floor(rating + 0.5), 0, levels - 1))


def _contact_count(n) -> int:
    try:
        count = int(n)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidArgument(f"contact number must be a positive integer, got {n!r}") from exc
    if isinstance(n, bool) or count != n or count < 1:
        raise InvalidArgument(f"contact number must be a positive integer, got {n!r}")
    return count
