"""Electrode-type catalog.

Maps an electrode id such as ``"PLX24_A"`` to the physical parameters of
that electrode model. The leading letters of the id select the brand;
trailing digits, when present, override the brand's default contact count.

Example::

    catalog = ElectrodeCatalog.default()
    plx = catalog.lookup("PLX24_A")
    plx.contact_number  # 24
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace

from ElectroNavLib.errors import InvalidArgument, UnknownElectrodeType

_ID_PATTERN = re.compile(r"^([A-Za-z]+)(\d*)")


@dataclass(frozen=True)
class ElectrodeType:
    """Physical parameters of one electrode model.

    Example::

        t = ElectrodeType(
            brand="PLX", diameter=0.26, tip_length=2.0, contact_diameter=0.05,
            contact_spacing=0.1, default_contact_number=24,
        )
    """

    brand: str
    diameter: float  # mm, shaft
    tip_length: float  # mm, tip to first contact
    contact_diameter: float  # mm
    contact_spacing: float  # mm centre-to-centre
    default_contact_number: int
    length: float = 70.0  # mm, full shaft incl. tip
    colors: dict = field(
        default_factory=lambda: {
            "shaft": (0.5, 0.5, 0.5),
            "contact": (1.0, 1.0, 0.0),
            "guide": (0.8, 0.8, 0.8),
        }
    )
    guide_alpha: float = 0.5
    description: str = ""

    # Contact count of the looked-up id; falls back to the brand default
    contact_number: int = 0

    def __post_init__(self):
        if self.contact_number <= 0:
            object.__setattr__(self, "contact_number", self.default_contact_number)
        if self.default_contact_number < 1:
            raise InvalidArgument(f"{self.brand}: default contact number must be >= 1")


_BUILTIN_TYPES = [
    ElectrodeType(
        brand="PLX",
        diameter=0.26,
        tip_length=2.0,
        contact_diameter=0.05,
        contact_spacing=0.1,
        default_contact_number=24,
        description="Plexon U/V-probe",
    ),
    ElectrodeType(
        brand="NN",
        diameter=0.1,
        tip_length=0.05,
        contact_diameter=0.015,
        contact_spacing=0.05,
        default_contact_number=32,
        description="NeuroNexus linear array",
    ),
    ElectrodeType(
        brand="FHC",
        diameter=0.125,
        tip_length=0.1,
        contact_diameter=0.02,
        contact_spacing=0.0,
        default_contact_number=1,
        description="FHC single tungsten microelectrode",
    ),
    ElectrodeType(
        brand="MP",
        diameter=0.2,
        tip_length=0.3,
        contact_diameter=0.03,
        contact_spacing=0.15,
        default_contact_number=16,
        description="Microprobes linear array",
    ),
    ElectrodeType(
        brand="CAN",
        diameter=0.3,
        tip_length=0.5,
        contact_diameter=0.3,
        contact_spacing=0.0,
        default_contact_number=1,
        colors={"shaft": (0.6, 0.6, 0.9), "contact": (0.0, 0.0, 1.0), "guide": (0.8, 0.8, 0.8)},
        description="Injection cannula",
    ),
]


class ElectrodeCatalog:
    """Brand-keyed collection of electrode types."""

    def __init__(self, types: list[ElectrodeType]):
        self._types = {t.brand.upper(): t for t in types}

    @classmethod
    def default(cls) -> ElectrodeCatalog:
        return cls(_BUILTIN_TYPES)

    @classmethod
    def from_json(cls, path: str) -> ElectrodeCatalog:
        """Load a catalog from a JSON list of ElectrodeType field dicts."""
        with open(path) as f:
            entries = json.load(f)
        try:
            types = [ElectrodeType(**entry) for entry in entries]
        except TypeError as exc:
            raise InvalidArgument(f"malformed electrode catalog {path}: {exc}") from exc
        return cls(types)

    def brands(self) -> list[str]:
        return sorted(self._types)

    def lookup(self, electrode_id: str) -> ElectrodeType:
        """Resolve an electrode id or bare brand to its parameters.

        Raises:
            UnknownElectrodeType: if no brand matches the id's leading letters.
        """
        match = _ID_PATTERN.match(electrode_id.strip())
        if match is None:
            raise UnknownElectrodeType(f"cannot parse electrode id {electrode_id!r}")
        letters, digits = match.groups()
        brand = self._match_brand(letters.upper())
        if brand is None:
            raise UnknownElectrodeType(f"unknown electrode type {electrode_id!r}")
        etype = self._types[brand]
        if digits and int(digits) > 0:
            etype = replace(etype, contact_number=int(digits))
        return etype

    def _match_brand(self, letters: str) -> str | None:
        # Longest brand that prefixes the id wins
        candidates = [b for b in self._types if letters.startswith(b)]
        return max(candidates, key=len) if candidates else None

    def __contains__(self, electrode_id: str) -> bool:
        try:
            self.lookup(electrode_id)
        except UnknownElectrodeType:
            return False
        return True
