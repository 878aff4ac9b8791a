"""Session state: the ordered electrodes of one recording day.

Exactly one electrode is selected at any time and at least one electrode
always exists. Electrodes are addressed by 0-based position; each also
carries a ``handle`` that stays the same for its whole life, so a
rendering layer can key its drawables on it.

Example::

    session = Session.start("M01", ElectrodeCatalog.default())
    session.add_electrode()               # -> 1, now selected
    session.selected.set_depth("start", 10.0)
    removed = session.load_from(store.load_by_date(day))
"""

from __future__ import annotations

import datetime
import string

from ElectroNavLib.electrode_catalog import ElectrodeCatalog
from ElectroNavLib.electrode_model import Electrode, saturate_rating
from ElectroNavLib.errors import InvalidArgument, InvariantViolation, OutOfRange
from ElectroNavLib.history import ElectrodeRecord, SessionRecord


class Session:
    def __init__(
        self,
        electrodes: list[Electrode],
        catalog: ElectrodeCatalog,
        subject_id: str = "",
        date: datetime.date | None = None,
    ):
        if not electrodes:
            raise InvariantViolation("a session needs at least one electrode")
        self.subject_id = subject_id
        self.date = date or datetime.date.today()
        self.catalog = catalog
        self._electrodes = list(electrodes)
        self._selected_index = 0
        self._next_handle = 1
        for electrode in self._electrodes:
            electrode.handle = self._issue_handle()

    @classmethod
    def start(
        cls,
        subject_id: str,
        catalog: ElectrodeCatalog,
        electrode_id: str = "PLX24_A",
        date: datetime.date | None = None,
    ) -> Session:
        """New session holding one electrode of type ``electrode_id``."""
        electrode = Electrode.from_type(catalog.lookup(electrode_id), electrode_id)
        return cls([electrode], catalog, subject_id=subject_id, date=date)

    def _issue_handle(self) -> int:
        handle = self._next_handle
        self._next_handle += 1
        return handle

    @property
    def electrodes(self) -> tuple[Electrode, ...]:
        return tuple(self._electrodes)

    def __len__(self) -> int:
        return len(self._electrodes)

    @property
    def selected_index(self) -> int:
        return self._selected_index

    @property
    def selected(self) -> Electrode:
        return self._electrodes[self._selected_index]

    def electrode(self, index: int) -> Electrode:
        self._check_index(index)
        return self._electrodes[index]

    def select_electrode(self, index: int) -> Electrode:
        self._check_index(index)
        self._selected_index = index
        return self.selected

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not 0 <= index < len(self._electrodes):
            raise OutOfRange(f"electrode {index} outside 0..{len(self._electrodes) - 1}")

    def default_electrode_id(self) -> str:
        """Brand and contact count of the first electrode plus the next letter."""
        first = self._electrodes[0]
        letter = _electrode_letter(len(self._electrodes))
        return f"{first.brand}{first.contact_number}_{letter}"

    def add_electrode(self, electrode_id: str | None = None) -> int:
        """Append a new electrode, select it and return its index.

        The new electrode starts at depth 0 on the previous electrode's
        target, inheriting its guide length and quality colormap.

        Raises:
            UnknownElectrodeType: if ``electrode_id`` matches no catalog entry.
        """
        if electrode_id is None:
            electrode_id = self.default_electrode_id()
        electrode_type = self.catalog.lookup(electrode_id)
        previous = self._electrodes[-1]
        electrode = Electrode.from_type(
            electrode_type,
            electrode_id,
            target=previous.target,
            guide_length=previous.guide_length,
            quality_colormap=previous.quality_colormap,
        )
        electrode.handle = self._issue_handle()
        self._electrodes.append(electrode)
        self._selected_index = len(self._electrodes) - 1
        return self._selected_index

    def delete_electrode(self, index: int) -> int:
        """Remove an electrode and return its handle.

        Deleting the selected electrode selects the first one; otherwise the
        same electrode stays selected.

        Raises:
            InvariantViolation: if it is the only electrode.
            OutOfRange: if ``index`` is invalid.
        """
        self._check_index(index)
        if len(self._electrodes) == 1:
            raise InvariantViolation("cannot delete the only electrode")
        removed = self._electrodes.pop(index)
        if index == self._selected_index:
            self._selected_index = 0
        elif index < self._selected_index:
            self._selected_index -= 1
        return removed.handle

    def change_electrode_type(self, index: int, brand: str, contact_number: int | None = None) -> None:
        """Switch electrode ``index`` to another catalog type.

        The lookup happens first, so an unknown type leaves the electrode
        untouched.
        """
        self._check_index(index)
        electrode_type = self.catalog.lookup(brand)
        self._electrodes[index].apply_type(electrode_type, contact_number)

    # -------------------------------------------------------------------------
    # History records
    # -------------------------------------------------------------------------

    def to_record(self) -> SessionRecord:
        return SessionRecord(
            date=self.date,
            electrodes=[
                ElectrodeRecord(
                    id=e.id,
                    target_x=e.target[0],
                    target_y=e.target[1],
                    depth=e.current_depth,
                    guide_length=e.guide_length,
                    contact_data=list(e.contact_data),
                )
                for e in self._electrodes
            ],
        )

    def load_from(self, record: SessionRecord) -> list[int]:
        """Replace all electrodes with those of a stored session.

        Every record is resolved against the catalog before anything
        changes. Electrodes beyond the record's count are dropped; their
        handles are returned so the caller can dispose of their graphics.
        Surviving positions keep their handles. Start and microdrive depth
        reset to 0 while the total depth comes from the record. Stored
        ratings are saturated into the colormap each electrode carries.

        Raises:
            InvalidArgument: if the record has no electrodes.
            UnknownElectrodeType: if any electrode id is not in the catalog.
        """
        if not record.electrodes:
            raise InvalidArgument(f"session {record.date_string} has no electrodes")
        types = [self.catalog.lookup(r.id) for r in record.electrodes]

        electrodes = []
        for position, (r, electrode_type) in enumerate(zip(record.electrodes, types)):
            previous = self._electrodes[min(position, len(self._electrodes) - 1)]
            colormap = previous.quality_colormap
            n = electrode_type.contact_number
            ratings = [saturate_rating(v, len(colormap)) for v in r.contact_data[:n]]
            ratings += [0] * (n - len(ratings))
            electrode = Electrode(
                id=r.id,
                electrode_type=electrode_type,
                contact_data=ratings,
                target=(float(r.target_x), float(r.target_y)),
                current_depth=float(r.depth),
                guide_length=float(r.guide_length),
                quality_colormap=colormap,
            )
            if position < len(self._electrodes):
                electrode.handle = self._electrodes[position].handle
            else:
                electrode.handle = self._issue_handle()
            electrodes.append(electrode)

        removed = [e.handle for e in self._electrodes[len(electrodes) :]]
        self._electrodes = electrodes
        self._selected_index = 0
        self.date = record.date
        return removed


def _electrode_letter(position: int) -> str:
    letters = string.ascii_uppercase
    if position < len(letters):
        return letters[position]
    return letters[position // len(letters) - 1] + letters[position % len(letters)]
