# ElectroNav/ElectroNav/ElectroNavLib/history.py
"""Recording-session history stored as CSV.

One row per session date, wide format::

    Date, ID_1, X_1, Y_1, Depth_1, GuideLength_1, ID_2, X_2, ...

Per-contact quality ratings live in a sidecar file next to the history
file (``<stem>_quality.csv``), one row per rated contact.

Example::

    store = HistoryStore("/data/M01/M01_history.csv")
    store.save(session.to_record(), confirm_overwrite=lambda d: True)
    record = store.load_by_date(datetime.date(2016, 3, 14))
"""

from __future__ import annotations

import csv
import datetime
import os
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from ElectroNavLib.grid_model import GridModel

DATE_FORMAT = "%d-%b-%Y"
ELECTRODE_FIELDS = ("ID", "X", "Y", "Depth", "GuideLength")
QUALITY_HEADER = ["Date", "Electrode", "Contact", "Rating"]


def format_date(date: datetime.date) -> str:
    return date.strftime(DATE_FORMAT)


def parse_date(text: str) -> datetime.date:
    return datetime.datetime.strptime(text.strip(), DATE_FORMAT).date()


@dataclass
class ElectrodeRecord:
    """Persisted placement of one electrode."""

    id: str
    target_x: float  # grid-local mm
    target_y: float  # grid-local mm
    depth: float  # mm, total depth at the end of the session
    guide_length: float = 27.0  # mm
    contact_data: list[int] = field(default_factory=list)  # ratings, contact 1 first


@dataclass
class SessionRecord:
    """Everything persisted for one recording date."""

    date: datetime.date
    electrodes: list[ElectrodeRecord] = field(default_factory=list)

    @property
    def date_string(self) -> str:
        return format_date(self.date)


class HistoryStore:
    """Append-or-update store of SessionRecords keyed by date."""

    def __init__(self, path: str):
        self.path = path

    @property
    def quality_path(self) -> str:
        stem, _ = os.path.splitext(self.path)
        return f"{stem}_quality.csv"

    def dates(self) -> list[datetime.date]:
        return [r.date for r in self.load_all()]

    def load_all(self) -> list[SessionRecord]:
        """All records in the file, oldest first. A missing file is empty."""
        if not os.path.exists(self.path):
            return []
        records = []
        with open(self.path, newline="") as f:
            reader = csv.reader(f)
            header = next(reader, None)
            if header is None:
                return []
            for row in reader:
                if not row or not row[0].strip():
                    continue
                records.append(_record_from_row(row))
        ratings = self._load_quality()
        for record in records:
            for number, electrode in enumerate(record.electrodes, start=1):
                electrode.contact_data = ratings.get((record.date, number), [])
        records.sort(key=lambda r: r.date)
        return records

    def load_by_date(self, date: datetime.date) -> SessionRecord:
        """Raises KeyError if no session was stored for ``date``."""
        for record in self.load_all():
            if record.date == date:
                return record
        raise KeyError(f"no session recorded on {format_date(date)}")

    def save(
        self,
        record: SessionRecord,
        confirm_overwrite: Callable[[str], bool] | None = None,
    ) -> bool:
        """Add or replace the record for ``record.date``.

        An existing record for the same date is only replaced when
        ``confirm_overwrite(date_string)`` returns True.

        Returns:
            True if the record was written, False if the overwrite was
            declined or the files could not be written.
        """
        try:
            records = self.load_all()
        except (OSError, ValueError, IndexError) as exc:
            print(f"[ElectroNav] Could not read history file {self.path}: {exc}")
            return False

        existing = [r for r in records if r.date == record.date]
        if existing:
            if confirm_overwrite is None or not confirm_overwrite(record.date_string):
                print(
                    f"[ElectroNav] Session {record.date_string} already in "
                    f"{self.path}; not overwritten"
                )
                return False
            records = [r for r in records if r.date != record.date]

        records.append(record)
        records.sort(key=lambda r: r.date)
        try:
            self._write(records)
        except OSError as exc:
            print(f"[ElectroNav] Could not write history file {self.path}: {exc}")
            return False
        print(
            f"[ElectroNav] Saved session {record.date_string} "
            f"({len(record.electrodes)} electrodes) to {self.path}"
        )
        return True

    def _write(self, records: list[SessionRecord]) -> None:
        n_max = max((len(r.electrodes) for r in records), default=0)
        header = ["Date"]
        for e in range(1, n_max + 1):
            header += [f"{name}_{e}" for name in ELECTRODE_FIELDS]

        with open(self.path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(header)
            for record in records:
                row = [record.date_string]
                for electrode in record.electrodes:
                    row += [
                        electrode.id,
                        electrode.target_x,
                        electrode.target_y,
                        electrode.depth,
                        electrode.guide_length,
                    ]
                row += [""] * (len(header) - len(row))
                writer.writerow(row)

        with open(self.quality_path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(QUALITY_HEADER)
            for record in records:
                for number, electrode in enumerate(record.electrodes, start=1):
                    for contact, rating in enumerate(electrode.contact_data, start=1):
                        writer.writerow([record.date_string, number, contact, rating])

    def _load_quality(self) -> dict[tuple[datetime.date, int], list[int]]:
        if not os.path.exists(self.quality_path):
            return {}
        ratings: dict[tuple[datetime.date, int], dict[int, int]] = {}
        with open(self.quality_path, newline="") as f:
            for row in csv.DictReader(f):
                key = (parse_date(row["Date"]), int(row["Electrode"]))
                ratings.setdefault(key, {})[int(row["Contact"])] = int(row["Rating"])
        out = {}
        for key, by_contact in ratings.items():
            values = [0] * max(by_contact)
            for contact, rating in by_contact.items():
                values[contact - 1] = rating
            out[key] = values
        return out


def _record_from_row(row: list[str]) -> SessionRecord:
    date = parse_date(row[0])
    electrodes = []
    width = len(ELECTRODE_FIELDS)
    for start in range(1, len(row), width):
        cells = row[start : start + width]
        if len(cells) < width or not cells[0].strip():
            continue
        electrodes.append(
            ElectrodeRecord(
                id=cells[0].strip(),
                target_x=float(cells[1]),
                target_y=float(cells[2]),
                depth=float(cells[3]),
                guide_length=float(cells[4]),
            )
        )
    return SessionRecord(date=date, electrodes=electrodes)


# -----------------------------------------------------------------------------
# Grid usage summaries
# -----------------------------------------------------------------------------


def hole_frequency(records: list[SessionRecord], grid: GridModel) -> np.ndarray:
    """Number of sessions each hole was used in, in ``grid.holes()`` order.

    Targets that are not on a hole are ignored.
    """
    counts = np.zeros(len(grid.holes()), dtype=int)
    for record in records:
        used = {grid.hole_index(e.target_x, e.target_y) for e in record.electrodes}
        for index in used - {None}:
            counts[index] += 1
    return counts


def hole_recency(
    records: list[SessionRecord], grid: GridModel, today: datetime.date
) -> np.ndarray:
    """Days since each hole was last used, NaN for holes never used."""
    days = np.full(len(grid.holes()), np.nan)
    for record in records:
        age = (today - record.date).days
        for electrode in record.electrodes:
            index = grid.hole_index(electrode.target_x, electrode.target_y)
            if index is not None and not (days[index] <= age):
                days[index] = age
    return days
