# tests/test_session.py
import sys
import os
import datetime

sys.path.insert(
    0, os.path.join(os.path.dirname(__file__), "..", "ElectroNav", "ElectroNav")
)

import pytest

from ElectroNavLib.electrode_catalog import ElectrodeCatalog
from ElectroNavLib.errors import InvalidArgument, InvariantViolation, OutOfRange, UnknownElectrodeType
from ElectroNavLib.history import ElectrodeRecord, SessionRecord
from ElectroNavLib.session import Session


def _session(n=1):
    session = Session.start("M01", ElectrodeCatalog.default(), "PLX24_A")
    for _ in range(n - 1):
        session.add_electrode()
    return session


class TestStart:
    def test_one_electrode(self):
        session = _session()
        assert len(session) == 1
        assert session.selected_index == 0
        assert session.selected.id == "PLX24_A"
        assert session.selected.contact_number == 24

    def test_unknown_type(self):
        with pytest.raises(UnknownElectrodeType):
            Session.start("M01", ElectrodeCatalog.default(), "QQ1")


class TestAddDelete:
    def test_add_selects_new(self):
        session = _session()
        session.selected.guide_length = 30.0
        index = session.add_electrode()
        assert index == 1
        assert session.selected_index == 1
        assert session.selected.id == "PLX24_B"
        assert session.selected.guide_length == 30.0
        assert session.selected.current_depth == 0.0

    def test_handles_are_unique(self):
        session = _session(3)
        handles = [e.handle for e in session.electrodes]
        assert len(set(handles)) == 3

    def test_delete_only_electrode(self):
        session = _session()
        before = session.electrodes
        with pytest.raises(InvariantViolation):
            session.delete_electrode(0)
        assert session.electrodes == before
        assert len(session) == 1

    def test_delete_selected_selects_first(self):
        session = _session(3)
        session.select_electrode(2)
        session.delete_electrode(2)
        assert session.selected_index == 0

    def test_delete_before_selected_keeps_selection(self):
        session = _session(3)
        target = session.select_electrode(2)
        session.delete_electrode(0)
        assert session.selected is target
        assert session.selected_index == 1

    def test_delete_returns_handle(self):
        session = _session(2)
        handle = session.electrode(1).handle
        assert session.delete_electrode(1) == handle

    def test_delete_out_of_range(self):
        session = _session(2)
        with pytest.raises(OutOfRange):
            session.delete_electrode(2)
        assert len(session) == 2


class TestSelect:
    def test_out_of_range(self):
        session = _session(2)
        with pytest.raises(OutOfRange):
            session.select_electrode(5)
        with pytest.raises(OutOfRange):
            session.select_electrode(-1)
        assert session.selected_index == 1


class TestChangeType:
    def test_change(self):
        session = _session()
        session.change_electrode_type(0, "NN")
        assert session.selected.id == "NN32"

    def test_unknown_keeps_parameters(self):
        session = _session()
        session.selected.rate_contact(3, 2)
        with pytest.raises(UnknownElectrodeType):
            session.change_electrode_type(0, "ZZZ")
        assert session.selected.id == "PLX24_A"
        assert session.selected.contact_data[2] == 2


class TestRecords:
    def _record(self, n):
        return SessionRecord(
            date=datetime.date(2016, 3, 14),
            electrodes=[
                ElectrodeRecord(f"PLX16_{c}", 1.0, -2.0, 8.5 + i, 25.0, [1, 2, 3])
                for i, c in enumerate("ABC"[:n])
            ],
        )

    def test_load_from_drops_surplus(self):
        session = _session(3)
        handles = [e.handle for e in session.electrodes]
        removed = session.load_from(self._record(1))
        assert removed == handles[1:]
        assert len(session) == 1
        assert session.selected.handle == handles[0]

    def test_load_from_sets_state(self):
        session = _session()
        session.selected.set_depth("start", 4.0)
        session.load_from(self._record(2))
        e = session.electrode(1)
        assert e.target == (1.0, -2.0)
        assert e.current_depth == 9.5
        assert e.start_depth == 0.0 and e.microdrive_depth == 0.0
        assert e.contact_number == 16
        assert e.contact_data[:4] == [1, 2, 3, 0]
        assert session.date == datetime.date(2016, 3, 14)

    def test_load_from_is_atomic(self):
        session = _session(2)
        record = self._record(2)
        record.electrodes[1].id = "ZZZ4"
        before = session.electrodes
        with pytest.raises(UnknownElectrodeType):
            session.load_from(record)
        assert session.electrodes == before

    def test_load_from_saturates_ratings(self):
        session = _session()
        record = SessionRecord(
            date=datetime.date(2016, 3, 14),
            electrodes=[ElectrodeRecord("PLX24_A", 0.0, 0.0, 5.0, 27.0, [9, -1, 2.5])],
        )
        session.load_from(record)
        e = session.selected
        assert e.contact_data[:3] == [4, 0, 3]
        assert e.quality_color(1) == (0.0, 1.0, 0.0)
        assert e.quality_color(2) == (0.0, 0.0, 0.0)

    def test_load_from_new_electrodes_share_colormap(self):
        session = _session()
        colormap = ((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0))
        session.selected.quality_colormap = colormap
        record = self._record(3)
        record.electrodes[2].contact_data = [5, 1]
        session.load_from(record)
        assert [e.quality_colormap for e in session.electrodes] == [colormap] * 3
        assert session.electrode(2).contact_data[:2] == [2, 1]

    def test_load_from_empty_record(self):
        session = _session()
        with pytest.raises(InvalidArgument):
            session.load_from(SessionRecord(date=datetime.date(2016, 3, 14)))

    def test_to_record(self):
        session = _session()
        session.selected.set_target(1.0, 2.0)
        session.selected.set_depth("start", 3.0)
        record = session.to_record()
        assert record.electrodes[0].id == "PLX24_A"
        assert record.electrodes[0].depth == 3.0
        assert len(record.electrodes[0].contact_data) == 24
