# tests/test_geometry.py
import sys
import os

sys.path.insert(
    0, os.path.join(os.path.dirname(__file__), "..", "ElectroNav", "ElectroNav")
)

import numpy as np

from ElectroNavLib.electrode_catalog import ElectrodeType
from ElectroNavLib.electrode_model import Electrode
from ElectroNavLib.geometry import (
    Cylinder,
    crosshair_planes,
    cylinder_surface,
    electrode_color,
    electrode_cylinders,
    zoom_limits,
)
from ElectroNavLib.grid_model import GridModel
from ElectroNavLib.registration import RigidTransform


def _electrode():
    etype = ElectrodeType(
        brand="PLX",
        diameter=0.2,
        tip_length=2.0,
        contact_diameter=0.05,
        contact_spacing=0.5,
        default_contact_number=4,
        length=50.0,
    )
    e = Electrode.from_type(etype, guide_length=20.0)
    e.set_target(1.0, -1.0)
    e.set_total_depth(10.0)
    return e


def _grid():
    return GridModel(holes_per_column=(1, 3, 1), hole_diameter=0.6, width=8.0, guide_top=4.0)


class TestElectrodeCylinders:
    def test_kinds_and_count(self):
        cyls = electrode_cylinders(_electrode(), RigidTransform.identity(), _grid())
        kinds = [c.kind for c in cyls]
        assert kinds == ["shaft", "tip"] + ["contact"] * 4 + ["guide", "guide_top"]
        assert [c.contact for c in cyls if c.kind == "contact"] == [1, 2, 3, 4]

    def test_local_positions(self):
        cyls = {c.kind: c for c in electrode_cylinders(_electrode(), RigidTransform.identity(), _grid())}
        np.testing.assert_allclose(cyls["tip"].start, [1.0, -1.0, -10.0])
        np.testing.assert_allclose(cyls["tip"].end, [1.0, -1.0, -8.0])
        assert cyls["tip"].radius_start == 0.0
        np.testing.assert_allclose(cyls["shaft"].end, [1.0, -1.0, 40.0])
        np.testing.assert_allclose(cyls["guide"].start[2], 8.0)
        np.testing.assert_allclose(cyls["guide"].end[2], -12.0)
        assert cyls["guide"].radius_start == 0.3
        np.testing.assert_allclose(cyls["guide_top"].end[2], 12.0)
        assert cyls["guide_top"].radius_start == 0.6

    def test_contacts_follow_transform(self):
        xform = RigidTransform.from_translation_rotation((5, 0, -3))
        e = _electrode()
        contacts = [c for c in electrode_cylinders(e, xform, _grid()) if c.kind == "contact"]
        for cyl in contacts:
            np.testing.assert_allclose(cyl.start, e.contact_world_position(cyl.contact, xform))
            assert cyl.radius_start == 0.2 * 0.55

    def test_contact_color_tracks_rating(self):
        e = _electrode()
        e.rate_contact(2, 4)
        contacts = [c for c in electrode_cylinders(e, RigidTransform.identity(), _grid()) if c.kind == "contact"]
        assert contacts[1].color == (0.0, 1.0, 0.0)


class TestSurface:
    def test_rings(self):
        cyl = Cylinder("shaft", np.zeros(3), np.array([0.0, 0.0, 5.0]), 1.0, 1.0)
        x, y, z = cylinder_surface(cyl, n=20)
        assert x.shape == (2, 21)
        np.testing.assert_allclose(np.hypot(x, y), 1.0)
        np.testing.assert_allclose(z[0], 0.0)
        np.testing.assert_allclose(z[1], 5.0)

    def test_cone_tip(self):
        cyl = Cylinder("tip", np.zeros(3), np.array([3.0, 0.0, 0.0]), 0.0, 0.5)
        x, y, z = cylinder_surface(cyl, n=8)
        np.testing.assert_allclose(y[0], 0.0, atol=1e-12)
        np.testing.assert_allclose(np.hypot(y[1], z[1]), 0.5)


class TestViewHelpers:
    def test_zoom_limits(self):
        lim = zoom_limits([[0, 0, 0], [1, 2, 3]], margin=15)
        np.testing.assert_allclose(lim, [[-15, 16], [-15, 17], [-15, 18]])

    def test_crosshair(self):
        planes = crosshair_planes([1, 2, 3], [-10, -10, -10], [10, 10, 10])
        assert len(planes) == 3
        np.testing.assert_allclose(planes[0][:, 0], 1.0)
        np.testing.assert_allclose(planes[2][:, 2], 3.0)

    def test_electrode_colors_cycle(self):
        assert electrode_color(0) == electrode_color(5)
