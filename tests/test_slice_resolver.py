# tests/test_slice_resolver.py
import sys
import os

sys.path.insert(
    0, os.path.join(os.path.dirname(__file__), "..", "ElectroNav", "ElectroNav")
)

import numpy as np
import pytest

from ElectroNavLib.slice_resolver import (
    composite_slices,
    gaussian_kernel,
    match_shape,
    resolve_slice,
    resolve_views,
    smooth_slice,
)
from ElectroNavLib.volume import VolumeLayer

# Volume dims deliberately unequal so orientation mistakes show up
DIMS = (6, 7, 8)


def _layer(role="native", samples=None, alpha=None, **kwargs):
    if samples is None:
        samples = np.arange(np.prod(DIMS), dtype=float).reshape(DIMS)
    origin = np.array([3.0, 3.0, 4.0])
    return VolumeLayer(
        name=role,
        role=role,
        samples=samples,
        voxel_dim=np.ones(3),
        origin_vox=origin,
        affine_offset_mm=-origin,
        alpha=alpha,
        **kwargs,
    )


class TestResolveSlice:
    def test_axial_slab(self):
        layer = _layer()
        desc = resolve_slice(layer, [0.0, 0.0, 1.0], axis=2)
        assert desc.valid
        np.testing.assert_array_equal(desc.index_vox, [3, 3, 5])
        np.testing.assert_array_equal(desc.data, layer.samples[:, :, 5])

    def test_sagittal_slab_is_transposed(self):
        layer = _layer()
        desc = resolve_slice(layer, [1.0, 0.0, 0.0], axis=0)
        assert desc.data.shape == (8, 7)
        np.testing.assert_array_equal(desc.data, layer.samples[4, :, :].T)

    def test_coronal_slab_is_transposed(self):
        layer = _layer()
        desc = resolve_slice(layer, [0.0, -2.0, 0.0], axis=1)
        assert desc.data.shape == (8, 6)
        np.testing.assert_array_equal(desc.data, layer.samples[:, 1, :].T)

    def test_boundary_voxel_is_valid(self):
        layer = _layer()
        # index (5, 6, 7) is the last voxel on every axis; (0, 0, 0) the first
        assert resolve_slice(layer, [2.0, 3.0, 3.0], axis=2).valid
        assert resolve_slice(layer, [-3.0, -3.0, -4.0], axis=2).valid

    @pytest.mark.parametrize(
        "point, axis, shape",
        [
            ([3.0, 0.0, 0.0], 0, (8, 7)),
            ([0.0, -4.0, 0.0], 1, (8, 6)),
            ([0.0, 0.0, 4.0], 2, (6, 7)),
            ([3.0, 0.0, 0.0], 2, (6, 7)),
        ],
    )
    def test_one_voxel_outside(self, point, axis, shape):
        desc = resolve_slice(_layer(), point, axis)
        assert not desc.valid
        assert desc.data.shape == shape
        assert not desc.data.any()

    def test_out_of_volume_is_logged(self, capsys):
        resolve_slice(_layer(), [100.0, 0.0, 0.0], axis=2)
        assert "out of volume" in capsys.readouterr().out

    def test_corners_on_plane(self):
        desc = resolve_slice(_layer(), [0.5, 1.0, -1.0], axis=1)
        np.testing.assert_allclose(desc.corners_mm[:, 1], 1.0)
        assert desc.corners_mm[:, 0].min() == -3.0
        assert desc.corners_mm[:, 2].max() == 4.0
        assert desc.plane == "coronal"

    def test_views_share_index(self):
        descs = resolve_views(_layer(), [0.0, 0.0, 0.0])
        assert [d.axis for d in descs] == [0, 1, 2]
        for d in descs:
            np.testing.assert_array_equal(d.index_vox, [3, 3, 4])


class TestSmoothing:
    def test_kernel_normalised(self):
        k = gaussian_kernel(5, 1.0)
        assert k.shape == (5, 5)
        assert k.sum() == pytest.approx(1.0)
        assert k[2, 2] == k.max()

    def test_zero_sigma_is_identity(self):
        slab = np.random.default_rng(0).random((6, 6))
        assert smooth_slice(slab, 0.0) is slab

    def test_alpha_becomes_fractional(self):
        alpha = np.zeros(DIMS)
        alpha[2:4, 2:5, :] = 1.0
        layer = _layer("atlas", samples=alpha.copy(), alpha=alpha, sigma=1.0)
        desc = resolve_slice(layer, [0.0, 0.0, 0.0], axis=2)
        edge = desc.alpha[1, 3]
        assert 0.0 < edge < 1.0
        assert desc.alpha.max() < 1.0

    def test_smoothing_skipped_for_invalid(self):
        layer = _layer(sigma=2.0)
        desc = resolve_slice(layer, [50.0, 0.0, 0.0], axis=2)
        assert not desc.data.any()


class TestComposite:
    def test_native_only_is_grey(self):
        native = _layer(samples=np.full(DIMS, 0.25))
        rgb = composite_slices([native], [resolve_slice(native, [0, 0, 0], 2)])
        assert rgb.shape == (6, 7, 3)
        np.testing.assert_allclose(rgb, 0.25)

    def test_overlay_blends_by_opacity_and_alpha(self):
        native = _layer(samples=np.zeros(DIMS))
        alpha = np.zeros(DIMS)
        alpha[0, 0, :] = 1.0
        overlay = _layer("atlas", samples=alpha.copy(), alpha=alpha, opacity=0.5, color=(1.0, 0.0, 0.0))
        layers = [native, overlay]
        rgb = composite_slices(layers, [resolve_slice(l, [0, 0, 0], 2) for l in layers])
        np.testing.assert_allclose(rgb[0, 0], [0.5, 0.0, 0.0])
        np.testing.assert_allclose(rgb[1, 1], [0.0, 0.0, 0.0])

    def test_hidden_layer_ignored(self):
        native = _layer(samples=np.zeros(DIMS))
        overlay = _layer("structure", samples=np.ones(DIMS), alpha=np.ones(DIMS), visible=False)
        layers = [native, overlay]
        rgb = composite_slices(layers, [resolve_slice(l, [0, 0, 0], 2) for l in layers])
        assert not rgb.any()

    def test_match_shape(self):
        slab = np.arange(4.0).reshape(2, 2)
        out = match_shape(slab, (4, 5))
        assert out.shape == (4, 5)
        assert out[0, 0] == 0.0 and out[3, 4] == 3.0
