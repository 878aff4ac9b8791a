# tests/test_volume.py
import sys
import os

sys.path.insert(
    0, os.path.join(os.path.dirname(__file__), "..", "ElectroNav", "ElectroNav")
)

import nibabel as nib
import numpy as np
import pytest

from ElectroNavLib.errors import InvalidArgument
from ElectroNavLib.volume import (
    NEUROMAPS,
    UNFOLDED,
    LayerStack,
    LoadedVolume,
    NiftiVolumeLoader,
    VolumeLayer,
    VolumeLoader,
    loader_for,
    normalize_intensity,
)


def _loaded(samples, voxel=1.0, origin=(5.0, 5.0, 5.0)):
    voxel_dim = np.full(3, voxel)
    origin_vox = np.asarray(origin, dtype=float)
    return LoadedVolume(
        samples=np.asarray(samples, dtype=float),
        voxel_dim=voxel_dim,
        origin_vox=origin_vox,
        affine_offset_mm=-origin_vox * voxel_dim,
    )


class TestNormalize:
    def test_range(self):
        data = normalize_intensity(np.array([0.0, 500.0, 1000.0]))
        assert data.min() == 0.0
        assert data.max() < 1.0
        assert data[2] > 0.999

    def test_clip_above_10000(self):
        data = normalize_intensity(np.array([0.0, 5000.0, 10000.0, 50000.0]))
        assert data[2] == data[3]
        assert data[1] == pytest.approx(0.5 * (1 - 1e-4))

    def test_constant_volume(self):
        np.testing.assert_array_equal(normalize_intensity(np.ones(4)), np.zeros(4))

    def test_empty(self):
        with pytest.raises(InvalidArgument):
            normalize_intensity(np.array([]))


class TestAtlasConvention:
    def test_fold_hemispheres(self):
        labels = np.array([0, 5, 1005, 1000])
        np.testing.assert_array_equal(NEUROMAPS.fold(labels), [0, 5, 5, 1000])

    def test_unfolded(self):
        labels = np.array([0, 1005])
        np.testing.assert_array_equal(UNFOLDED.fold(labels), labels)


class TestVolumeLayer:
    def test_native_from_loaded(self):
        samples = np.arange(1000, dtype=float).reshape(10, 10, 10)
        layer = VolumeLayer.from_loaded(_loaded(samples), "native")
        assert layer.alpha is None
        assert 0.0 <= layer.samples.min() and layer.samples.max() < 1.0

    def test_atlas_alpha_and_folding(self):
        samples = np.zeros((10, 10, 10))
        samples[1, 1, 1] = 1012
        samples[2, 2, 2] = 12
        layer = VolumeLayer.from_loaded(_loaded(samples), "atlas")
        assert layer.samples[1, 1, 1] == 12
        assert layer.alpha[1, 1, 1] == 1.0
        assert layer.alpha[0, 0, 0] == 0.0

    def test_voxel_index_and_bounds(self):
        layer = VolumeLayer.from_loaded(_loaded(np.zeros((10, 10, 10)), voxel=0.5), "native")
        np.testing.assert_array_equal(layer.voxel_index([0.0, 0.0, 0.0]), [5, 5, 5])
        np.testing.assert_array_equal(layer.voxel_index([1.0, -1.0, 2.0]), [7, 3, 9])
        np.testing.assert_allclose(layer.lower_bound_mm, [-2.5, -2.5, -2.5])
        np.testing.assert_allclose(layer.upper_bound_mm, [2.5, 2.5, 2.5])
        assert layer.contains([9, 0, 9])
        assert not layer.contains([10, 0, 0])
        assert not layer.contains([0, -1, 0])

    def test_world_from_voxel_inverts_index(self):
        layer = VolumeLayer.from_loaded(_loaded(np.zeros((10, 10, 10)), voxel=0.5), "native")
        np.testing.assert_array_equal(layer.voxel_index(layer.world_from_voxel([3, 4, 8])), [3, 4, 8])

    def test_label_at(self):
        samples = np.zeros((10, 10, 10))
        samples[5, 5, 5] = 7
        layer = VolumeLayer.from_loaded(_loaded(samples), "atlas")
        assert layer.label_at([0.0, 0.0, 0.0]) == 7
        assert layer.label_at([100.0, 0.0, 0.0]) == 0

    def test_unknown_role(self):
        with pytest.raises(InvalidArgument):
            VolumeLayer.from_loaded(_loaded(np.zeros((2, 2, 2))), "overlay")


class TestLayerStack:
    def test_first_layer_must_be_native(self):
        atlas = VolumeLayer.from_loaded(_loaded(np.zeros((4, 4, 4))), "atlas")
        with pytest.raises(InvalidArgument):
            LayerStack([atlas])

    def test_voxel_mismatch_warns(self, capsys):
        native = VolumeLayer.from_loaded(_loaded(np.zeros((4, 4, 4)), voxel=0.5), "native")
        atlas = VolumeLayer.from_loaded(_loaded(np.zeros((4, 4, 4)), voxel=1.0), "atlas")
        stack = LayerStack([native, atlas])
        assert len(stack) == 2
        assert stack.atlas() is atlas
        assert "does not match" in capsys.readouterr().out


class TestNiftiLoader:
    def test_protocol(self):
        assert isinstance(NiftiVolumeLoader(), VolumeLoader)
        assert isinstance(loader_for("/data/T1.nii.gz"), NiftiVolumeLoader)
        with pytest.raises(InvalidArgument):
            loader_for("/data/T1.mgz")

    def test_round_trip(self, tmp_path):
        data = np.random.default_rng(0).random((8, 9, 10)).astype(np.float32)
        affine = np.diag([0.5, 0.5, 0.5, 1.0])
        affine[:3, 3] = [-2.0, -2.25, -2.5]
        path = str(tmp_path / "T1.nii.gz")
        nib.save(nib.Nifti1Image(data, affine), path)

        volume = NiftiVolumeLoader().load(path)
        assert volume.dim_vox == (8, 9, 10)
        np.testing.assert_allclose(volume.voxel_dim, [0.5, 0.5, 0.5])
        np.testing.assert_allclose(volume.origin_vox, [4.0, 4.5, 5.0])
        np.testing.assert_allclose(volume.affine_offset_mm, [-2.0, -2.25, -2.5])
        np.testing.assert_allclose(volume.samples, data, rtol=1e-6)

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidArgument):
            NiftiVolumeLoader().load(str(tmp_path / "none.nii"))
