"""Tests for detector masking."""

import warnings

import numpy as np
import pytest

from voxel_domain.exceptions import DetectorCoverageWarning
from voxel_domain.masking import DetectorMasker, dump_mask, mask_detectors
from voxel_domain.utils.config import Detector
from voxel_domain.volume import VolumeStore


def _volume(dims, fill=0):
    n = dims[0] * dims[1] * dims[2]
    return VolumeStore.from_media(np.full(n, fill, dtype=np.uint8), dims)


def _flagged(volume):
    """Set of (x, y, z) voxels carrying the detector flag."""
    zs, ys, xs = np.nonzero(volume.grid()["is_detector"])
    return set(zip(xs.tolist(), ys.tolist(), zs.tolist()))


def _reference_footprint(media, center, radius):
    """Voxels flagged by a plain float32 transcription of the sample search.

    Args:
        media: [z, y, x] medium grid
        center: (x, y, z) detector center
        radius: Detector radius, > 0
    """
    f32 = np.float32
    nz, ny, nx = media.shape
    padded = np.pad(media != 0, 1)
    cx, cy, cz = (f32(v) for v in center)
    w = f32(radius)
    one = f32(1.0)
    half = f32(0.5)
    reach2 = (w + one) * (w + one)
    d2max = (w + f32(1.7321)) * (w + f32(1.7321))
    corners = [(f32(a), f32(b), f32(c)) for a in (0, 1) for b in (0, 1) for c in (0, 1)]

    flagged = set()
    z = -w - one
    while z <= w + one:
        iz = z + cz
        y = -w - one
        while y <= w + one:
            iy = y + cy
            x = -w - one
            while x <= w + one:
                ix = x + cx
                in_grid = 0 <= ix < nx and 0 <= iy < ny and 0 <= iz < nz
                if in_grid and x * x + y * y + z * z <= reach2:
                    vx, vy, vz = int(ix), int(iy), int(iz)
                    d2s = []
                    for ox, oy, oz in corners:
                        rx = f32(vx) - cx + ox
                        ry = f32(vy) - cy + oy
                        rz = f32(vz) - cz + oz
                        d2s.append(rx * rx + ry * ry + rz * rz)
                    if max(d2s) <= d2max and min(d2s) < w * w:
                        px, py, pz = int(ix + one), int(iy + one), int(iz + one)
                        block = padded[pz - 1:pz + 2, py - 1:py + 2, px - 1:px + 2]
                        if padded[pz, py, px] and not block.all():
                            flagged.add((vx, vy, vz))
                x += half
            y += half
        z += half
    return flagged


def _stepped_volume():
    """Half-filled 12^3 grid with a raised block of a second medium."""
    volume = _volume((12, 12, 12))
    media = volume.grid()["medium"]
    media[:6] = 1
    media[6:8, 4:8, 4:8] = 2
    return volume


class TestExposure:
    """Tests for the 26-neighbour exposure test."""

    def test_padded_media_has_halo(self):
        """Test the padded copy adds one background layer on every face."""
        volume = _volume((3, 4, 5), fill=1)
        padded = DetectorMasker.padded_media(volume)

        assert padded.shape == (7, 6, 5)
        assert padded[1:-1, 1:-1, 1:-1].all()
        assert padded.sum() == 3 * 4 * 5

    def test_interior_voxel_not_exposed(self):
        """Test a voxel fully surrounded by medium is not exposed."""
        volume = _volume((5, 5, 5))
        volume.grid()["medium"][1:4, 1:4, 1:4] = 1
        exposed = DetectorMasker.exposed_voxels(DetectorMasker.padded_media(volume))[1:-1, 1:-1, 1:-1]

        assert not exposed[2, 2, 2]
        assert exposed[1:4, 1:4, 1:4].sum() == 26
        assert exposed.sum() == 26

    def test_diagonal_gap_exposes(self):
        """Test a background voxel at a corner neighbour exposes the voxel."""
        volume = _volume((3, 3, 3), fill=1)
        volume.grid()["medium"][0, 0, 0] = 0
        padded = DetectorMasker.padded_media(volume)
        exposed = DetectorMasker.exposed_voxels(padded)[1:-1, 1:-1, 1:-1]

        # Every voxel of a 3x3x3 grid touches the domain edge
        assert exposed.sum() == 26
        assert exposed[1, 1, 1]

    def test_domain_edge_exposes(self):
        """Test medium voxels on the grid boundary count as exposed."""
        volume = _volume((4, 4, 4), fill=1)
        exposed = DetectorMasker.exposed_voxels(DetectorMasker.padded_media(volume))[1:-1, 1:-1, 1:-1]

        assert exposed.sum() == 64 - 8
        assert not exposed[1:3, 1:3, 1:3].any()


class TestDetectorMasker:
    """Tests for detector footprint flagging."""

    def test_point_detector_on_surface_layer(self):
        """Test a zero-radius detector on a surface layer flags its cells."""
        volume = _volume((10, 10, 10))
        volume.grid()["medium"][0, :, :] = 1
        detector = Detector(center=[5, 5, 0], radius=0)

        result = mask_detectors(volume, [detector])

        assert result.coverage[0] >= 1
        assert volume.grid()["is_detector"][0, 5, 5]
        assert _flagged(volume) == {(4, 4, 0), (4, 5, 0), (5, 4, 0), (5, 5, 0)}
        assert result.coverage == [4]

    def test_point_detector_inside_cell(self):
        """Test a zero-radius detector inside a voxel flags only that voxel."""
        volume = _volume((10, 10, 10))
        volume.grid()["medium"][0, :, :] = 1

        result = mask_detectors(volume, [Detector(center=[5.5, 5.5, 0.5], radius=0)])
        assert _flagged(volume) == {(5, 5, 0)}
        assert result.coverage == [1]

    def test_single_exposed_voxel(self):
        """Test a detector on the face of the only medium voxel."""
        volume = _volume((3, 3, 3))
        volume.grid()["medium"][1, 1, 1] = 1
        detector = Detector(center=[1.5, 1.5, 1.0], radius=1)

        result = mask_detectors(volume, [detector])

        assert _flagged(volume) == {(1, 1, 1)}
        assert result.coverage == [volume.flag_count()] == [1]

    def test_face_of_medium_block(self):
        """Test a detector on a domain face flags the face voxels in range."""
        volume = _volume((5, 5, 5), fill=1)
        detector = Detector(center=[2.5, 2.5, 0.0], radius=1.5)

        result = mask_detectors(volume, [detector])

        expected = {(x, y, 0) for x in (1, 2, 3) for y in (1, 2, 3)}
        assert _flagged(volume) == expected
        assert result.coverage == [9]

    def test_detector_off_the_grid_warns(self):
        """Test a detector that never reaches the grid only warns."""
        volume = _volume((10, 10, 10), fill=1)
        detector = Detector(center=[50, 50, 50], radius=2)

        with pytest.warns(DetectorCoverageWarning):
            result = mask_detectors(volume, [detector])

        assert result.coverage == [0]
        assert result.uncovered_detectors == [0]
        assert volume.flag_count() == 0

    def test_buried_detector_warns(self):
        """Test a detector inside the medium with no exposed voxel in range warns."""
        volume = _volume((11, 11, 11), fill=1)
        with pytest.warns(DetectorCoverageWarning):
            result = mask_detectors(volume, [Detector(center=[5.5, 5.5, 5.5], radius=1)])
        assert result.coverage == [0]

    def test_background_voxels_never_flagged(self):
        """Test flags only land on medium voxels."""
        volume = _volume((6, 6, 6))
        volume.grid()["medium"][:3, :, :] = 1
        mask_detectors(volume, [Detector(center=[3, 3, 3], radius=2.5)])

        flags = volume.grid()["is_detector"]
        media = volume.grid()["medium"]
        assert flags.any()
        assert not (flags & (media == 0)).any()

    def test_idempotent(self):
        """Test masking twice gives the same flags as masking once."""
        volume = _volume((8, 8, 8))
        volume.grid()["medium"][:4, :, :] = 1
        detectors = [
            Detector(center=[4, 4, 4], radius=2),
            Detector(center=[1.3, 6.2, 4.0], radius=1.2),
        ]

        mask_detectors(volume, detectors)
        once = volume.detector_flags.copy()
        mask_detectors(volume, detectors)
        np.testing.assert_array_equal(volume.detector_flags, once)

    def test_order_independent(self):
        """Test detector order does not change the union of flags."""
        detectors = [
            Detector(center=[4, 4, 4], radius=2),
            Detector(center=[5, 5, 4], radius=1.5),
            Detector(center=[0, 0, 2], radius=3),
        ]

        forward = _volume((8, 8, 8))
        forward.grid()["medium"][:4, :, :] = 1
        mask_detectors(forward, detectors)

        backward = _volume((8, 8, 8))
        backward.grid()["medium"][:4, :, :] = 1
        mask_detectors(backward, detectors[::-1])

        np.testing.assert_array_equal(forward.detector_flags, backward.detector_flags)

    def test_overlapping_detectors(self):
        """Test coverage is per detector even when footprints overlap."""
        volume = _volume((5, 5, 5), fill=1)
        detector = Detector(center=[2.5, 2.5, 0.0], radius=1.5)

        result = mask_detectors(volume, [detector, detector])

        assert result.coverage == [9, 9]
        assert result.flagged_voxels == 9

    def test_media_untouched(self):
        """Test masking only changes detector flags."""
        volume = _volume((6, 6, 6))
        volume.grid()["medium"][:2, :, :] = 2
        before = volume.media.copy()
        mask_detectors(volume, [Detector(center=[3, 3, 2], radius=2)])
        np.testing.assert_array_equal(volume.media, before)


class TestSampleSearch:
    """Tests pinning the float32 half-voxel sample search."""

    def test_sqrt2_radius_on_surface_layer(self):
        """Test a radius just above sqrt(2) keeps the float32 result."""
        volume = _volume((10, 10, 10))
        volume.grid()["medium"][0] = 1
        detector = Detector(center=[5, 5, 0], radius=1.41421357)

        expected = _reference_footprint(volume.grid()["medium"], [5, 5, 0], 1.41421357)
        result = mask_detectors(volume, [detector])

        assert len(expected) == 12
        assert _flagged(volume) == expected
        assert result.coverage == [12]
        for corner in [(3, 3, 0), (3, 6, 0), (6, 3, 0), (6, 6, 0)]:
            assert corner not in expected

    @pytest.mark.parametrize("radius", [0.7071068, 1.41421357, 2.236068, 3.1622777, 2.5])
    @pytest.mark.parametrize("center", [
        [4.3, 5.7, 6.0],
        [5.7, 4.3, 7.9],
        [0.3, 11.6, 5.5],
        [7.99, 7.01, 8.0],
    ])
    def test_matches_float32_search(self, center, radius):
        """Test off-grid centers and irrational radii against the float32 search."""
        volume = _stepped_volume()
        expected = _reference_footprint(volume.grid()["medium"], center, radius)

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DetectorCoverageWarning)
            result = mask_detectors(volume, [Detector(center=center, radius=radius)])

        assert _flagged(volume) == expected
        assert result.coverage == [len(expected)]

    def test_radius_stored_as_float32(self):
        """Test the detector radius is rounded to float32 on construction."""
        detector = Detector(center=[0, 0, 0], radius=1.41421357)
        assert detector.radius.dtype == np.float32
        assert detector.radius == np.float32(1.41421357)


class TestDumpMask:
    """Tests for writing the mask file."""

    def test_dump_mask(self, tmp_path):
        """Test the dump holds packed bytes in storage order."""
        volume = _volume((5, 5, 5), fill=1)
        mask_detectors(volume, [Detector(center=[2.5, 2.5, 0.0], radius=1.5)])

        path = dump_mask(volume, tmp_path / "run.mask")
        raw = np.fromfile(path, dtype=np.uint8)

        assert raw.size == 125
        np.testing.assert_array_equal(raw, volume.to_packed())
        assert np.count_nonzero(raw & 0x80) == 9
        np.testing.assert_array_equal(raw & 0x7F, 1)
