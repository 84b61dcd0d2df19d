"""
Tests for the One Euro filters and the landmark smoother.
"""

import numpy as np
import pytest


def step_response(beta):
    """First filtered value after a 0 -> 1 step."""
    from hybridtrack.filtering import OneEuroFilter

    f = OneEuroFilter(frequency=30.0, beta=beta)
    for _ in range(10):
        f.filter(0.0)
    return f.filter(1.0)


class TestOneEuroFilter:
    """Tests for the scalar filter."""

    def test_first_sample_passes_through(self):
        from hybridtrack.filtering import OneEuroFilter

        f = OneEuroFilter(frequency=30.0)
        assert not f.initialized
        assert f.filter(0.42) == 0.42
        assert f.initialized

    def test_constant_signal(self):
        """A constant input comes out exactly unchanged."""
        from hybridtrack.filtering import OneEuroFilter

        f = OneEuroFilter(frequency=30.0)
        outputs = [f.filter(0.5) for _ in range(50)]
        assert all(v == 0.5 for v in outputs)

    def test_smooths_jitter(self):
        from hybridtrack.filtering import OneEuroFilter

        rng = np.random.default_rng(0)
        raw = 0.5 + rng.normal(0, 0.01, 200)
        f = OneEuroFilter(frequency=30.0)
        smoothed = np.array([f.filter(v) for v in raw])

        assert np.std(smoothed[20:]) < np.std(raw[20:])

    def test_beta_reduces_lag(self):
        """A higher beta follows a fast step more closely."""
        assert step_response(beta=1.0) > step_response(beta=0.0)

    def test_beta_reduces_tracking_error(self):
        """Over a fast sine, a higher beta accumulates less error against the input."""
        from hybridtrack.filtering import OneEuroFilter

        t = np.arange(90) / 30.0
        raw = np.sin(2.0 * np.pi * 2.0 * t)

        totals = []
        for beta in (0.0, 0.5):
            f = OneEuroFilter(frequency=30.0, beta=beta)
            filtered = np.array([f.filter(v, ts) for ts, v in zip(t, raw)])
            totals.append(np.sum(np.abs(filtered - raw)))
        assert totals[1] < totals[0]

    def test_lower_min_cutoff_is_smoother(self):
        from hybridtrack.filtering import OneEuroFilter

        outputs = []
        for min_cutoff in (0.1, 5.0):
            f = OneEuroFilter(frequency=30.0, min_cutoff=min_cutoff, beta=0.0)
            f.filter(0.0)
            outputs.append(f.filter(1.0))
        assert outputs[0] < outputs[1]

    def test_reset(self):
        from hybridtrack.filtering import OneEuroFilter

        f = OneEuroFilter(frequency=30.0)
        f.filter(0.0, timestamp=0.0)
        f.filter(1.0, timestamp=0.01)
        assert f.frequency == pytest.approx(100.0)

        f.reset()
        assert not f.initialized
        assert f.frequency == 30.0
        assert f.filter(0.8) == 0.8

    def test_timestamps_update_frequency(self):
        from hybridtrack.filtering import OneEuroFilter

        f = OneEuroFilter(frequency=30.0)
        f.filter(0.0, timestamp=1.0)
        f.filter(0.0, timestamp=1.05)
        assert f.frequency == pytest.approx(20.0)

    def test_non_increasing_timestamp_keeps_frequency(self):
        from hybridtrack.filtering import OneEuroFilter

        f = OneEuroFilter(frequency=30.0)
        f.filter(0.0, timestamp=1.0)
        f.filter(0.1, timestamp=1.0)
        f.filter(0.2, timestamp=0.5)
        assert f.frequency == 30.0

    @pytest.mark.parametrize("kwargs", [
        {"frequency": 0.0},
        {"frequency": 30.0, "min_cutoff": 0.0},
        {"frequency": 30.0, "d_cutoff": -1.0},
        {"frequency": 30.0, "beta": -0.1},
    ])
    def test_invalid_parameters(self, kwargs):
        from hybridtrack.filtering import OneEuroFilter

        with pytest.raises(ValueError):
            OneEuroFilter(**kwargs)

    def test_from_preset(self):
        from hybridtrack.filtering import FILTER_PRESETS, OneEuroFilter

        f = OneEuroFilter.from_config(FILTER_PRESETS["stable"])
        assert f.min_cutoff == 0.5
        assert f.beta == 0.01

    def test_smoothing_factor_range(self):
        from hybridtrack.filtering import smoothing_factor

        alpha = smoothing_factor(1.0, 30.0)
        assert 0.0 < alpha < 1.0
        assert smoothing_factor(10.0, 30.0) > alpha


class TestMultiAxisFilters:
    """Tests for the 2D and 3D wrappers."""

    def test_2d(self):
        from hybridtrack.filtering import OneEuroFilter2D

        f = OneEuroFilter2D(frequency=30.0)
        assert f.filter(0.2, 0.3) == (0.2, 0.3)

    def test_3d(self):
        from hybridtrack.filtering import OneEuroFilter3D

        f = OneEuroFilter3D(frequency=30.0)
        assert len(f.filter(0.2, 0.3, -0.1, timestamp=0.0)) == 3

    def test_axes_independent(self):
        from hybridtrack.filtering import OneEuroFilter2D

        f = OneEuroFilter2D(frequency=30.0)
        f.filter(0.0, 0.5)
        x, y = f.filter(1.0, 0.5)
        assert 0.0 < x < 1.0
        assert y == 0.5

    def test_wrong_arity(self):
        from hybridtrack.filtering import OneEuroFilter2D

        with pytest.raises(ValueError):
            OneEuroFilter2D(frequency=30.0).filter(0.1, 0.2, 0.3)


class TestLandmarkSmoother:
    """Tests for PointSet smoothing."""

    def test_first_pointset_unchanged(self, landmarks):
        from hybridtrack.filtering import LandmarkSmoother

        smoother = LandmarkSmoother()
        np.testing.assert_array_equal(smoother.smooth(landmarks), landmarks)
        assert smoother.shape == (5, 2)

    def test_lost_resets(self, landmarks):
        from hybridtrack.filtering import LandmarkSmoother

        smoother = LandmarkSmoother()
        smoother.smooth(landmarks)
        assert smoother.smooth(None) is None

        moved = landmarks + 0.2
        np.testing.assert_array_equal(smoother.smooth(moved), moved)

    def test_lags_behind_jump(self, landmarks):
        from hybridtrack.filtering import LandmarkSmoother

        smoother = LandmarkSmoother()
        smoother.smooth(landmarks)
        out = smoother.smooth(landmarks + 0.1)
        assert (out < landmarks + 0.1).all()
        assert (out > landmarks).all()

    def test_cardinality_change_rebuilds(self, landmarks):
        from hybridtrack.filtering import LandmarkSmoother

        smoother = LandmarkSmoother()
        smoother.smooth(landmarks)
        three_d = np.column_stack([landmarks[:3], np.zeros(3)])
        np.testing.assert_array_equal(smoother.smooth(three_d), three_d)
        assert smoother.shape == (3, 3)

    def test_apply_to_frame_result(self, landmarks):
        from hybridtrack.filtering import LandmarkSmoother
        from hybridtrack.tracking import FrameResult, TrackingMethod

        result = FrameResult(
            points=landmarks, is_keyframe=True, error=0.0,
            processing_time=1.0, method=TrackingMethod.DETECTOR,
        )
        smoothed = LandmarkSmoother().apply(result)

        assert smoothed is not result
        assert smoothed.is_keyframe
        np.testing.assert_array_equal(smoothed.points, landmarks)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
