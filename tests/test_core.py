"""
Tests for hybridtrack core modules and landmark I/O.
"""

import json

import numpy as np
import pytest


class TestImports:
    """Tests for the package surface."""

    def test_package_level_import(self):
        import hybridtrack

        assert hybridtrack.__version__
        assert hybridtrack.HybridScheduler is not None
        assert hybridtrack.LandmarkSmoother is not None

    def test_detector_protocol(self):
        from hybridtrack.core import Detector
        from hybridtrack.tracking import CallableDetector, ReplayDetector

        assert isinstance(CallableDetector(lambda image: None), Detector)
        assert isinstance(ReplayDetector({}), Detector)


class TestConfig:
    """Tests for configuration loading and overrides."""

    def test_defaults(self):
        from hybridtrack.core.config import TrackerConfig

        config = TrackerConfig()
        assert config.scheduler.keyframe_interval == 5
        assert config.scheduler.max_drift_error == 0.05
        assert config.scheduler.min_confidence == 0.7
        assert config.scheduler.adaptive_interval is True
        assert config.flow.window_size == 15
        assert config.flow.pyramid_levels == 3
        assert config.flow.max_iterations == 10
        assert config.flow.epsilon == 0.01
        assert config.filter.frequency == 30.0
        assert config.filter.min_cutoff == 1.0
        assert config.filter.beta == 0.007
        assert config.filter.d_cutoff == 1.0

    def test_from_dict_partial(self):
        """Missing keys fall back to defaults and unknown keys are ignored."""
        from hybridtrack.core.config import TrackerConfig

        config = TrackerConfig.from_dict({
            "scheduler": {"keyframe_interval": 4, "unused": 1},
            "smoothing_enabled": False,
        })
        assert config.scheduler.keyframe_interval == 4
        assert config.scheduler.max_drift_error == 0.05
        assert config.flow.backend == "numpy"
        assert config.smoothing_enabled is False

    def test_save_and_load(self, tmp_path):
        from hybridtrack.core.config import TrackerConfig, load_config

        config = TrackerConfig()
        config.flow.backend = "opencv"
        config.filter.beta = 0.02
        path = tmp_path / "config.json"
        config.save(path)

        loaded = load_config(path)
        assert loaded.flow.backend == "opencv"
        assert loaded.filter.beta == 0.02
        assert json.loads(path.read_text())["scheduler"]["keyframe_interval"] == 5

    def test_load_missing(self, tmp_path):
        from hybridtrack.core.config import load_config

        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")

    def test_load_invalid_values(self, tmp_path):
        from hybridtrack.core.config import load_config

        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"filter": {"min_cutoff": 0}}))
        with pytest.raises(ValueError):
            load_config(path)

    def test_example_config(self, tmp_path):
        from hybridtrack.core.config import create_example_config, load_config

        path = tmp_path / "example.json"
        create_example_config(path)
        assert load_config(path).to_dict() == create_example_config(path).to_dict()

    @pytest.mark.parametrize("field, value", [
        ("keyframe_interval", 0),
        ("max_drift_error", -0.1),
        ("min_confidence", 1.5),
        ("min_interval", 9),
    ])
    def test_scheduler_validation(self, field, value):
        from hybridtrack.core.config import SchedulerConfig

        with pytest.raises(ValueError):
            SchedulerConfig(**{field: value}).validate()

    def test_env_overrides(self):
        from hybridtrack.core.config import TrackerConfig, apply_env_overrides

        config = apply_env_overrides(TrackerConfig(), {
            "flow__backend": "opencv",
            "scheduler__keyframe_interval": "7",
            "scheduler__adaptive_interval": "false",
            "filter__beta": "0.05",
            "smoothing_enabled": "no",
        })
        assert config.flow.backend == "opencv"
        assert config.scheduler.keyframe_interval == 7
        assert config.scheduler.adaptive_interval is False
        assert config.filter.beta == 0.05
        assert config.smoothing_enabled is False

    def test_env_unknown_key(self):
        from hybridtrack.core.config import TrackerConfig, apply_env_overrides

        with pytest.raises(ValueError):
            apply_env_overrides(TrackerConfig(), {"flow__speed": "1"})
        with pytest.raises(ValueError):
            apply_env_overrides(TrackerConfig(), {"camera__fps": "1"})

    def test_env_invalid_value(self):
        from hybridtrack.core.config import TrackerConfig, apply_env_overrides

        with pytest.raises(ValueError):
            apply_env_overrides(TrackerConfig(), {"flow__window_size": "4"})

    def test_get_env_config(self, monkeypatch):
        from hybridtrack.core.config import get_env_config

        monkeypatch.setenv("HYBRIDTRACK_FLOW__BACKEND", "opencv")
        assert get_env_config()["flow__backend"] == "opencv"

    def test_filter_presets(self):
        from hybridtrack.core.config import FILTER_PRESETS, get_filter_preset

        preset = get_filter_preset("Stable")
        preset.beta = 1.0
        assert FILTER_PRESETS["stable"].beta == 0.01

        with pytest.raises(ValueError):
            get_filter_preset("jittery")


class TestFrame:
    """Tests for frames and pyramids."""

    def test_uint8_normalized(self):
        from hybridtrack.core.frame import Frame

        frame = Frame.from_image(np.full((20, 30), 255, dtype=np.uint8))
        assert frame.data.dtype == np.float32
        assert frame.width == 30
        assert frame.height == 20
        assert frame.data.max() == pytest.approx(1.0)

    def test_bgr_converted(self):
        from hybridtrack.core.frame import Frame

        image = np.zeros((16, 16, 3), dtype=np.uint8)
        image[:, :, 1] = 255
        frame = Frame.from_image(image)
        assert frame.shape == (16, 16)
        assert 0.0 < frame.data[0, 0] < 1.0

    def test_frame_passthrough(self):
        from hybridtrack.core.frame import Frame

        frame = Frame.from_image(np.zeros((8, 8), dtype=np.float32))
        assert Frame.from_image(frame) is frame

    def test_invalid_shape(self):
        from hybridtrack.core.frame import Frame

        with pytest.raises(ValueError):
            Frame.from_image(np.zeros((4, 4, 4, 4)))

    def test_to_uint8(self):
        from hybridtrack.core.frame import Frame

        frame = Frame(np.array([[0.0, 0.5, 1.0]], dtype=np.float32))
        np.testing.assert_array_equal(frame.to_uint8(), [[0, 128, 255]])

    def test_pyramid_levels(self):
        from hybridtrack.core.frame import Frame, build_pyramid

        pyramid = build_pyramid(Frame(np.zeros((64, 80), dtype=np.float32)), levels=3)
        assert len(pyramid) == 3
        assert [lvl.shape for lvl in pyramid] == [(64, 80), (32, 40), (16, 20)]
        assert pyramid.base is pyramid[0]

    def test_pyramid_truncated(self):
        """Small frames get fewer levels instead of an error."""
        from hybridtrack.core.frame import Frame, build_pyramid

        pyramid = build_pyramid(Frame(np.zeros((30, 30), dtype=np.float32)), levels=5)
        assert len(pyramid) == 2

        tiny = build_pyramid(Frame(np.zeros((8, 8), dtype=np.float32)), levels=3)
        assert len(tiny) == 1

    def test_downsample_averages(self):
        from hybridtrack.core.frame import Frame, downsample

        data = np.array([[0.0, 1.0], [1.0, 0.0]], dtype=np.float32)
        assert downsample(Frame(data)).data[0, 0] == pytest.approx(0.5)

    def test_gradients_of_ramp(self):
        """Normalized Sobel gradients recover the slope of a ramp."""
        from hybridtrack.core.frame import Frame, build_pyramid

        ramp = np.tile(np.arange(40, dtype=np.float32) / 100.0, (40, 1))
        pyramid = build_pyramid(Frame(ramp), levels=1)
        ix, iy = pyramid.gradients(0)

        np.testing.assert_allclose(ix[5:-5, 5:-5], 0.01, atol=1e-6)
        np.testing.assert_allclose(iy[5:-5, 5:-5], 0.0, atol=1e-6)
        assert pyramid.gradients(0)[0] is ix


class TestLandmarkIO:
    """Tests for landmark CSV files."""

    def test_parse_row(self):
        from hybridtrack.tracking import parse_landmark_row

        row = {"frame": "3", "point": "1", "x": "0.5", "y": "0.25", "z": ""}
        assert parse_landmark_row(row) == (3, 1, 0.5, 0.25, 0.0)

    def test_parse_incomplete_row(self):
        from hybridtrack.tracking import parse_landmark_row

        assert parse_landmark_row({"frame": "3", "point": "1", "x": "0.5"}) is None
        assert parse_landmark_row({"frame": "a", "point": "1", "x": "0", "y": "0"}) is None

    def test_write_and_read(self, tmp_path, landmarks):
        from hybridtrack.tracking import read_landmark_csv, write_landmark_csv

        path = tmp_path / "landmarks.csv"
        write_landmark_csv(path, {2: landmarks, 1: landmarks + 0.1})
        data = read_landmark_csv(path)

        assert list(data) == [1, 2]
        assert data[2].shape == (5, 3)
        np.testing.assert_allclose(data[2][:, :2], landmarks, atol=1e-6)
        np.testing.assert_allclose(data[2][:, 2], 0.0)

    def test_read_missing(self, tmp_path):
        from hybridtrack.tracking import read_landmark_csv

        with pytest.raises(FileNotFoundError):
            read_landmark_csv(tmp_path / "missing.csv")

    def test_writer_result_columns(self, tmp_path, landmarks):
        from hybridtrack.tracking import LandmarkCSVWriter

        path = tmp_path / "tracked.csv"
        with LandmarkCSVWriter(path, include_result=True) as writer:
            writer.write(1, landmarks, "detector", 0.0)
            writer.write(2, None, "none", 1.0)

        lines = path.read_text().splitlines()
        assert lines[0] == "frame,point,x,y,z,method,error"
        assert lines[1].endswith(",detector,0.000000")
        assert writer.rows_written == 5

    def test_writer_not_opened(self, tmp_path):
        from hybridtrack.tracking import LandmarkCSVWriter

        with pytest.raises(RuntimeError):
            LandmarkCSVWriter(tmp_path / "out.csv").write(1, [[0.1, 0.2]])


class TestDetectors:
    """Tests for detector adapters."""

    def test_replay(self, landmarks):
        from hybridtrack.tracking import ReplayDetector

        detector = ReplayDetector({3: landmarks, 7: landmarks})
        assert detector.frame_range == (3, 7)

        detector.set_frame(3)
        points = detector.detect(None)
        np.testing.assert_array_equal(points, landmarks)
        points[0, 0] = 99.0
        assert detector.detect(None)[0, 0] != 99.0

        detector.set_frame(4)
        assert detector.detect(None) is None
        assert detector.calls == 3

    def test_replay_from_csv(self, tmp_path, landmarks):
        from hybridtrack.tracking import ReplayDetector, write_landmark_csv

        path = tmp_path / "detections.csv"
        write_landmark_csv(path, {1: landmarks})
        detector = ReplayDetector.from_csv(path)
        detector.set_frame(1)
        assert detector.detect(None).shape == (5, 3)

    def test_callable_passes_confidence(self):
        from hybridtrack.tracking import CallableDetector

        seen = {}

        def detect(image, min_confidence):
            seen["confidence"] = min_confidence
            return None

        detector = CallableDetector(detect, min_confidence=0.9, pass_confidence=True)
        assert detector.detect(np.zeros((4, 4))) is None
        assert seen["confidence"] == 0.9


class TestVideo:
    """Tests for the video reader."""

    def test_frame_interval(self):
        from hybridtrack.core.video import VideoProperties

        props = VideoProperties(width=640, height=480, fps=25.0, frame_count=100)
        assert props.frame_interval == pytest.approx(0.04)
        assert VideoProperties(640, 480, 0.0, 0).frame_interval == 0.0

    def test_frame_range(self, tmp_path):
        """Frames 3-5 of a 6 frame clip come back numbered with timestamps."""
        import cv2
        from hybridtrack.core.video import VideoReader

        path = tmp_path / "clip.avi"
        writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 25.0, (32, 24))
        if not writer.isOpened():
            pytest.skip("MJPG video writing not supported by this OpenCV build")
        for i in range(6):
            writer.write(np.full((24, 32, 3), i * 40, dtype=np.uint8))
        writer.release()

        with VideoReader(path, first_frame=3, last_frame=5) as reader:
            frames = list(reader)
            assert reader.properties.width == 32
            assert reader.timestamp(3) == pytest.approx(0.08)

        assert [num for num, _ in frames] == [3, 4, 5]
        assert frames[0][1].shape == (24, 32, 3)
        assert abs(int(frames[0][1].mean()) - 80) < 10

    def test_missing_file(self, tmp_path):
        from hybridtrack.core.video import VideoReader

        with pytest.raises(FileNotFoundError):
            VideoReader(tmp_path / "missing.mp4").open()

    def test_properties_before_open(self, tmp_path):
        from hybridtrack.core.video import VideoReader

        with pytest.raises(RuntimeError):
            VideoReader(tmp_path / "missing.mp4").properties


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
