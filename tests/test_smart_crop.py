"""
Tests for the smart_crop models, configuration and per-frame helpers.

Run with: pytest tests/test_smart_crop.py -v
"""

import logging

import pytest
import numpy as np
from pydantic import ValidationError

from vidcrop.core.exceptions import CutDetectionError, RenderError
from vidcrop.core.smart_crop.models import (
    AspectRatio,
    BoundingBox,
    CropArea,
    DetectedObject,
    ResizeCrop,
    SingleCrop,
    StackedCrop,
    VideoMeta,
    crop_result_adapter,
    single,
)
from vidcrop.core.smart_crop.config import (
    SmartCropConfig,
    TargetObject,
    FAST_CONFIG,
    STABLE_CONFIG,
    SPORTS_CONFIG,
)
from vidcrop.core.smart_crop.config_factory import get_config_from_env, get_preset_config
from vidcrop.core.smart_crop.similarity import (
    is_crop_class_same,
    is_crop_similar,
    object_count_class,
    resolve_crop_choice,
    select_closest_crop,
)
from vidcrop.core.smart_crop.interpolation import interpolate_crop_results
from vidcrop.core.smart_crop.crop_planner import (
    calculate_crop,
    extract_objects_above_threshold,
    is_graphic_area_above_threshold,
    match_target_detections,
    predict_current_box,
)
from vidcrop.core.smart_crop.cut_detector import CutDetector
from vidcrop.core.smart_crop.renderer import FrameRenderer


def stacked(top, bottom) -> StackedCrop:
    return StackedCrop(
        top=CropArea(x=top[0], y=top[1], width=top[2], height=top[3]),
        bottom=CropArea(x=bottom[0], y=bottom[1], width=bottom[2], height=bottom[3]),
    )


def resize(width=1920, height=1080) -> ResizeCrop:
    return ResizeCrop(area=CropArea(x=0, y=0, width=width, height=height))


def detection(name, x, y, w, h, confidence=0.9) -> DetectedObject:
    return DetectedObject(
        name=name,
        confidence=confidence,
        bbox=BoundingBox(x=x, y=y, width=w, height=h),
    )


class TestAspectRatio:
    """Tests for AspectRatio model."""

    def test_ratio_calculation(self):
        ar = AspectRatio(width=9, height=16)
        assert ar.ratio == 9 / 16

    def test_from_string_colon(self):
        ar = AspectRatio.from_string("9:16")
        assert ar.width == 9
        assert ar.height == 16

    def test_from_string_x(self):
        ar = AspectRatio.from_string("4x5")
        assert (ar.width, ar.height) == (4, 5)

    def test_from_string_invalid(self):
        with pytest.raises(ValueError):
            AspectRatio.from_string("916")

    def test_str_representation(self):
        assert str(AspectRatio(width=9, height=16)) == "9:16"


class TestCropArea:
    """Tests for CropArea model."""

    def test_center(self):
        area = CropArea(x=100, y=50, width=200, height=100)
        assert area.cx == 200
        assert area.cy == 100

    def test_negative_size_rejected(self):
        with pytest.raises(ValidationError):
            CropArea(x=0, y=0, width=-1, height=10)

    def test_is_frozen(self):
        area = CropArea(x=0, y=0, width=10, height=10)
        with pytest.raises(ValidationError):
            area.x = 5

    def test_within_percentage_uses_frame_width_for_all_components(self):
        a = CropArea(x=100, y=100, width=800, height=600)
        b = CropArea(x=150, y=150, width=850, height=650)
        # 10% of 1920 = 192px tolerance for x, y, width and height alike
        assert a.is_within_percentage(b, 1920, 10)
        assert not a.is_within_percentage(b, 1920, 2)

    def test_negative_percentage_treated_as_zero(self):
        a = CropArea(x=100, y=100, width=800, height=600)
        assert a.is_within_percentage(a, 1920, -5)
        assert not a.is_within_percentage(
            CropArea(x=101, y=100, width=800, height=600), 1920, -5
        )

    def test_clamp_keeps_area_inside_frame(self):
        area = CropArea(x=-50, y=20, width=300, height=2000).clamp(1920, 1080)
        assert area.x == 0
        assert area.y == 0
        assert area.height == 1080
        assert area.width == 300


class TestCropResult:
    """Tests for the CropResult tagged union."""

    def test_kind_tags(self):
        assert single(0, 0, 10, 10).kind == "single"
        assert stacked((0, 0, 1, 1), (1, 1, 1, 1)).kind == "stacked"
        assert resize().kind == "resize"

    def test_json_roundtrip_restores_variant(self):
        crop = stacked((0, 0, 100, 50), (200, 50, 100, 50))
        restored = crop_result_adapter.validate_json(crop.model_dump_json())
        assert isinstance(restored, StackedCrop)
        assert restored == crop

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            crop_result_adapter.validate_python(
                {"kind": "zoom", "area": {"x": 0, "y": 0, "width": 1, "height": 1}}
            )

    def test_variants_are_hashable(self):
        assert len({single(0, 0, 10, 10), single(0, 0, 10, 10)}) == 1


class TestBoundingBox:
    """Tests for BoundingBox model."""

    def test_properties(self):
        bbox = BoundingBox(x=100, y=100, width=200, height=100)
        assert bbox.cx == 200
        assert bbox.cy == 150
        assert bbox.x2 == 300
        assert bbox.y2 == 200
        assert bbox.area == 20000

    def test_union(self):
        union = BoundingBox.union(
            [
                BoundingBox(x=0, y=0, width=100, height=100),
                BoundingBox(x=50, y=50, width=100, height=100),
            ]
        )
        assert (union.x, union.y, union.width, union.height) == (0, 0, 150, 150)

    def test_union_empty(self):
        assert BoundingBox.union([]) is None


class TestVideoMeta:
    def test_defaults(self):
        meta = VideoMeta(input_path="in.mp4", width=1920, height=1080, fps=30.0)
        assert meta.output_path is None
        assert meta.frames_read == 0
        assert meta.frames_written == 0


class TestSmartCropConfig:
    """Tests for SmartCropConfig."""

    def test_defaults(self):
        config = SmartCropConfig()
        assert config.target_object == TargetObject.FACE
        assert config.object_prob_threshold == 0.7
        assert config.object_area_threshold == 0.0025
        assert config.smooth_percentage == 7.5
        assert config.smooth_duration == 1.0
        assert config.selection_min_run_frames == 8
        assert config.use_simple_smoothing is False
        assert config.cut_similarity == 0.4
        assert config.cut_start == 0.8
        assert config.graphic_threshold == 0.009
        assert config.aspect_ratio == AspectRatio(width=9, height=16)
        assert config.headless is True

    def test_smooth_duration_frames(self):
        config = SmartCropConfig(smooth_duration=1.0)
        assert config.smooth_duration_frames(30.0) == 30
        assert config.smooth_duration_frames(29.97) == 30
        assert SmartCropConfig(smooth_duration=0.5).smooth_duration_frames(25) == 12

    def test_zero_duration_disables_smoothing(self):
        assert SmartCropConfig(smooth_duration=0).smooth_duration_frames(30) == 0
        assert SmartCropConfig(smooth_duration=-1).smooth_duration_frames(30) == 0
        assert SmartCropConfig().smooth_duration_frames(0) == 0

    def test_validation(self):
        with pytest.raises(ValidationError):
            SmartCropConfig(object_prob_threshold=1.5)
        with pytest.raises(ValidationError):
            SmartCropConfig(render_crf=60)

    def test_target_object_from_string(self):
        config = SmartCropConfig(target_object="sports ball")
        assert config.target_object == TargetObject.SPORTS_BALL

    def test_presets(self):
        assert FAST_CONFIG.smooth_duration < SmartCropConfig().smooth_duration
        assert STABLE_CONFIG.smooth_percentage > SmartCropConfig().smooth_percentage
        assert SPORTS_CONFIG.target_object == TargetObject.BALL
        assert SPORTS_CONFIG.ball_prediction_frames > 0

    def test_max_transition_frames(self):
        assert SmartCropConfig().max_transition_frames(30.0) is None
        assert SmartCropConfig(max_transition_seconds=0.5).max_transition_frames(30.0) == 15


class TestConfigFactory:
    """Tests for preset lookup and environment overrides."""

    def test_preset_is_a_copy(self):
        config = get_preset_config("fast")
        config.smooth_duration = 9.0
        assert FAST_CONFIG.smooth_duration == 0.5

    def test_unknown_preset_falls_back_to_default(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = get_preset_config("cinematic")
        assert config == SmartCropConfig()
        assert "Unknown preset" in caplog.text

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SMART_CROP_CONFIG_MODE", "sports")
        monkeypatch.setenv("SMART_CROP_SMOOTH_DURATION", "2.5")
        monkeypatch.setenv("SMART_CROP_SIMPLE_SMOOTHING", "yes")
        monkeypatch.setenv("SMART_CROP_ASPECT", "4:5")
        monkeypatch.setenv("SMART_CROP_DEVICE", "cuda:0")
        config = get_config_from_env()
        assert config.target_object == TargetObject.BALL
        assert config.smooth_duration == 2.5
        assert config.use_simple_smoothing is True
        assert config.aspect_ratio == AspectRatio(width=4, height=5)
        assert config.device == "cuda:0"

    def test_invalid_env_values_are_ignored(self, monkeypatch, caplog):
        monkeypatch.delenv("SMART_CROP_CONFIG_MODE", raising=False)
        monkeypatch.setenv("SMART_CROP_SMOOTH_PERCENTAGE", "lots")
        monkeypatch.setenv("SMART_CROP_TARGET_OBJECT", "dragon")
        monkeypatch.setenv("SMART_CROP_CUT_START", "1.7")
        with caplog.at_level(logging.WARNING):
            config = get_config_from_env()
        assert config.smooth_percentage == 7.5
        assert config.target_object == TargetObject.FACE
        assert config.cut_start == 0.8
        assert "SMART_CROP_SMOOTH_PERCENTAGE" in caplog.text
        assert "SMART_CROP_TARGET_OBJECT" in caplog.text


class TestSimilarity:
    """Tests for crop similarity and selection."""

    def test_scenario_within_tolerance(self):
        previous = single(100, 100, 800, 600)
        candidate = single(150, 150, 850, 650)
        far = single(400, 400, 1200, 900)
        assert is_crop_similar(candidate, previous, 1920, 10)
        assert not is_crop_similar(far, previous, 1920, 10)

    def test_symmetry(self):
        a = single(100, 100, 800, 600)
        b = single(250, 90, 760, 610)
        for tolerance in (1, 5, 7.5, 10):
            assert is_crop_similar(a, b, 1920, tolerance) == is_crop_similar(
                b, a, 1920, tolerance
            )

    def test_stacked_requires_both_halves(self):
        a = stacked((0, 0, 300, 200), (1000, 0, 300, 200))
        b = stacked((10, 0, 300, 200), (1010, 0, 300, 200))
        c = stacked((10, 0, 300, 200), (1500, 0, 300, 200))
        assert is_crop_similar(a, b, 1920, 5)
        assert not is_crop_similar(a, c, 1920, 5)

    def test_cross_variant_never_similar(self):
        s = single(0, 0, 300, 200)
        k = stacked((0, 0, 300, 200), (0, 0, 300, 200))
        r = resize()
        assert not is_crop_similar(s, k, 1920, 100)
        assert not is_crop_similar(k, s, 1920, 100)
        assert not is_crop_similar(s, r, 1920, 100)
        assert not is_crop_similar(r, r, 1920, 100)

    def test_object_count_classes(self):
        assert [object_count_class(n) for n in (0, 1, 2, 3, 10)] == [0, 1, 2, 2, 2]
        assert is_crop_class_same(2, 5)
        assert not is_crop_class_same(0, 1)
        assert not is_crop_class_same(1, 2)

    def test_closest_to_latest(self):
        previous = single(0, 0, 100, 100)
        change = single(500, 0, 100, 100)
        assert select_closest_crop(previous, change, single(450, 0, 100, 100)) == change
        assert select_closest_crop(previous, change, single(50, 0, 100, 100)) == previous

    def test_tie_goes_to_previous(self):
        previous = single(0, 0, 100, 100)
        change = single(200, 0, 100, 100)
        assert select_closest_crop(previous, change, single(100, 0, 100, 100)) == previous

    def test_type_shortcuts(self):
        s = single(0, 0, 100, 100)
        k = stacked((0, 0, 100, 50), (500, 0, 100, 50))
        r = resize()
        assert resolve_crop_choice(k, s, k) == s
        assert resolve_crop_choice(r, s, r) == s
        assert resolve_crop_choice(s, k, k) == s
        assert resolve_crop_choice(s, r, r) == s


class TestInterpolation:
    """Tests for crop interpolation."""

    def test_lengths(self):
        a = single(0, 0, 100, 100)
        b = single(400, 0, 100, 100)
        assert interpolate_crop_results(a, b, 0) == []
        assert interpolate_crop_results(a, b, 1) == [b]
        assert len(interpolate_crop_results(a, b, 7)) == 7

    def test_x_only_linear(self):
        a = single(100, 10, 300, 500)
        b = single(500, 50, 320, 520)
        crops = interpolate_crop_results(a, b, 3)
        assert [c.area.x for c in crops] == pytest.approx([100, 300, 500])
        for crop in crops:
            assert crop.area.y == 50
            assert crop.area.width == 320
            assert crop.area.height == 520
        assert crops[-1] == b

    def test_monotonic(self):
        crops = interpolate_crop_results(
            single(0, 0, 100, 100), single(999, 0, 100, 100), 11
        )
        xs = [c.area.x for c in crops]
        assert xs == sorted(xs)

    def test_identity(self):
        a = single(123, 45, 300, 500)
        assert interpolate_crop_results(a, a, 4) == [a] * 4

    def test_non_single_snaps_to_destination(self):
        a = single(0, 0, 100, 100)
        k = stacked((0, 0, 100, 50), (500, 0, 100, 50))
        assert interpolate_crop_results(a, k, 3) == [k, k, k]
        assert interpolate_crop_results(k, a, 2) == [a, a]


class TestCropPlanner:
    """Tests for per-frame crop computation."""

    def test_extract_filters_name_confidence_and_area(self):
        detections = [
            detection("face", 100, 100, 100, 100, confidence=0.9),
            detection("face", 500, 100, 100, 100, confidence=0.5),
            detection("face", 900, 100, 10, 10, confidence=0.9),
            detection("person", 100, 100, 300, 600, confidence=0.95),
        ]
        objects = extract_objects_above_threshold(
            detections, "face", 0.7, 0.0025, 1920, 1080
        )
        assert len(objects) == 1
        assert objects[0].bbox.x == 100

    def test_extract_skips_area_check_for_balls(self):
        detections = [detection("sports ball", 900, 500, 8, 8, confidence=0.6)]
        objects = extract_objects_above_threshold(
            detections, "sports ball", 0.4, 0.0025, 1920, 1080
        )
        assert len(objects) == 1

    def test_ball_target_accepts_either_ball_name(self):
        detections = [
            detection("sports ball", 900, 500, 8, 8),
            detection("ball", 100, 500, 8, 8),
            detection("person", 300, 100, 200, 600),
        ]
        for target in ("ball", "sports ball"):
            matched = match_target_detections(detections, target)
            assert [d.name for d in matched] == ["sports ball", "ball"]

    def test_face_target_derived_from_person(self):
        detections = [detection("person", 300, 100, 200, 600, confidence=0.8)]
        matched = match_target_detections(detections, "face")
        assert len(matched) == 1
        assert matched[0].name == "face"
        assert matched[0].confidence == 0.8
        assert matched[0].bbox == BoundingBox(x=350, y=100, width=100, height=125)

    def test_face_detections_preferred_over_person(self):
        detections = [
            detection("head", 100, 100, 50, 50),
            detection("person", 300, 100, 200, 600),
        ]
        assert match_target_detections(detections, "face") == []
        assert [d.name for d in match_target_detections(detections, "head")] == ["head"]

    def test_predict_current_box_velocity_and_acceleration(self):
        boxes = [
            BoundingBox(x=100, y=100, width=20, height=20),
            BoundingBox(x=110, y=100, width=20, height=20),
            BoundingBox(x=130, y=90, width=20, height=20),
        ]
        predicted = predict_current_box(*boxes, 1920, 1080)
        # v2 = (20, -10), acceleration = (10, -10)
        assert predicted.x == pytest.approx(155)
        assert predicted.y == pytest.approx(75)
        assert predicted.width == 20

    def test_predict_current_box_stays_in_frame(self):
        boxes = [
            BoundingBox(x=1700, y=10, width=20, height=20),
            BoundingBox(x=1800, y=5, width=20, height=20),
            BoundingBox(x=1900, y=0, width=20, height=20),
        ]
        predicted = predict_current_box(*boxes, 1920, 1080)
        assert predicted.x == 1900
        assert predicted.y == 0

    def test_graphic_area(self):
        boxes = [detection("text", 0, 0, 100, 100, confidence=0.9)]
        assert is_graphic_area_above_threshold(boxes, 1000, 1000, 0.009)
        assert not is_graphic_area_above_threshold(boxes, 1000, 1000, 0.02)

    def test_graphic_area_ignores_low_confidence(self):
        boxes = [detection("text", 0, 0, 100, 100, confidence=0.5)]
        assert not is_graphic_area_above_threshold(boxes, 1000, 1000, 0.009)

    def test_graphic_frame_is_resized_not_cropped(self):
        crop = calculate_crop(False, True, 1920, 1080, [])
        assert crop == resize(1920, 1080)

    def test_no_objects_centers_crop(self):
        crop = calculate_crop(False, False, 1920, 1080, [])
        assert isinstance(crop, SingleCrop)
        assert crop.area.height == 1080
        assert crop.area.width == pytest.approx(607.5)
        assert crop.area.cx == pytest.approx(960)

    def test_single_object_followed_and_clamped(self):
        near_edge = [detection("face", 100, 100, 100, 100)]
        crop = calculate_crop(False, False, 1920, 1080, near_edge)
        assert crop.area.x == 0

        centered = [detection("face", 1200, 400, 100, 100)]
        crop = calculate_crop(False, False, 1920, 1080, centered)
        assert crop.area.cx == pytest.approx(1250)

    def test_two_distant_objects_stack(self):
        objects = [
            detection("face", 1400, 300, 100, 100),
            detection("face", 400, 300, 100, 100),
        ]
        crop = calculate_crop(True, False, 1920, 1080, objects)
        assert isinstance(crop, StackedCrop)
        # Left subject on top
        assert crop.top.cx == pytest.approx(450)
        assert crop.bottom.cx == pytest.approx(1450)
        assert crop.top.height == pytest.approx(540)

    def test_stacking_disabled_gives_single(self):
        objects = [
            detection("face", 1400, 300, 100, 100),
            detection("face", 400, 300, 100, 100),
        ]
        assert isinstance(calculate_crop(False, False, 1920, 1080, objects), SingleCrop)


class TestCutDetector:
    """Tests for scene cut detection."""

    def test_identical_frames_are_not_a_cut(self):
        rng = np.random.default_rng(0)
        frame = rng.integers(0, 256, size=(180, 320, 3), dtype=np.uint8)
        assert not CutDetector().is_cut(frame, frame.copy())

    def test_black_to_white_is_a_cut(self):
        black = np.zeros((180, 320, 3), dtype=np.uint8)
        white = np.full((180, 320, 3), 255, dtype=np.uint8)
        assert CutDetector().is_cut(black, white)

    def test_thresholds_from_config(self):
        detector = CutDetector(cut_similarity=0.0, cut_start=1.0)
        black = np.zeros((180, 320, 3), dtype=np.uint8)
        white = np.full((180, 320, 3), 255, dtype=np.uint8)
        assert not detector.is_cut(black, white)

    def test_invalid_frame_raises(self):
        frame = np.zeros((180, 320, 3), dtype=np.uint8)
        with pytest.raises(CutDetectionError):
            CutDetector().is_cut(frame, np.zeros((0, 0, 3), dtype=np.uint8))


class TestFrameRenderer:
    """Tests for crop rendering."""

    def test_output_size(self):
        renderer = FrameRenderer(AspectRatio(width=9, height=16))
        assert renderer.output_size(1920, 1080) == (608, 1080)

    def test_single_crop(self):
        frame = np.zeros((1080, 1920, 3), dtype=np.uint8)
        out = FrameRenderer().render(frame, single(600, 0, 607.5, 1080))
        assert out.shape == (1080, 608, 3)

    def test_stacked_crop(self):
        frame = np.zeros((1080, 1920, 3), dtype=np.uint8)
        frame[:, :960] = 255
        crop = stacked((0, 0, 607, 540), (1300, 0, 607, 540))
        out = FrameRenderer().render(frame, crop)
        assert out.shape == (1080, 608, 3)
        assert out[:540].mean() == 255
        assert out[540:].mean() == 0

    def test_resize_crop_letterboxes(self):
        frame = np.full((1080, 1920, 3), 200, dtype=np.uint8)
        out = FrameRenderer().render(frame, resize(1920, 1080))
        assert out.shape == (1080, 608, 3)

    def test_empty_region_raises(self):
        frame = np.zeros((1080, 1920, 3), dtype=np.uint8)
        with pytest.raises(RenderError):
            FrameRenderer().render(frame, single(0, 0, 0, 0))
