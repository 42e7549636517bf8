"""
Tests for StencilSettings coercion and form parsing.
"""

import pytest

from models.errors import InvalidParameterError
from models.stencil_settings import StencilSettings


class TestNormalized:
    """Tests for StencilSettings.normalized()."""

    def test_defaults(self):
        """Default radius 2 becomes the odd kernel size 3."""
        settings = StencilSettings().normalized()

        assert settings.low_threshold == 30
        assert settings.high_threshold == 100
        assert settings.blur_radius == 3
        assert settings.inverted is True

    @pytest.mark.parametrize("radius, expected", [(1, 1), (2, 3), (4, 5), (5, 5), (10, 11)])
    def test_even_radius_moves_to_next_odd(self, radius, expected):
        assert StencilSettings(blur_radius=radius).normalized().blur_radius == expected

    @pytest.mark.parametrize("radius", [0, -1, -4])
    def test_non_positive_radius_rejected(self, radius):
        with pytest.raises(InvalidParameterError) as info:
            StencilSettings(blur_radius=radius).normalized()
        assert info.value.name == "blur_radius"

    @pytest.mark.parametrize("radius", [256, 1000, 2**31, "4294967296"])
    def test_oversized_radius_rejected(self, radius):
        with pytest.raises(InvalidParameterError) as info:
            StencilSettings(blur_radius=radius).normalized()
        assert info.value.name == "blur_radius"

    def test_largest_radius_accepted(self):
        assert StencilSettings(blur_radius=255).normalized().blur_radius == 255
        assert StencilSettings(blur_radius=254).normalized().blur_radius == 255

    @pytest.mark.parametrize("field", ["low_threshold", "high_threshold"])
    @pytest.mark.parametrize("value", [-1, 256, 1000])
    def test_threshold_out_of_range(self, field, value):
        with pytest.raises(InvalidParameterError):
            StencilSettings(**{field: value}).normalized()

    def test_threshold_bounds_inclusive(self):
        settings = StencilSettings(low_threshold=0, high_threshold=255).normalized()
        assert (settings.low_threshold, settings.high_threshold) == (0, 255)

    def test_high_below_low_is_accepted(self):
        """The detector swaps them; validation does not refuse them."""
        settings = StencilSettings(low_threshold=120, high_threshold=40).normalized()
        assert settings.low_threshold == 120
        assert settings.high_threshold == 40

    def test_numeric_strings_and_integral_floats(self):
        settings = StencilSettings(low_threshold="45", high_threshold=150.0, blur_radius=" 6 ").normalized()

        assert settings.low_threshold == 45
        assert settings.high_threshold == 150
        assert settings.blur_radius == 7

    @pytest.mark.parametrize("value", [2.5, "abc", True, None, [3]])
    def test_non_integer_radius_rejected(self, value):
        with pytest.raises(InvalidParameterError):
            StencilSettings(blur_radius=value).normalized()

    def test_original_is_not_modified(self):
        settings = StencilSettings(blur_radius=4)
        settings.normalized()
        assert settings.blur_radius == 4


class TestFromMapping:
    """Tests for building settings from request data."""

    def test_missing_keys_use_defaults(self):
        defaults = StencilSettings(low_threshold=10, high_threshold=20, blur_radius=5)
        settings = StencilSettings.from_mapping({"high_threshold": "90"}, defaults)

        assert settings.low_threshold == 10
        assert settings.high_threshold == 90
        assert settings.blur_radius == 5

    def test_empty_strings_use_defaults(self):
        settings = StencilSettings.from_mapping({"low_threshold": "", "blur_radius": " "})
        assert settings.low_threshold == 30
        assert settings.blur_radius == 3

    @pytest.mark.parametrize("word, expected", [
        ("true", True), ("ON", True), ("1", True), ("yes", True),
        ("false", False), ("off", False), ("0", False), ("no", False),
    ])
    def test_inverted_words(self, word, expected):
        assert StencilSettings.from_mapping({"inverted": word}).inverted is expected

    def test_inverted_garbage_rejected(self):
        with pytest.raises(InvalidParameterError):
            StencilSettings.from_mapping({"inverted": "maybe"})

    def test_absent_checkbox_means_false(self):
        assert StencilSettings.from_mapping({}, checkbox=True).inverted is False
        assert StencilSettings.from_mapping({}).inverted is True

    def test_extra_keys_ignored(self):
        settings = StencilSettings.from_mapping({"session_id": "abc", "blur_radius": 1})
        assert settings.blur_radius == 1


class TestWithChanges:
    """Tests for partial updates."""

    def test_none_values_ignored(self):
        settings = StencilSettings().with_changes(low_threshold=None, high_threshold=200)
        assert settings.low_threshold == 30
        assert settings.high_threshold == 200

    def test_unknown_setting_rejected(self):
        with pytest.raises(InvalidParameterError):
            StencilSettings().with_changes(sharpness=3)

    def test_as_dict(self):
        assert StencilSettings().as_dict() == {
            "low_threshold": 30,
            "high_threshold": 100,
            "blur_radius": 2,
            "inverted": True,
        }
