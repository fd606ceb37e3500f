"""Unit tests for colour math."""

import numpy as np
import pytest

from photo_adjust.color import (
    clamp255,
    hsl_to_rgb,
    hsl_to_rgb_array,
    luma,
    rgb_to_hsl,
    rgb_to_hsl_array,
    round_half_up,
    saturate,
)


class TestScalarConversions:
    """Test scalar HSL conversions."""

    @pytest.mark.parametrize(
        "rgb, hsl",
        [
            ((255, 0, 0), (0.0, 1.0, 0.5)),
            ((0, 255, 0), (1 / 3, 1.0, 0.5)),
            ((0, 0, 255), (2 / 3, 1.0, 0.5)),
            ((255, 255, 255), (0.0, 0.0, 1.0)),
            ((0, 0, 0), (0.0, 0.0, 0.0)),
        ],
    )
    def test_rgb_to_hsl_primaries(self, rgb, hsl):
        """Test known conversions of primaries and extremes."""
        assert rgb_to_hsl(*rgb) == pytest.approx(hsl)

    def test_achromatic_has_zero_hue_and_saturation(self):
        """Test that greys report h = s = 0."""
        h, s, lightness = rgb_to_hsl(100, 100, 100)
        assert (h, s) == (0.0, 0.0)
        assert lightness == pytest.approx(100 / 255)

    def test_hsl_to_rgb_grey(self):
        """Test that zero saturation yields a grey."""
        assert hsl_to_rgb(0.7, 0.0, 0.5) == (128, 128, 128)

    def test_hsl_to_rgb_red(self):
        """Test converting pure red back."""
        assert hsl_to_rgb(0.0, 1.0, 0.5) == (255, 0, 0)

    def test_clamp255(self):
        """Test half-up rounding with clamping."""
        assert clamp255(-3) == 0
        assert clamp255(2.5) == 3
        assert clamp255(300) == 255


class TestRounding:
    """Test the two rounding modes."""

    def test_round_half_up(self):
        """Test that .5 always rounds up."""
        values = np.array([0.5, 1.5, 2.5, -1.0, 256.0])
        assert round_half_up(values).tolist() == [1, 2, 3, 0, 255]

    def test_saturate_rounds_half_to_even(self):
        """Test that .5 rounds to the nearest even integer."""
        values = np.array([0.5, 1.5, 2.5, -1.0, 256.0])
        assert saturate(values).tolist() == [0, 2, 2, 0, 255]


class TestArrayConversions:
    """Test vectorized conversions against the scalar ones."""

    def test_luma(self):
        """Test Rec. 601 luma weights."""
        rgb = np.array([[255, 0, 0], [0, 255, 0], [0, 0, 255]], dtype=np.uint8)
        assert luma(rgb) == pytest.approx([76.245, 149.685, 29.07])

    def test_array_matches_scalar(self):
        """Test rgb_to_hsl_array agrees with rgb_to_hsl per pixel."""
        rng = np.random.default_rng(3)
        rgb = rng.integers(0, 256, size=(8, 3))
        hue, sat, lightness = rgb_to_hsl_array(rgb)

        for i, (r, g, b) in enumerate(rgb.tolist()):
            assert (hue[i], sat[i], lightness[i]) == pytest.approx(rgb_to_hsl(r, g, b))

    def test_array_round_trip(self):
        """Test that RGB survives a trip through HSL."""
        rng = np.random.default_rng(5)
        rgb = rng.integers(0, 256, size=(4, 4, 3)).astype(np.uint8)
        restored = round_half_up(hsl_to_rgb_array(*rgb_to_hsl_array(rgb)))
        assert np.array_equal(restored, rgb)

    def test_array_grey(self):
        """Test that grey pixels come back as greys."""
        grey = np.full((1, 1, 3), 77, dtype=np.uint8)
        restored = hsl_to_rgb_array(*rgb_to_hsl_array(grey))
        assert restored == pytest.approx(np.full((1, 1, 3), 77.0))
