# tests/auditor/test_color.py
import pytest

from pagehealth.auditor.color import (
    contrast_ratio, is_bold, is_large_text, parse_color, relative_luminance, required_ratio, to_hex,
)


@pytest.mark.parametrize("value, expected", [
    ("rgb(255, 0, 0)", (255, 0, 0)),
    ("rgba(10,20,30,0.5)", (10, 20, 30)),
    ("#336699", (51, 102, 153)),
    ("#FFF", (255, 255, 255)),
    ("White", (255, 255, 255)),
    ("#000000 !important", (0, 0, 0)),
])
def test_parse_color_accepts_supported_formats(value, expected):
    assert parse_color(value) == expected


@pytest.mark.parametrize("value", [
    None, "", "transparent", "rgba(0, 0, 0, 0)", "rgb(300, 0, 0)", "var(--brand)", "#12345", "hsl(0, 0%, 0%)",
])
def test_parse_color_rejects_unusable_values(value):
    assert parse_color(value) is None


def test_to_hex():
    assert to_hex((119, 119, 119)) == "#777777"


def test_contrast_ratio_extremes():
    black, white = (0, 0, 0), (255, 255, 255)
    assert contrast_ratio(black, white) == pytest.approx(21.0)
    assert contrast_ratio((120, 40, 200), (120, 40, 200)) == pytest.approx(1.0)


def test_contrast_ratio_is_symmetric_and_bounded():
    colors = [(0, 0, 0), (255, 255, 255), (119, 119, 119), (255, 0, 0), (0, 0, 255), (18, 200, 77)]
    for a in colors:
        for b in colors:
            ratio = contrast_ratio(a, b)
            assert 1.0 <= ratio <= 21.0
            assert ratio == pytest.approx(contrast_ratio(b, a))


def test_mid_gray_just_misses_aa_on_white():
    ratio = contrast_ratio((119, 119, 119), (255, 255, 255))
    assert ratio == pytest.approx(4.48, abs=0.01)
    assert ratio < required_ratio(False)
    assert ratio >= required_ratio(True)


def test_relative_luminance_uses_low_channel_linear_segment():
    # 10/255 is below the 0.03928 knee and maps linearly
    assert relative_luminance((10, 10, 10)) == pytest.approx((10 / 255) / 12.92)


@pytest.mark.parametrize("weight, bold", [
    ("bold", True), ("bolder", True), ("700", True), (800, True), ("normal", False), ("400", False), (None, False),
])
def test_is_bold(weight, bold):
    assert is_bold(weight) is bold


def test_large_text_thresholds():
    assert is_large_text(24)
    assert is_large_text(19, "bold")
    assert not is_large_text(19)
    assert not is_large_text(18, "700")
