import pytest

from polestar.util.format import (
    deg_to_arcmin,
    deg_to_arcsec,
    deg_to_dms,
    format_angle,
    format_error,
)


def test_deg_to_arcmin():
    assert deg_to_arcmin(1.5) == 90.0


def test_deg_to_arcsec():
    assert deg_to_arcsec(0.5) == 1800.0


def test_deg_to_dms_positive():
    assert deg_to_dms(10.5) == "+10°30'00\""


def test_deg_to_dms_small_negative():
    assert deg_to_dms(-0.25, precision=1) == "-00°15'00.0\""


def test_deg_to_dms_rounding_carry():
    # 0°59'59.964" rounds up to a whole degree
    assert deg_to_dms(0.99999) == "+01°00'00\""


def test_format_angle_default_is_arcmin():
    assert format_angle(0.5) == "30.0'"


def test_format_angle_deg():
    assert format_angle(12.3456, style="deg", precision=2) == "12.35°"


def test_format_angle_arcsec():
    assert format_angle(1.0 / 60.0, style="arcsec", precision=0) == '60"'


def test_format_angle_dms():
    assert format_angle(-1.5, style="dms", precision=0) == "-01°30'00\""


def test_format_angle_unknown_style():
    with pytest.raises(ValueError, match="Unknown angle style"):
        format_angle(0.0, style="unknown")


def test_format_error():
    assert format_error(0.5, -0.25) == "az 30.0' alt -15.0'"
