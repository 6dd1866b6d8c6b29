from typing import Tuple


def deg_to_arcmin(deg: float) -> float:
    return deg * 60.0


def deg_to_arcsec(deg: float) -> float:
    return deg * 3600.0


def _split_dms(angle_deg: float, precision: int) -> Tuple[int, int, int, float]:
    sign = -1 if angle_deg < 0 else 1
    a = abs(angle_deg)
    total_seconds = round(a * 3600.0, precision)
    deg = int(total_seconds // 3600)
    rem = total_seconds - deg * 3600
    minutes = int(rem // 60)
    seconds = rem - minutes * 60
    return sign, deg, minutes, seconds


def deg_to_dms(deg: float, precision: int = 0) -> str:
    sign_val, d, m, s = _split_dms(deg, precision)
    sign = "-" if sign_val < 0 else "+"
    width = 3 + precision if precision else 2
    s_fmt = f"{s:0{width}.{precision}f}"
    return f"{sign}{d:02d}°{m:02d}'{s_fmt}\""


def format_angle(deg: float, style: str = "arcmin", precision: int = 1) -> str:
    if style == "deg":
        return f"{deg:.{precision}f}°"
    if style == "arcmin":
        return f"{deg_to_arcmin(deg):.{precision}f}'"
    if style == "arcsec":
        return f'{deg_to_arcsec(deg):.{precision}f}"'
    if style == "dms":
        return deg_to_dms(deg, precision=precision)
    raise ValueError(f"Unknown angle style: {style}")


def format_error(az_error_deg: float, alt_error_deg: float, style: str = "arcmin") -> str:
    return (
        f"az {format_angle(az_error_deg, style)} "
        f"alt {format_angle(alt_error_deg, style)}"
    )
