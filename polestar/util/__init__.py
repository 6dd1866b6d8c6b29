from .format import (
    deg_to_arcmin,
    deg_to_arcsec,
    deg_to_dms,
    format_angle,
    format_error,
)

__all__ = [
    "deg_to_arcmin",
    "deg_to_arcsec",
    "deg_to_dms",
    "format_angle",
    "format_error",
]
