from .types import Pixel, SolvedImage
from .projection import CoordinateProjection, WcsProjection
from .fits import load_solved_image

__all__ = [
    "Pixel",
    "SolvedImage",
    "CoordinateProjection",
    "WcsProjection",
    "load_solved_image",
]
