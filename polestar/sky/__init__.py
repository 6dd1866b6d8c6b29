from .types import ObserverLocation
from .frames import AstropyHorizonFrame, HorizonFrame, as_utc

__all__ = [
    "ObserverLocation",
    "AstropyHorizonFrame",
    "HorizonFrame",
    "as_utc",
]
