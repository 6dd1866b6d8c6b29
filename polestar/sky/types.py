from dataclasses import dataclass


@dataclass(frozen=True)
class ObserverLocation:
    latitude_deg: float
    longitude_deg: float
    elevation_m: float | None = None
    name: str | None = None
