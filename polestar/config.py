from pathlib import Path
from typing import TYPE_CHECKING

from polestar.sky.types import ObserverLocation

if TYPE_CHECKING:
    import tomli as tomllib
else:
    try:
        import tomllib
    except ModuleNotFoundError:  # Python < 3.11
        import tomli as tomllib

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "polestar" / "config.toml"


class Config:
    def __init__(self, data: dict):
        self._data = data

    def _site_data(self) -> dict:
        return self._data.get("site", {})

    @property
    def site_latitude_deg(self):
        return self._site_data().get("latitude_deg", None)

    @property
    def site_longitude_deg(self):
        return self._site_data().get("longitude_deg", None)

    @property
    def site_elevation_m(self):
        return self._site_data().get("elevation_m", None)

    @property
    def site_name(self):
        return self._site_data().get("name", None)

    @property
    def polar_max_pixel_search_range_deg(self):
        return self._data.get("polar", {}).get("max_pixel_search_range_deg", 2.0)

    @property
    def log_level(self):
        return self._data.get("logging", {}).get("level", None)

    def observer_location(self) -> ObserverLocation | None:
        if self.site_latitude_deg is None or self.site_longitude_deg is None:
            return None
        return ObserverLocation(
            latitude_deg=float(self.site_latitude_deg),
            longitude_deg=float(self.site_longitude_deg),
            elevation_m=self.site_elevation_m,
            name=self.site_name,
        )


def load_config(path: Path | None = None) -> Config:
    explicit_path = path
    path = path or DEFAULT_CONFIG_PATH

    if not path.exists():
        if explicit_path is not None:
            raise FileNotFoundError(f"Config file not found: {path}")
        # Return default config if default file missing
        return Config({})

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return Config(data)
