import datetime
import json

import numpy as np
import pytest
from astropy.io import fits
from astropy.wcs import WCS

from polestar import __version__
from polestar.cli.main import main
from polestar.geometry import (
    KnobAdjustment,
    apply_adjustment,
    rotate_around_axis,
    to_az_alt,
    to_direction,
)
from polestar.services.polar import SIDEREAL_RATE_ARCSEC_PER_S
from polestar.sky import AstropyHorizonFrame, ObserverLocation

SITE = ObserverLocation(latitude_deg=51.48, longitude_deg=0.0)
START = datetime.datetime(2020, 3, 1, 22, 0, tzinfo=datetime.timezone.utc)
INTERVAL_S = 20.0
AZ_ERROR = 0.5
ALT_ERROR = -0.3


def _write_frame(path, frame, direction, when, width=320, height=240):
    az, alt = to_az_alt(direction)
    centre = frame.to_catalog(az, alt, when)
    wcs = WCS(naxis=2)
    wcs.wcs.ctype = ["RA---TAN", "DEC--TAN"]
    wcs.wcs.crval = [float(centre.ra.deg), float(centre.dec.deg)]
    wcs.wcs.crpix = [width // 2 + 1, height // 2 + 1]
    wcs.wcs.cdelt = [-10.0 / 3600.0, 10.0 / 3600.0]
    header = wcs.to_header()
    header["DATE-OBS"] = when.strftime("%Y-%m-%dT%H:%M:%S.%f")
    fits.PrimaryHDU(data=np.zeros((height, width), dtype=np.int16), header=header).writeto(path)
    return str(path)


@pytest.fixture
def polar_frames(tmp_path):
    """Three frames and one fully corrected refresh frame from a misaligned mount."""
    frame = AstropyHorizonFrame(SITE)
    axis = to_direction(AZ_ERROR, SITE.latitude_deg + ALT_ERROR)
    pointing = to_direction(0.0, SITE.latitude_deg - 30.0)

    def tracked(rotation_deg, elapsed_s):
        tracking = SIDEREAL_RATE_ARCSEC_PER_S * elapsed_s / 3600.0
        return rotate_around_axis(pointing, axis, rotation_deg + tracking)

    paths = []
    for i in range(3):
        elapsed = i * INTERVAL_S
        paths.append(
            _write_frame(
                tmp_path / f"frame_{i + 1}.fits",
                frame,
                tracked(i * 30.0, elapsed),
                START + datetime.timedelta(seconds=elapsed),
            )
        )

    elapsed = 4 * INTERVAL_S
    corrected = apply_adjustment(
        tracked(60.0, elapsed), KnobAdjustment(azimuth_deg=-AZ_ERROR, altitude_deg=-ALT_ERROR)
    )
    refresh = _write_frame(
        tmp_path / "refresh_1.fits",
        frame,
        corrected,
        START + datetime.timedelta(seconds=elapsed),
    )
    return paths, refresh


@pytest.fixture
def empty_config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("")
    return str(path)


def _site_args():
    return ["--lat", str(SITE.latitude_deg), "--lon", str(SITE.longitude_deg)]


def test_version(capsys):
    assert main(["version"]) == 0
    assert capsys.readouterr().out.strip() == f"Polestar {__version__}"


def test_polar_json(polar_frames, empty_config, capsys):
    paths, _ = polar_frames
    code = main(["polar", *paths, *_site_args(), "--config", empty_config, "--json"])
    assert code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is True
    assert payload["command"] == "polar"
    data = payload["data"]
    assert data["error"]["az_deg"] == pytest.approx(AZ_ERROR, abs=1e-3)
    assert data["error"]["alt_deg"] == pytest.approx(ALT_ERROR, abs=1e-3)
    assert data["axis"]["altitude_deg"] == pytest.approx(SITE.latitude_deg + ALT_ERROR, abs=1e-3)
    assert set(data["correction_target"]) == {"ra_deg", "dec_deg"}
    assert "guidance" not in data


def test_polar_text(polar_frames, empty_config, capsys):
    paths, _ = polar_frames
    assert main(["polar", *paths, *_site_args(), "--config", empty_config]) == 0
    out = capsys.readouterr().out
    assert "Azimuth error: 30.0'" in out
    assert "Altitude error: -18.0'" in out


def test_polar_guidance(polar_frames, empty_config, capsys):
    paths, _ = polar_frames
    code = main(
        ["polar", *paths, *_site_args(), "--config", empty_config, "--star", "100", "80", "--json"]
    )
    assert code == 0

    guidance = json.loads(capsys.readouterr().out)["data"]["guidance"]
    assert guidance["star"] == {"x": 100.0, "y": 80.0}
    star = np.array([100.0, 80.0])
    target = np.array([guidance["target"]["x"], guidance["target"]["y"]])
    alt_only = np.array([guidance["alt_only"]["x"], guidance["alt_only"]["y"]])
    # About 35' of correction at 10"/px
    assert 100.0 < np.linalg.norm(target - star) < 400.0
    assert np.linalg.norm(alt_only - star) > 50.0


def test_polar_refresh(polar_frames, empty_config, capsys, tmp_path):
    paths, refresh = polar_frames
    missing = str(tmp_path / "missing.fits")
    code = main(
        [
            "polar",
            *paths,
            *_site_args(),
            "--config",
            empty_config,
            "--refresh",
            refresh,
            missing,
            "--json",
        ]
    )
    assert code == 0

    entries = json.loads(capsys.readouterr().out)["data"]["refresh"]
    assert entries[0]["ok"] is True
    assert entries[0]["az_error_deg"] == pytest.approx(0.0, abs=0.01)
    assert entries[0]["alt_error_deg"] == pytest.approx(0.0, abs=0.01)
    assert entries[0]["az_adjustment_deg"] == pytest.approx(-AZ_ERROR, abs=0.01)
    assert entries[1]["ok"] is False
    assert entries[1]["path"] == missing


def test_polar_location_from_config(polar_frames, tmp_path, capsys):
    paths, _ = polar_frames
    config = tmp_path / "site.toml"
    config.write_text(
        "[site]\n"
        f"latitude_deg = {SITE.latitude_deg}\n"
        f"longitude_deg = {SITE.longitude_deg}\n"
    )
    assert main(["polar", *paths, "--config", str(config), "--json"]) == 0
    data = json.loads(capsys.readouterr().out)["data"]
    assert data["location"]["latitude_deg"] == SITE.latitude_deg


def test_polar_location_missing(polar_frames, empty_config, capsys):
    paths, _ = polar_frames
    assert main(["polar", *paths, "--config", empty_config, "--json"]) == 2
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "location_missing"


def test_polar_latitude_without_longitude(polar_frames, empty_config, capsys):
    paths, _ = polar_frames
    assert main(["polar", *paths, "--lat", "51.0", "--config", empty_config]) == 2
    assert "latitude and longitude" in capsys.readouterr().err


def test_polar_show_requires_star(polar_frames, empty_config):
    paths, _ = polar_frames
    assert main(["polar", *paths, *_site_args(), "--config", empty_config, "--show"]) == 2


def test_polar_missing_image(tmp_path, empty_config, capsys):
    paths = [str(tmp_path / f"missing_{i}.fits") for i in range(3)]
    code = main(["polar", *paths, *_site_args(), "--config", empty_config, "--json"])
    assert code == 1
    assert json.loads(capsys.readouterr().out)["error"]["code"] == "file_not_found"


def test_polar_degenerate_images(polar_frames, empty_config, capsys):
    paths, _ = polar_frames
    same = [paths[0]] * 3
    code = main(["polar", *same, *_site_args(), "--config", empty_config, "--json"])
    assert code == 1
    assert json.loads(capsys.readouterr().out)["error"]["code"] == "degenerate_geometry"


def test_polar_corrupt_image(polar_frames, empty_config, capsys, tmp_path):
    paths, _ = polar_frames
    corrupt = tmp_path / "corrupt.fits"
    corrupt.write_bytes(b"not a FITS file")
    code = main(
        ["polar", paths[0], paths[1], str(corrupt), *_site_args(), "--config", empty_config, "--json"]
    )
    assert code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "unreadable_file"


def test_polar_corrupt_refresh(polar_frames, empty_config, capsys, tmp_path):
    paths, refresh = polar_frames
    corrupt = tmp_path / "corrupt.fits"
    corrupt.write_bytes(b"not a FITS file")
    code = main(
        [
            "polar",
            *paths,
            *_site_args(),
            "--config",
            empty_config,
            "--refresh",
            str(corrupt),
            refresh,
            "--json",
        ]
    )
    assert code == 0
    entries = json.loads(capsys.readouterr().out)["data"]["refresh"]
    assert entries[0]["ok"] is False
    assert entries[1]["ok"] is True
