import datetime
import logging
import sys
from pathlib import Path

from polestar import __version__
from polestar.config import load_config
from polestar.errors import PolarAlignError
from polestar.imaging import Pixel, load_solved_image
from polestar.services import PolarAlignService
from polestar.sky import ObserverLocation
from polestar.util.format import deg_to_arcmin, format_angle

logger = logging.getLogger(__name__)


def _json_envelope(command: str, ok: bool, data=None, error=None) -> dict:
    return {
        "ok": ok,
        "command": command,
        "timestamp_utc": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "data": data,
        "error": error,
    }


def _init_logging(level: str | None) -> None:
    if not level:
        return
    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warn": logging.WARNING,
        "error": logging.ERROR,
    }
    logging.basicConfig(level=level_map.get(level, logging.INFO))


def _report_error(command: str, args, code: str, message: str, exit_code: int) -> int:
    if args is not None and getattr(args, "json", False):
        import json

        payload = _json_envelope(
            command=command,
            ok=False,
            data=None,
            error={"code": code, "message": message, "details": None},
        )
        print(json.dumps(payload, indent=2))
    else:
        print(message, file=sys.stderr)
    return exit_code


def _config_path_from_args(args) -> Path | None:
    if args is None:
        return None
    path = getattr(args, "config", None)
    return Path(path) if path else None


def _parse_location_args(args) -> ObserverLocation | None:
    lat = getattr(args, "latitude_deg", None)
    lon = getattr(args, "longitude_deg", None)
    elev = getattr(args, "elevation_m", None)
    if lat is None and lon is None and elev is None:
        return None
    if lat is None or lon is None:
        raise ValueError(
            "Both latitude and longitude are required when specifying location"
        )
    return ObserverLocation(latitude_deg=lat, longitude_deg=lon, elevation_m=elev)


def _error_code(exc: PolarAlignError) -> str:
    # DegenerateGeometryError -> degenerate_geometry
    name = type(exc).__name__.removesuffix("Error")
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name).lstrip("_")


def _coord_dict(coord) -> dict:
    return {"ra_deg": float(coord.ra.deg), "dec_deg": float(coord.dec.deg)}


def _process_refreshes(service: PolarAlignService, paths) -> list[dict]:
    results = []
    for path in paths:
        entry = {"path": str(path)}
        try:
            image = load_solved_image(path)
            coord = image.projection.pixel_to_sky(image.center.x, image.center.y)
            if coord is None:
                raise PolarAlignError(f"{Path(path).name}: image centre has no sky coordinate")
            result = service.process_refresh(coord, image.timestamp_utc)
        except (PolarAlignError, OSError) as e:
            entry.update(ok=False, message=str(e))
        else:
            entry.update(
                ok=True,
                az_error_deg=result.az_error_deg,
                alt_error_deg=result.alt_error_deg,
                az_adjustment_deg=result.adjustment.azimuth_deg,
                alt_adjustment_deg=result.adjustment.altitude_deg,
                residual_deg=result.residual_deg,
            )
        results.append(entry)
    return results


def _show_guidance(image, star: Pixel, alt_only: Pixel, target: Pixel) -> None:
    from astropy.io import fits
    import matplotlib.pyplot as plt

    with fits.open(image.data) as hdul:
        data = hdul[0].data
        if data is not None:
            plt.imshow(data, cmap="gray", origin="lower")
    plt.plot([star.x, alt_only.x], [star.y, alt_only.y], "g-", label="altitude knob")
    plt.plot([alt_only.x, target.x], [alt_only.y, target.y], "b-", label="azimuth knob")
    plt.plot([star.x, target.x], [star.y, target.y], "y--", label="correction")
    plt.scatter([star.x], [star.y], marker="o", facecolors="none", edgecolors="r")
    plt.xlim(0, image.width_px)
    plt.ylim(0, image.height_px)
    plt.legend()
    plt.title(Path(str(image.data)).name)
    plt.show()


def run_version(args=None) -> int:
    print(f"Polestar {__version__}")
    return 0


def run_polar(args) -> int:
    try:
        config = load_config(_config_path_from_args(args))
        location = _parse_location_args(args) or config.observer_location()
    except (ValueError, FileNotFoundError) as e:
        return _report_error("polar", args, "invalid_arguments", str(e), 2)
    _init_logging(getattr(args, "log_level", None) or config.log_level)

    if location is None:
        return _report_error(
            "polar",
            args,
            "location_missing",
            "Observer location is required (use --lat/--lon or set [site] in config).",
            2,
        )
    if args.show and args.star is None:
        return _report_error("polar", args, "invalid_arguments", "--show requires --star.", 2)

    service = PolarAlignService(
        location, max_pixel_search_range_deg=config.polar_max_pixel_search_range_deg
    )
    try:
        images = [load_solved_image(path) for path in args.images]
        for image in images:
            service.add_sample(image)
        axis = service.compute_axis()
        target = service.correction_target()
        data = {
            "location": {
                "latitude_deg": location.latitude_deg,
                "longitude_deg": location.longitude_deg,
            },
            "axis": {"azimuth_deg": axis.azimuth_deg, "altitude_deg": axis.altitude_deg},
            "error": {"az_deg": axis.az_error_deg, "alt_deg": axis.alt_error_deg},
            "correction_target": _coord_dict(target.coord),
            "alt_only_correction_target": _coord_dict(target.alt_only_coord),
        }

        guidance = None
        if args.star is not None:
            reference = images[-1]
            star = Pixel(*args.star)
            alt_only = service.guidance_target(reference, star, alt_only=True)
            corrected = alt_only if args.alt_only else service.guidance_target(reference, star)
            guidance = (reference, star, alt_only, corrected)
            data["guidance"] = {
                "star": {"x": star.x, "y": star.y},
                "alt_only": {"x": alt_only.x, "y": alt_only.y},
                "target": {"x": corrected.x, "y": corrected.y},
            }

        if args.refresh:
            data["refresh"] = _process_refreshes(service, args.refresh)
    except FileNotFoundError as e:
        return _report_error("polar", args, "file_not_found", str(e), 1)
    except OSError as e:
        return _report_error("polar", args, "unreadable_file", str(e), 1)
    except PolarAlignError as e:
        return _report_error("polar", args, _error_code(e), str(e), 1)

    if getattr(args, "json", False):
        import json

        payload = _json_envelope(command="polar", ok=True, data=data, error=None)
        print(json.dumps(payload, indent=2))
    else:
        print(f"Mount axis: az {axis.azimuth_deg:.4f}° alt {axis.altitude_deg:.4f}°")
        print(f"Azimuth error: {format_angle(axis.az_error_deg)}")
        print(f"Altitude error: {format_angle(axis.alt_error_deg)}")
        print(
            "Correction target (ICRS): "
            f"RA {target.coord.ra.deg:.4f}° Dec {target.coord.dec.deg:.4f}°"
        )
        if guidance is not None:
            _, star, alt_only, corrected = guidance
            print(f"Move star ({star.x:.1f}, {star.y:.1f})")
            print(f"  altitude knob to ({alt_only.x:.1f}, {alt_only.y:.1f})")
            print(f"  then azimuth knob to ({corrected.x:.1f}, {corrected.y:.1f})")
        for entry in data.get("refresh", []):
            if entry["ok"]:
                print(
                    f"Refresh {Path(entry['path']).name}: "
                    f"az {deg_to_arcmin(entry['az_error_deg']):.1f}' "
                    f"alt {deg_to_arcmin(entry['alt_error_deg']):.1f}'"
                )
            else:
                print(f"Refresh {Path(entry['path']).name}: {entry['message']}")

    if args.show and guidance is not None:
        reference, star, alt_only, corrected = guidance
        _show_guidance(reference, star, alt_only, corrected)
    return 0
