import argparse
import sys

from polestar.cli.commands import run_polar, run_version


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to config TOML")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["debug", "info", "warn", "error"],
        help="Logging level",
    )
    parser.add_argument("--json", action="store_true", help="Output result as JSON")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="polestar")
    parser.add_argument("--version", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("version", help="Show version")

    polar_parser = subparsers.add_parser(
        "polar", help="Measure polar-alignment error from three solved FITS images"
    )
    _add_common_args(polar_parser)
    polar_parser.add_argument(
        "images", nargs=3, metavar="IMAGE", help="Solved FITS images, in RA rotation order"
    )
    polar_parser.add_argument(
        "--refresh",
        nargs="+",
        default=[],
        metavar="IMAGE",
        help="Solved refresh images taken while adjusting the knobs",
    )
    polar_parser.add_argument(
        "--star",
        nargs=2,
        type=float,
        metavar=("X", "Y"),
        help="Star pixel in the third image to compute the guidance target for",
    )
    polar_parser.add_argument(
        "--alt-only", action="store_true", help="Report the altitude-only guidance target"
    )
    polar_parser.add_argument("--lat", dest="latitude_deg", type=float, help="Site latitude (deg)")
    polar_parser.add_argument("--lon", dest="longitude_deg", type=float, help="Site longitude (deg)")
    polar_parser.add_argument("--elev", dest="elevation_m", type=float, help="Site elevation (m)")
    polar_parser.add_argument(
        "--show", action="store_true", help="Display the guidance triangle (requires matplotlib)"
    )

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        return run_version(args)

    if args.command == "polar":
        return run_polar(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
