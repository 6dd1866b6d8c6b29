"""Polar alignment from three plate-solved images.

The mount is rotated in RA between three images. Each image centre is
resolved to apparent azimuth/altitude "now, here", and the three directions
fix the mount's rotation axis. Its offset from the visible celestial pole is
the polar-alignment error.

Two correction workflows follow. In the first the user picks a star in an
image; ``guidance_target`` says where that star must be moved to (by turning
the altitude then the azimuth knob) and ``estimate_progress`` reports how much
of that move has been made. In the second the user keeps plate-solving
refresh images; ``process_refresh`` infers the knob adjustment made since the
third image and reports the new error.

State lives in an immutable ``PolarAlignState``; the service swaps in a new
value on each successful transition, so a failed call leaves it untouched.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, replace

import numpy as np
from astropy.coordinates import SkyCoord

from polestar.errors import (
    AxisNotComputedError,
    InputUnavailableError,
    InsufficientSamplesError,
    SampleLimitError,
    SearchNonConvergenceError,
)
from polestar.geometry import (
    Hemisphere,
    KnobAdjustment,
    apply_adjustment,
    best_rotation,
    fit_axis,
    rotate_around_axis,
    rotate_ra_axis,
    rotate_y,
    to_az_alt,
    to_direction,
)
from polestar.imaging.types import Pixel, SolvedImage
from polestar.sky import AstropyHorizonFrame, HorizonFrame, ObserverLocation, as_utc
from polestar.util.format import format_angle, format_error

logger = logging.getLogger(__name__)

MAX_SAMPLES = 3

# Apparent rotation of the sky about the north celestial pole.
SIDEREAL_RATE_ARCSEC_PER_S = -15.041067

REFRESH_MAX_RESIDUAL_DEG = 0.5
PROGRESS_MAX_PIXEL_DISTANCE = 10.0

DEFAULT_MAX_PIXEL_SEARCH_RANGE_DEG = 2.0
MIN_PIXEL_SEARCH_RANGE_DEG = 2.0
MAX_PIXEL_SEARCH_RANGE_DEG = 10.0

PROGRESS_COARSE_STEP_DEG = 0.2
# (half-span, step) of the passes that refine the coarse progress estimate
PROGRESS_REFINEMENTS = ((0.2, 0.02), (0.02, 0.002))


@dataclass(frozen=True)
class Sample:
    azimuth_deg: float
    altitude_deg: float
    timestamp_utc: datetime.datetime
    coord: SkyCoord | None = None

    @property
    def direction(self) -> np.ndarray:
        return to_direction(self.azimuth_deg, self.altitude_deg)


@dataclass(frozen=True)
class AxisEstimate:
    azimuth_deg: float
    altitude_deg: float
    az_error_deg: float
    alt_error_deg: float

    @property
    def direction(self) -> np.ndarray:
        return to_direction(self.azimuth_deg, self.altitude_deg)


@dataclass(frozen=True)
class RefreshResult:
    az_error_deg: float
    alt_error_deg: float
    adjustment: KnobAdjustment
    residual_deg: float
    axis_azimuth_deg: float
    axis_altitude_deg: float


@dataclass(frozen=True)
class CorrectionTarget:
    """Where the third image's centre lands once the error is corrected."""

    coord: SkyCoord
    alt_only_coord: SkyCoord


def clamp_search_range(degrees: float) -> float:
    return min(MAX_PIXEL_SEARCH_RANGE_DEG, max(MIN_PIXEL_SEARCH_RANGE_DEG, abs(degrees)))


@dataclass(frozen=True)
class PolarAlignState:
    samples: tuple[Sample, ...] = ()
    axis: AxisEstimate | None = None
    max_pixel_search_range_deg: float = DEFAULT_MAX_PIXEL_SEARCH_RANGE_DEG

    @property
    def ready(self) -> bool:
        return len(self.samples) == MAX_SAMPLES

    def with_sample(self, sample: Sample) -> "PolarAlignState":
        if len(self.samples) >= MAX_SAMPLES:
            raise SampleLimitError(f"Session already holds {MAX_SAMPLES} samples")
        return replace(self, samples=self.samples + (sample,))

    def with_axis(self, axis: AxisEstimate) -> "PolarAlignState":
        return replace(self, axis=axis)

    def with_search_range(self, degrees: float) -> "PolarAlignState":
        return replace(self, max_pixel_search_range_deg=clamp_search_range(degrees))

    def cleared(self) -> "PolarAlignState":
        return replace(self, samples=(), axis=None)


def estimate_axis(samples, hemisphere: Hemisphere) -> AxisEstimate:
    """Fit the mount axis to three samples and measure its error."""
    if len(samples) != MAX_SAMPLES:
        raise InsufficientSamplesError(
            f"Need {MAX_SAMPLES} samples to compute the mount axis, have {len(samples)}"
        )
    axis = fit_axis(*(s.direction for s in samples), hemisphere=hemisphere)
    az, alt = to_az_alt(axis)
    az_error, alt_error = hemisphere.axis_error(az, alt)
    return AxisEstimate(
        azimuth_deg=az, altitude_deg=alt, az_error_deg=az_error, alt_error_deg=alt_error
    )


def _grid(low: float, high: float, step: float) -> np.ndarray:
    # Upper bound excluded.
    count = max(1, int(round((high - low) / step)))
    return low + step * np.arange(count)


class PolarAlignService:
    def __init__(
        self,
        location: ObserverLocation,
        frame: HorizonFrame | None = None,
        max_pixel_search_range_deg: float = DEFAULT_MAX_PIXEL_SEARCH_RANGE_DEG,
    ):
        if location is None or location.latitude_deg is None:
            raise ValueError("Observer location is required (lat/lon)")
        self._location = location
        self._hemisphere = Hemisphere.of(location)
        self._frame = frame or AstropyHorizonFrame(location)
        self._state = PolarAlignState(
            max_pixel_search_range_deg=clamp_search_range(max_pixel_search_range_deg)
        )

    @property
    def location(self) -> ObserverLocation:
        return self._location

    @property
    def hemisphere(self) -> Hemisphere:
        return self._hemisphere

    @property
    def state(self) -> PolarAlignState:
        return self._state

    @property
    def samples(self) -> tuple[Sample, ...]:
        return self._state.samples

    @property
    def axis(self) -> AxisEstimate | None:
        return self._state.axis

    @property
    def max_pixel_search_range_deg(self) -> float:
        return self._state.max_pixel_search_range_deg

    def reset(self) -> None:
        self._state = self._state.cleared()

    def set_max_pixel_search_range(self, degrees: float) -> None:
        self._state = self._state.with_search_range(degrees)

    def _require_axis(self) -> AxisEstimate:
        if self._state.axis is None:
            raise AxisNotComputedError("Mount axis has not been computed")
        return self._state.axis

    def _pixel_az_alt(self, image: SolvedImage, pixel: Pixel):
        if image.projection is None:
            raise InputUnavailableError("Image has no astrometric solution")
        coord = image.projection.pixel_to_sky(pixel.x, pixel.y)
        if coord is None:
            raise InputUnavailableError(
                f"No sky coordinate for pixel ({pixel.x:.1f}, {pixel.y:.1f})"
            )
        az, alt = self._frame.to_horizontal(coord, image.timestamp_utc)
        return coord, az, alt

    def add_sample(self, image: SolvedImage) -> Sample:
        if len(self._state.samples) >= MAX_SAMPLES:
            raise SampleLimitError(f"Session already holds {MAX_SAMPLES} samples")
        coord, az, alt = self._pixel_az_alt(image, image.center)
        sample = Sample(
            azimuth_deg=az,
            altitude_deg=alt,
            timestamp_utc=as_utc(image.timestamp_utc),
            coord=coord,
        )
        logger.info(
            "addSample %d: ra0 %.4f dec0 %.4f az %.4f alt %.4f",
            len(self._state.samples) + 1,
            coord.spherical.lon.deg,
            coord.spherical.lat.deg,
            az,
            alt,
        )
        self._state = self._state.with_sample(sample)
        return sample

    def compute_axis(self) -> AxisEstimate:
        axis = estimate_axis(self._state.samples, self._hemisphere)
        logger.info(
            "Mount axis az %.4f alt %.4f, error %s",
            axis.azimuth_deg,
            axis.altitude_deg,
            format_error(axis.az_error_deg, axis.alt_error_deg),
        )
        self._state = self._state.with_axis(axis)
        return axis

    def get_axis(self) -> tuple[float, float]:
        axis = self._require_axis()
        return axis.azimuth_deg, axis.altitude_deg

    def current_error(self) -> tuple[float, float]:
        axis = self._require_axis()
        return axis.az_error_deg, axis.alt_error_deg

    def _corrected_pixels(
        self,
        image: SolvedImage,
        azimuth_deg: float,
        altitude_deg: float,
        az_errors,
        alt_errors,
    ) -> tuple[np.ndarray, np.ndarray]:
        # Where a star at (azimuth, altitude) goes once each candidate error is corrected.
        az_rotations, alt_rotations = self._hemisphere.correction_angles(az_errors, alt_errors)
        az, alt = rotate_ra_axis(azimuth_deg, altitude_deg, az_rotations, alt_rotations)
        coords = self._frame.to_catalog(az, alt, image.timestamp_utc)
        return image.projection.sky_to_pixel(coords)

    def guidance_target(
        self, image: SolvedImage, pixel: Pixel, alt_only: bool = False
    ) -> Pixel:
        """Pixel the star at ``pixel`` must be moved to for zero polar error.

        With ``alt_only`` only the altitude knob is accounted for, giving the
        intermediate point reached before the azimuth knob is turned.
        """
        axis = self._require_axis()
        az_error = 0.0 if alt_only else axis.az_error_deg
        _, az, alt = self._pixel_az_alt(image, pixel)
        x, y = self._corrected_pixels(image, az, alt, [az_error], [axis.alt_error_deg])
        if np.isnan(x[0]) or np.isnan(y[0]):
            raise InputUnavailableError(
                f"Could not map corrected position az {az:.4f} alt {alt:.4f} to a pixel"
            )
        return Pixel(float(x[0]), float(y[0]))

    def _progress_pass(
        self,
        image: SolvedImage,
        azimuth_deg: float,
        altitude_deg: float,
        target: Pixel,
        az_values: np.ndarray,
        alt_values: np.ndarray,
    ):
        az_grid, alt_grid = np.meshgrid(az_values, alt_values, indexing="ij")
        az_flat = az_grid.ravel()
        alt_flat = alt_grid.ravel()
        x, y = self._corrected_pixels(image, azimuth_deg, altitude_deg, az_flat, alt_flat)
        dist_sq = (x - target.x) ** 2 + (y - target.y) ** 2
        if np.all(np.isnan(dist_sq)):
            raise SearchNonConvergenceError("No candidate correction maps onto the image")
        i = int(np.nanargmin(dist_sq))
        return float(az_flat[i]), float(alt_flat[i]), Pixel(float(x[i]), float(y[i]))

    def estimate_progress(
        self, image: SolvedImage, pixel: Pixel, target_pixel: Pixel
    ) -> tuple[float, float]:
        """Error that moving a star from ``pixel`` to ``target_pixel`` would correct.

        ``pixel`` is the star's current position and ``target_pixel`` the
        position returned by ``guidance_target``. The error is searched on a
        coarse grid spanning the maximum pixel-search range, then refined
        twice.
        """
        self._require_axis()
        _, az, alt = self._pixel_az_alt(image, pixel)

        span = self._state.max_pixel_search_range_deg
        values = _grid(-span, span, PROGRESS_COARSE_STEP_DEG)
        az_e, alt_e, best = self._progress_pass(image, az, alt, target_pixel, values, values)
        for half_span, step in PROGRESS_REFINEMENTS:
            az_e, alt_e, best = self._progress_pass(
                image,
                az,
                alt,
                target_pixel,
                _grid(az_e - half_span, az_e + half_span, step),
                _grid(alt_e - half_span, alt_e + half_span, step),
            )

        distance = best.distance_to(target_pixel)
        if distance > PROGRESS_MAX_PIXEL_DISTANCE:
            logger.info("Progress estimate failed: best match %.1f px from target", distance)
            raise SearchNonConvergenceError(
                f"Could not estimate progress: closest match is {distance:.1f} px from target"
            )
        return az_e, alt_e

    def process_refresh(
        self, coord: SkyCoord, time_utc: datetime.datetime
    ) -> RefreshResult:
        """Polar-alignment error after knob adjustments, from a refresh image's centre.

        The third sample is carried forward by sidereal tracking about the
        fitted axis; the difference between that prediction and ``coord``
        is the knob adjustment the user made, and the fitted axis moved by
        the same adjustment is the mount's new axis.
        """
        axis = self._require_axis()
        third = self._state.samples[MAX_SAMPLES - 1]

        az, alt = self._frame.to_horizontal(coord, time_utc)
        observed = to_direction(az, alt)

        elapsed_s = (as_utc(time_utc) - third.timestamp_utc).total_seconds()
        tracking_deg = SIDEREAL_RATE_ARCSEC_PER_S * elapsed_s / 3600.0
        predicted = rotate_around_axis(
            third.direction, self._hemisphere.north_facing(axis.direction), tracking_deg
        )

        solution = best_rotation(predicted, observed)
        if solution.residual_deg > REFRESH_MAX_RESIDUAL_DEG:
            logger.info(
                "Refresh: failed to estimate rotation angle (residual %s)",
                format_angle(solution.residual_deg),
            )
            raise SearchNonConvergenceError(
                "Could not determine the knob adjustment from the refresh image"
            )

        new_az, new_alt = to_az_alt(apply_adjustment(axis.direction, solution.adjustment))
        az_error, alt_error = self._hemisphere.axis_error(new_az, new_alt)
        logger.info(
            "Refresh: adjustment az %s alt %s residual %s; axis %.3f %.3f -> %.3f %.3f; error %s",
            format_angle(solution.azimuth_deg),
            format_angle(solution.altitude_deg),
            format_angle(solution.residual_deg, "arcsec", 0),
            axis.azimuth_deg,
            axis.altitude_deg,
            new_az,
            new_alt,
            format_error(az_error, alt_error),
        )
        return RefreshResult(
            az_error_deg=az_error,
            alt_error_deg=alt_error,
            adjustment=solution.adjustment,
            residual_deg=solution.residual_deg,
            axis_azimuth_deg=new_az,
            axis_altitude_deg=new_alt,
        )

    def correction_target(self) -> CorrectionTarget:
        axis = self._require_axis()
        third = self._state.samples[MAX_SAMPLES - 1]
        correction = self._hemisphere.correction(axis.az_error_deg, axis.alt_error_deg)

        alt_only = rotate_y(third.direction, correction.altitude_deg)
        full = apply_adjustment(third.direction, correction)
        (az, alt), (alt_only_az, alt_only_alt) = to_az_alt(full), to_az_alt(alt_only)
        return CorrectionTarget(
            coord=self._frame.to_catalog(az, alt, third.timestamp_utc),
            alt_only_coord=self._frame.to_catalog(alt_only_az, alt_only_alt, third.timestamp_utc),
        )
