# location_filter.py
# Turns a stream of raw fixes into a smoothed, quality-annotated stream.
# One instance belongs to one navigation session; reset() between sessions.

import dataclasses
import logging
import math
from collections import deque
from typing import Deque, Optional

import numpy as np

from .errors import SensorDataInvalid
from .geo_utils import distance
from .models import GeoPoint, LocationStatistics, SignalQuality
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


class LocationFilter:
    """
    Jump rejection plus an independent scalar Kalman filter per axis.

    Usage:
        loc_filter = LocationFilter(config)

        # For every raw fix:
        smoothed = loc_filter.ingest(raw)
        quality  = loc_filter.classify_quality(smoothed)

    Args:
        config: NavConfig instance with filter parameters.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self._process_noise = self.config.process_noise
        self._measurement_noise = self.config.measurement_noise
        self._history: Deque[GeoPoint] = deque(maxlen=self.config.history_size)
        self._last_good: Optional[GeoPoint] = None
        self._last_raw: Optional[GeoPoint] = None            # jump reference
        self._estimate: Optional[np.ndarray] = None          # [lat, lon]
        self._error = np.full(2, self.config.initial_error)
        self._gain = np.zeros(2)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear history and restore the initial error covariance."""
        self._history.clear()
        self._last_good = None
        self._last_raw = None
        self._estimate = None
        self._error = np.full(2, self.config.initial_error)
        self._gain = np.zeros(2)

    def configure(self, process_noise: float, measurement_noise: float) -> None:
        """Retune the Kalman noise parameters at runtime."""
        self._process_noise = max(0.01, process_noise)
        self._measurement_noise = max(0.1, measurement_noise)

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def last_known_good(self) -> Optional[GeoPoint]:
        return self._last_good

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def gain(self) -> np.ndarray:
        return self._gain.copy()

    # ------------------------------------------------------------------
    # Core method, called on every raw fix
    # ------------------------------------------------------------------

    def ingest(self, raw: GeoPoint) -> GeoPoint:
        """
        Filter one raw fix.

        Args:
            raw: Fix as delivered by the location source.

        Returns:
            The smoothed fix, or the last-known-good fix if raw was a jump.

        Raises:
            SensorDataInvalid: raw is missing or carries impossible values.
        """
        self._validate(raw)

        if self._last_good is not None and raw.timestamp - self._last_good.timestamp > self.config.reset_gap_s:
            logger.info(
                f"{raw.timestamp - self._last_good.timestamp:.0f} s since last fix — resetting filter."
            )
            self.reset()

        # 1. Jump rejection
        if self._is_jump(raw):
            logger.debug(f"Rejected jump to ({raw.lat:.6f}, {raw.lon:.6f}).")
            return self._last_good

        self._last_raw = raw

        # 2. Bootstrap
        if len(self._history) < self.config.bootstrap_samples:
            self._accept(raw)
            return raw

        # 3. Kalman smoothing
        smoothed = self._apply_kalman(raw)
        self._accept(smoothed)
        return smoothed

    def classify_quality(self, point: Optional[GeoPoint]) -> SignalQuality:
        """Signal quality from the fix's accuracy radius; unknown is poor."""
        if point is None or point.accuracy_m is None:
            return SignalQuality.POOR
        accuracy = point.accuracy_m
        if accuracy <= self.config.excellent_accuracy_m:
            return SignalQuality.EXCELLENT
        elif accuracy <= self.config.good_accuracy_m:
            return SignalQuality.GOOD
        elif accuracy <= self.config.fair_accuracy_m:
            return SignalQuality.FAIR
        return SignalQuality.POOR

    def statistics(self) -> LocationStatistics:
        """Accuracy and speed statistics over the current history."""
        if not self._history:
            return LocationStatistics()

        accuracies = np.array([p.accuracy_m for p in self._history if p.accuracy_m is not None])
        speeds = np.array([p.speed_ms for p in self._history if p.speed_ms is not None])

        return LocationStatistics(
            sample_count=len(self._history),
            average_accuracy_m=float(accuracies.mean()) if accuracies.size else 0.0,
            min_accuracy_m=float(accuracies.min()) if accuracies.size else 0.0,
            max_accuracy_m=float(accuracies.max()) if accuracies.size else 0.0,
            average_speed_ms=float(speeds.mean()) if speeds.size else 0.0,
            current_quality=self.classify_quality(self._last_good),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(raw: Optional[GeoPoint]) -> None:
        if raw is None:
            raise SensorDataInvalid("Missing fix.")
        if not (math.isfinite(raw.lat) and math.isfinite(raw.lon)):
            raise SensorDataInvalid(f"Non-finite coordinates: ({raw.lat}, {raw.lon}).")
        if not (-90.0 <= raw.lat <= 90.0 and -180.0 <= raw.lon <= 180.0):
            raise SensorDataInvalid(f"Coordinates out of range: ({raw.lat}, {raw.lon}).")
        if raw.accuracy_m is not None and not raw.accuracy_m >= 0:
            raise SensorDataInvalid(f"Invalid accuracy radius: {raw.accuracy_m}.")
        if not math.isfinite(raw.timestamp):
            raise SensorDataInvalid(f"Invalid timestamp: {raw.timestamp}.")

    def _is_jump(self, raw: GeoPoint) -> bool:
        if self._last_raw is None:
            return False
        dt = raw.timestamp - self._last_raw.timestamp
        if dt <= 0:
            return False
        speed_kmh = distance(self._last_raw, raw) / dt * 3.6
        return speed_kmh > self.config.max_speed_kmh

    def _apply_kalman(self, raw: GeoPoint) -> GeoPoint:
        measurement = np.array([raw.lat, raw.lon])

        # Predict
        predicted_error = self._error + self._process_noise
        # Update
        self._gain = predicted_error / (predicted_error + self._measurement_noise)
        self._estimate = self._estimate + self._gain * (measurement - self._estimate)
        self._error = (1 - self._gain) * predicted_error

        return dataclasses.replace(raw, lat=float(self._estimate[0]), lon=float(self._estimate[1]))

    def _accept(self, point: GeoPoint) -> None:
        self._history.append(point)
        self._last_good = point
        self._estimate = np.array([point.lat, point.lon])
