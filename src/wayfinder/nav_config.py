# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

from dataclasses import dataclass, field
from typing import Dict

from .models import TravelMode


# ---------------------------------------------------------------------------
# Travel mode constants
# ---------------------------------------------------------------------------

WALKING_SPEED_KMH: float = 5.0  # km/h

MODE_SPEEDS_KMH: Dict[TravelMode, float] = {
    TravelMode.WALKING: WALKING_SPEED_KMH,
    TravelMode.CYCLING: 15.0,
    TravelMode.DRIVING: 50.0,
}


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Location filter
    process_noise: float = 0.1
    measurement_noise: float = 1.0
    initial_error: float = 1.0
    history_size: int = 10
    bootstrap_samples: int = 3
    max_speed_kmh: float = 200.0           # implied speed above this is a jump
    reset_gap_s: float = 30.0              # silence longer than this resets the filter
    excellent_accuracy_m: float = 5.0
    good_accuracy_m: float = 10.0
    fair_accuracy_m: float = 20.0

    # Progress tracking
    deviation_threshold_m: float = 50.0
    major_deviation_threshold_m: float = 200.0
    consecutive_deviations_required: int = 3
    walk_back_speed_ms: float = 1.4
    walk_back_limit_s: float = 120.0
    step_advance_tolerance_m: float = 15.0
    arrival_tolerance_m: float = 15.0
    step_contiguity_tolerance_m: float = 10.0
    mode_speeds_kmh: Dict[TravelMode, float] = field(
        default_factory=lambda: dict(MODE_SPEEDS_KMH)
    )

    # Guidance
    language: str = "en"
    immediate_distance_m: float = 50.0
    near_distance_m: float = 200.0
    announce_threshold_m: float = 30.0     # "turn now" re-announcement
    spoken_distance_m: float = 500.0

    # Session
    tick_interval_s: float = 2.0
    max_recalculation_attempts: int = 3
    recalculation_timeout_s: float = 10.0
    recalculation_retry_delay_s: float = 1.0

    def __post_init__(self) -> None:
        if self.deviation_threshold_m >= self.major_deviation_threshold_m:
            raise ValueError("deviation_threshold_m must be below major_deviation_threshold_m")
        if self.consecutive_deviations_required < 1:
            raise ValueError("consecutive_deviations_required must be at least 1")
        if self.history_size < self.bootstrap_samples:
            raise ValueError("history_size must hold at least bootstrap_samples fixes")
        if self.max_recalculation_attempts < 1:
            raise ValueError("max_recalculation_attempts must be at least 1")
        if self.tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be positive")

    def mode_speed_ms(self, mode: TravelMode) -> float:
        """Nominal travel speed for a mode in metres per second."""
        kmh = self.mode_speeds_kmh.get(mode, self.mode_speeds_kmh[TravelMode.DRIVING])
        return kmh * 1000 / 3600
