# nav_logger.py
# Default event sink: writes every navigation event as a JSON line
# through the standard logging module.

import json
import logging
from datetime import datetime
from typing import Optional

from .errors import NavigationError
from .models import DeviationResult, NavigationInstruction, NavigationSummary, Route
from .nav_config import NavConfig

# Standard Python logger, configured at the app entry point
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Records navigation events as structured log lines.

    Every event becomes one INFO (or WARNING/ERROR) record whose message is
    a JSON object with the event name, a timestamp and the payload.

    Args:
        config: NavConfig instance; the language tag is attached to events.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self.event_count = 0

    # ------------------------------------------------------------------
    # Sink interface
    # ------------------------------------------------------------------

    def instruction_updated(self, instruction: NavigationInstruction) -> None:
        self._write("instruction_updated", instruction.to_dict())

    def deviation_detected(self, result: DeviationResult) -> None:
        self._write("deviation_detected", result.to_dict(), level=logging.WARNING)

    def route_recalculated(self, route: Route) -> None:
        self._write("route_recalculated", {
            "route_id": route.route_id,
            "step_count": len(route.steps),
            "distance_m": round(route.total_distance_m, 1),
        })

    def navigation_completed(self, summary: NavigationSummary) -> None:
        self._write("navigation_completed", summary.to_dict())

    def navigation_failed(self, error: NavigationError) -> None:
        self._write("navigation_failed", {
            "error": type(error).__name__,
            "message": str(error),
        }, level=logging.ERROR)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(self, event: str, payload: dict, level: int = logging.INFO) -> None:
        entry = {
            "timestamp": datetime.now().isoformat(),
            "event": event,
            "language": self.config.language,
            **payload,
        }
        self.event_count += 1
        logger.log(level, json.dumps(entry, ensure_ascii=False))
