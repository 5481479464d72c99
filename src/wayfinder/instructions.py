# instructions.py
# Turns a route step plus a distance into a localized guidance object and
# decides whether a new instruction must be announced.

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional

from .models import ManeuverType, NavigationInstruction, RouteStep, TimingClass
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Phrase books
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PhraseBook:
    """
    Language pack for guidance text.

    Forms:
        ahead:  maneuver still in front of the traveler ("In 120 m, turn right")
        now:    maneuver is imminent ("Turn right now")
        leg:    maneuver done, distance left on the leg ("Turn right, then continue for 300 m")
    """
    language: str
    maneuvers: Dict[ManeuverType, str]
    ahead: str
    now: str
    leg: str
    arriving: str
    onto_street: str
    immediate: str
    meters: str
    kilometers: str
    leg_overrides: Dict[ManeuverType, str] = field(default_factory=dict)
    capitalize: bool = True

    def describe(self, maneuver: ManeuverType) -> str:
        """Bare maneuver phrase, e.g. for a step's instruction template."""
        return self._finish(self.maneuvers.get(maneuver, self.maneuvers[ManeuverType.STRAIGHT]))

    def render(self, maneuver: ManeuverType, distance_text: str, form: str) -> str:
        phrase = self.maneuvers.get(maneuver, self.maneuvers[ManeuverType.STRAIGHT])
        if form == "leg":
            template = self.leg_overrides.get(maneuver, self.leg)
        elif form == "arriving":
            template = self.arriving
        else:
            template = getattr(self, form)
        return self._finish(template.format(maneuver=phrase, distance=distance_text))

    def _finish(self, text: str) -> str:
        if self.capitalize and text:
            return text[0].upper() + text[1:]
        return text


ENGLISH = PhraseBook(
    language="en",
    maneuvers={
        ManeuverType.START:            "head out",
        ManeuverType.STRAIGHT:         "continue straight",
        ManeuverType.TURN_LEFT:        "turn left",
        ManeuverType.TURN_RIGHT:       "turn right",
        ManeuverType.SLIGHT_LEFT:      "bear left",
        ManeuverType.SLIGHT_RIGHT:     "bear right",
        ManeuverType.SHARP_LEFT:       "turn sharp left",
        ManeuverType.SHARP_RIGHT:      "turn sharp right",
        ManeuverType.U_TURN:           "make a U-turn",
        ManeuverType.ROUNDABOUT_ENTER: "enter the roundabout",
        ManeuverType.ROUNDABOUT_EXIT:  "exit the roundabout",
        ManeuverType.MERGE:            "merge",
        ManeuverType.EXIT:             "take the exit",
        ManeuverType.KEEP_LEFT:        "keep left",
        ManeuverType.KEEP_RIGHT:       "keep right",
        ManeuverType.ARRIVE:           "arrive at your destination",
    },
    ahead="In {distance}, {maneuver}",
    now="{maneuver} now",
    leg="{maneuver}, then continue for {distance}",
    arriving="Your destination is just ahead",
    onto_street=" onto {street}",
    immediate="immediately",
    meters="{value} m",
    kilometers="{value} km",
    leg_overrides={
        ManeuverType.START:    "head out for {distance}",
        ManeuverType.STRAIGHT: "continue straight for {distance}",
        ManeuverType.ARRIVE:   "your destination is in {distance}",
    },
)

TRADITIONAL_CHINESE = PhraseBook(
    language="zh-TW",
    maneuvers={
        ManeuverType.START:            "出發",
        ManeuverType.STRAIGHT:         "直行",
        ManeuverType.TURN_LEFT:        "左轉",
        ManeuverType.TURN_RIGHT:       "右轉",
        ManeuverType.SLIGHT_LEFT:      "輕微左轉",
        ManeuverType.SLIGHT_RIGHT:     "輕微右轉",
        ManeuverType.SHARP_LEFT:       "向左急轉",
        ManeuverType.SHARP_RIGHT:      "向右急轉",
        ManeuverType.U_TURN:           "迴轉",
        ManeuverType.ROUNDABOUT_ENTER: "進入圓環",
        ManeuverType.ROUNDABOUT_EXIT:  "離開圓環",
        ManeuverType.MERGE:            "匯入車道",
        ManeuverType.EXIT:             "從出口離開",
        ManeuverType.KEEP_LEFT:        "靠左行駛",
        ManeuverType.KEEP_RIGHT:       "靠右行駛",
        ManeuverType.ARRIVE:           "到達目的地",
    },
    ahead="前方 {distance} {maneuver}",
    now="立即{maneuver}",
    leg="{maneuver}後繼續行駛 {distance}",
    arriving="即將到達目的地",
    onto_street="進入 {street}",
    immediate="立即",
    meters="{value} 公尺",
    kilometers="{value} 公里",
    leg_overrides={
        ManeuverType.STRAIGHT: "直行 {distance}",
        ManeuverType.ARRIVE:   "距離目的地 {distance}",
    },
    capitalize=False,
)

PHRASEBOOKS: Dict[str, PhraseBook] = {
    ENGLISH.language: ENGLISH,
    TRADITIONAL_CHINESE.language: TRADITIONAL_CHINESE,
}

ICONS: Dict[ManeuverType, str] = {
    ManeuverType.START:            "depart",
    ManeuverType.STRAIGHT:         "arrow-straight",
    ManeuverType.TURN_LEFT:        "arrow-left",
    ManeuverType.TURN_RIGHT:       "arrow-right",
    ManeuverType.SLIGHT_LEFT:      "arrow-slight-left",
    ManeuverType.SLIGHT_RIGHT:     "arrow-slight-right",
    ManeuverType.SHARP_LEFT:       "arrow-sharp-left",
    ManeuverType.SHARP_RIGHT:      "arrow-sharp-right",
    ManeuverType.U_TURN:           "arrow-u-turn",
    ManeuverType.ROUNDABOUT_ENTER: "roundabout",
    ManeuverType.ROUNDABOUT_EXIT:  "roundabout-exit",
    ManeuverType.MERGE:            "merge",
    ManeuverType.EXIT:             "exit",
    ManeuverType.KEEP_LEFT:        "keep-left",
    ManeuverType.KEEP_RIGHT:       "keep-right",
    ManeuverType.ARRIVE:           "flag",
}


# ---------------------------------------------------------------------------
# Distance formatting
# ---------------------------------------------------------------------------

IMMEDIATE_DISTANCE_M = 50.0


def distance_bucket(
    meters: float,
    phrases: PhraseBook = ENGLISH,
    immediate_m: float = IMMEDIATE_DISTANCE_M,
) -> str:
    """
    Format a distance for guidance.

    Below immediate_m the language's "immediate" word is used; below 1000 m
    the value is rounded to the nearest 10 m; above that, kilometres with
    one decimal.
    """
    if meters < immediate_m:
        return phrases.immediate
    if meters < 1000:
        rounded = int(math.floor(meters / 10 + 0.5) * 10)
        return phrases.meters.format(value=rounded)
    return phrases.kilometers.format(value=f"{meters / 1000:.1f}")


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class InstructionGenerator:
    """
    Builds NavigationInstruction objects and throttles announcements.

    Args:
        config:   NavConfig instance with guidance thresholds.
        language: Phrase book key; defaults to config.language.
    """

    def __init__(self, config: Optional[NavConfig] = None, language: Optional[str] = None) -> None:
        self.config = config or NavConfig()
        lang = language or self.config.language
        if lang not in PHRASEBOOKS:
            raise ValueError(f"Unsupported guidance language '{lang}'. Known: {sorted(PHRASEBOOKS)}")
        self.phrases = PHRASEBOOKS[lang]

    def timing_for(self, distance_m: float) -> TimingClass:
        if distance_m < self.config.immediate_distance_m:
            return TimingClass.IMMEDIATE
        elif distance_m < self.config.near_distance_m:
            return TimingClass.NEAR
        return TimingClass.NORMAL

    def build_instruction(
        self,
        step: RouteStep,
        distance_m: float,
        to_destination: bool = False,
        upcoming: bool = False,
    ) -> NavigationInstruction:
        """
        Create the guidance object for a step.

        Args:
            step:           Route step whose maneuver is described.
            distance_m:     Distance to the maneuver point (upcoming) or
                            remaining on the step's leg.
            to_destination: The leg ends at the destination.
            upcoming:       The maneuver lies ahead at distance_m.

        Returns:
            NavigationInstruction with text, icon, timing and spoken flag.
        """
        distance_m = max(0.0, distance_m)
        timing = self.timing_for(distance_m)
        distance_text = distance_bucket(distance_m, self.phrases, self.config.immediate_distance_m)
        immediate = timing is TimingClass.IMMEDIATE

        if upcoming:
            form = "now" if immediate else "ahead"
        elif immediate and to_destination:
            form = "arriving"
        elif immediate:
            form = None
        else:
            form = "leg"

        if form is None:
            text = self.phrases.describe(step.maneuver)
        else:
            text = self.phrases.render(step.maneuver, distance_text, form)
        if step.street_name and form != "arriving":
            text += self.phrases.onto_street.format(street=step.street_name)

        return NavigationInstruction(
            maneuver=step.maneuver,
            text=text,
            distance_text=distance_text,
            distance_m=distance_m,
            icon=ICONS.get(step.maneuver, ICONS[ManeuverType.STRAIGHT]),
            timing=timing,
            spoken=distance_m <= self.config.spoken_distance_m,
            step_index=step.index,
            street_name=step.street_name,
            to_destination=to_destination and not upcoming,
        )

    def should_announce(
        self,
        previous: Optional[NavigationInstruction],
        candidate: NavigationInstruction,
    ) -> bool:
        """
        Decide whether candidate must be announced.

        True when nothing was announced yet, when the maneuver type changed
        since the last announcement, or when the distance crosses into the
        immediate-turn threshold. A leg ending at the destination never
        triggers the crossing rule; arrival is announced by the session.
        """
        if previous is None:
            return True
        if candidate.maneuver != previous.maneuver:
            return True
        if candidate.to_destination:
            return False
        threshold = self.config.announce_threshold_m
        return previous.distance_m > threshold >= candidate.distance_m
