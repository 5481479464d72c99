# navigator.py
# Public entry point for the navigation engine.
# Runs the session state machine; filtering, tracking and guidance are
# delegated to the specialist modules.

import asyncio
import inspect
import logging
import time
import uuid
from typing import Any, Iterable, List, Optional, Set

from .errors import RecalculationFailed, RouteUnavailable, SensorDataInvalid
from .geo_utils import distance
from .instructions import InstructionGenerator
from .interfaces import NavigationEventSink, RawLocationSource, RouteProvider
from .location_filter import LocationFilter
from .models import (
    DeviationCounters,
    DeviationResult,
    GeoPoint,
    NavigationInstruction,
    NavigationSession,
    NavigationSummary,
    ProgressResult,
    Route,
    RouteAction,
    SessionState,
    TravelMode,
)
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .route_builder import validate_route
from .route_tracker import RouteTracker

logger = logging.getLogger(__name__)

# Channel message kinds
_FIX = "fix"
_ROUTE = "route"
_RECALC_FAILED = "recalc_failed"


class NavigationSystem:
    """
    Navigation session controller.

    Every input (pushed fixes, periodic ticks, re-routing results) goes
    through one asyncio.Queue drained by a single actor task, so session
    state is only ever mutated by one evaluation at a time.

    Typical lifecycle:
        async with NavigationSystem(provider, source) as nav:
            await nav.start(route)

            # Fixes arrive via source.subscribe(), the periodic tick,
            # or explicitly:
            result = await nav.submit(GeoPoint(lat, lon, accuracy_m=5.0))

            await nav.stop()

    Args:
        route_provider:  Computes routes for start_navigation() and re-routing.
        location_source: Optional raw fix source (pull and/or push).
        sinks:           Event receivers; defaults to a NavLogger.
        config:          Optional NavConfig; defaults to NavConfig().
    """

    def __init__(
        self,
        route_provider: RouteProvider,
        location_source: Optional[RawLocationSource] = None,
        sinks: Optional[Iterable[NavigationEventSink]] = None,
        config: Optional[NavConfig] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._provider = route_provider
        self._source = location_source
        self._sinks: List[NavigationEventSink] = (
            list(sinks) if sinks is not None else [NavLogger(self.config)]
        )

        # Specialist modules
        self._filter       = LocationFilter(self.config)
        self._tracker      = RouteTracker(self.config)
        self._instructions = InstructionGenerator(self.config)
        self._counters     = DeviationCounters()

        # Session state
        self._session: Optional[NavigationSession] = None
        self._state = SessionState.IDLE
        self._generation = 0
        self._last_instruction: Optional[NavigationInstruction] = None
        self.last_error: Optional[Exception] = None

        # Scoped resources
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._channel: Optional[asyncio.Queue] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._recalc_task: Optional[asyncio.Task] = None
        self._unsubscribe = None
        self._sink_tasks: Set[asyncio.Future] = set()

    async def __aenter__(self) -> "NavigationSystem":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[NavigationSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.active

    @property
    def remaining_steps(self) -> int:
        if self._session is None:
            return 0
        return max(0, len(self._session.route.steps) - self._session.current_step_index)

    @property
    def location_filter(self) -> LocationFilter:
        return self._filter

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    async def start_navigation(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        mode: TravelMode = TravelMode.WALKING,
    ) -> NavigationSession:
        """
        Compute a route with the route provider and start navigating it.

        Raises:
            RouteUnavailable: the provider failed.
            RouteMalformed:   the provider returned an unusable route.
        """
        logger.info(f"Calculating route: ({origin.lat:.6f}, {origin.lon:.6f}) → "
                    f"({destination.lat:.6f}, {destination.lon:.6f}) [{mode.value}]")
        try:
            route = await asyncio.wait_for(
                self._provider.compute_route(origin, destination, mode),
                timeout=self.config.recalculation_timeout_s,
            )
        except Exception as exc:
            logger.warning(f"Route calculation failed: {exc}")
            raise RouteUnavailable(f"Route calculation failed: {exc}") from exc
        return await self.start(route)

    async def start(self, route: Route) -> NavigationSession:
        """
        Begin tracking a route; any previous session is stopped first.

        Raises:
            RouteMalformed: the route cannot be navigated; nothing changes.
        """
        validate_route(route, self.config)

        if self.is_active:
            await self.stop(reason="superseded")

        self._ensure_pump()
        self._generation += 1
        self._filter.reset()
        self._counters.reset()
        self._last_instruction = None
        self.last_error = None
        self._session = NavigationSession(
            route=route,
            start_time=time.time(),
            session_id=uuid.uuid4().hex,
        )
        self._state = SessionState.ACTIVE

        try:
            self._tick_task = self._loop.create_task(self._tick_loop(self._generation))
            subscribe = getattr(self._source, "subscribe", None)
            if subscribe is not None:
                self._unsubscribe = subscribe(self.push_fix)
        except Exception:
            self._finish(SessionState.STOPPED, "error")
            raise

        logger.info(
            f"Navigation started — {len(route.steps)} steps, "
            f"{route.total_distance_m:.0f} m ({route.mode.value})."
        )
        return self._session

    async def stop(self, reason: str = "user-stopped") -> Optional[NavigationSummary]:
        """
        End the current session from any state.

        A session that already arrived keeps the ARRIVED state and emits
        nothing further.

        Returns:
            The summary emitted with navigation_completed, or None when no
            session was active.
        """
        current = asyncio.current_task()
        pending = [
            task for task in (self._tick_task, self._recalc_task)
            if task is not None and task is not current
        ]

        summary = None
        if self.is_active:
            summary = self._finish(SessionState.STOPPED, reason)
            logger.info(f"Navigation stopped ({reason}).")
        else:
            self._generation += 1
            self._teardown()
            # Arrived stays terminal for its session
            if self._state is not SessionState.ARRIVED:
                self._state = SessionState.STOPPED

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return summary

    async def close(self) -> None:
        """Stop any session and release the actor task."""
        if self.is_active:
            await self.stop()

        pump, self._pump_task = self._pump_task, None
        if pump is not None:
            pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)

        if self._channel is not None:
            while not self._channel.empty():
                _, _, _, future = self._channel.get_nowait()
                if future is not None and not future.done():
                    future.cancel()
            self._channel = None

        sink_tasks = list(self._sink_tasks)
        for task in sink_tasks:
            task.cancel()
        if sink_tasks:
            await asyncio.gather(*sink_tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Fix intake: every path funnels into the channel
    # ------------------------------------------------------------------

    def push_fix(self, point: GeoPoint) -> None:
        """
        Fire-and-forget delivery of a raw fix; safe to call from any thread.
        """
        if self._channel is None or not self.is_active:
            logger.debug("Fix pushed while navigation is not active — ignored.")
            return

        item = (_FIX, point, self._generation, None)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._channel.put_nowait(item)
        else:
            self._loop.call_soon_threadsafe(self._channel.put_nowait, item)

    async def submit(self, point: GeoPoint) -> ProgressResult:
        """
        Evaluate a raw fix and wait for the outcome.

        Args:
            point: Raw fix.

        Returns:
            ProgressResult containing SessionState, message and guidance info.
        """
        if self._channel is None or not self.is_active:
            return self._inactive_result()
        return await self._post(_FIX, point, self._generation)

    async def tick(self) -> Optional[ProgressResult]:
        """Pull one fix from the location source and evaluate it."""
        if not self.is_active:
            return None
        pull = getattr(self._source, "get_current_location", None)
        if pull is None:
            return None
        point = await pull()
        if point is None:
            return None
        return await self.submit(point)

    async def wait_for_recalculation(self) -> None:
        """Wait until an in-flight re-routing finishes, succeeds or not."""
        task = self._recalc_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Actor
    # ------------------------------------------------------------------

    def _ensure_pump(self) -> None:
        if self._pump_task is None or self._pump_task.done():
            self._loop = asyncio.get_running_loop()
            self._channel = asyncio.Queue()
            self._pump_task = self._loop.create_task(self._pump())

    async def _post(self, kind: str, payload: Any, generation: int) -> Any:
        if self._channel is None:
            return self._inactive_result()
        future = self._loop.create_future()
        self._channel.put_nowait((kind, payload, generation, future))
        return await future

    async def _pump(self) -> None:
        while True:
            kind, payload, generation, future = await self._channel.get()
            try:
                result = self._dispatch(kind, payload, generation)
            except Exception as exc:
                logger.exception(f"Evaluation of '{kind}' failed — aborting session.")
                self._abort(exc)
                if future is not None and not future.done():
                    future.set_exception(exc)
            else:
                if future is not None and not future.done():
                    future.set_result(result)
            finally:
                self._channel.task_done()

    def _dispatch(self, kind: str, payload: Any, generation: int) -> Any:
        if generation != self._generation or not self.is_active:
            logger.debug(f"Discarding stale '{kind}' message.")
            return self._inactive_result()

        if kind == _FIX:
            return self._evaluate(payload)
        elif kind == _ROUTE:
            return self._apply_route(payload)
        elif kind == _RECALC_FAILED:
            return self._fail_recalculation(payload)
        raise ValueError(f"Unknown channel message '{kind}'.")

    async def _tick_loop(self, generation: int) -> None:
        while generation == self._generation:
            await asyncio.sleep(self.config.tick_interval_s)
            if generation != self._generation:
                break
            try:
                await self.tick()
            except Exception:
                logger.exception("Navigation tick failed.")

    # ------------------------------------------------------------------
    # Evaluation, runs on the actor only
    # ------------------------------------------------------------------

    def _evaluate(self, raw: GeoPoint) -> ProgressResult:
        session = self._session
        try:
            point = self._filter.ingest(raw)
        except SensorDataInvalid as exc:
            logger.debug(f"Ignoring fix: {exc}")
            return ProgressResult(
                state=self._state,
                message=f"Fix ignored: {exc}",
                location=session.current_location,
            )

        if session.current_location is not None:
            session.distance_travelled_m += distance(session.current_location, point)
        session.current_location = point
        quality = self._filter.classify_quality(point)

        if self._state is SessionState.RECALCULATING:
            return ProgressResult(
                state=self._state,
                message="Recalculating route.",
                location=point,
                quality=quality,
            )

        route = session.route

        # 1. Step advancement
        new_index = self._tracker.advance_step(point, route, session.current_step_index)
        if new_index != session.current_step_index:
            logger.info(f"Step {session.current_step_index} complete — now on step {new_index}.")
            session.current_step_index = new_index

        # 2. Arrival
        if self._has_arrived(point, route, session.current_step_index):
            session.current_step_index = len(route.steps)
            progress = self._tracker.progress(point, route, session.current_step_index)
            self._finish(SessionState.ARRIVED, "arrived")
            return ProgressResult(
                state=SessionState.ARRIVED,
                message="You have reached your destination.",
                location=point,
                quality=quality,
                progress=progress,
            )

        # 3. Progress and deviation
        progress = self._tracker.progress(point, route, session.current_step_index)
        deviation = self._tracker.check_deviation(point, route, self._counters)
        session.consecutive_deviations = self._counters.consecutive_misses
        session.last_known_good = self._counters.last_known_good

        if deviation.action is RouteAction.RECALCULATE:
            self._begin_recalculation(point, deviation)
            return ProgressResult(
                state=self._state,
                message=f"{deviation.message} Recalculating.",
                location=point,
                quality=quality,
                progress=progress,
                deviation=deviation,
            )

        if deviation.action is RouteAction.GET_BACK_ON_TRACK:
            if self._state is not SessionState.DEVIATED:
                self._state = SessionState.DEVIATED
                logger.warning(f"Off route by {deviation.lateral_distance_m:.0f} m — guiding back.")
                self._emit("deviation_detected", deviation)
            return ProgressResult(
                state=self._state,
                message="You are off the route. Head back to the route.",
                location=point,
                quality=quality,
                progress=progress,
                deviation=deviation,
            )

        if self._state is SessionState.DEVIATED:
            self._state = SessionState.ACTIVE
            logger.info("Back on route.")

        # 4. Guidance
        instruction = self._next_instruction(point, route, session.current_step_index)
        announced = self._instructions.should_announce(self._last_instruction, instruction)
        if announced:
            self._last_instruction = instruction
            session.current_instruction = instruction
            self._emit("instruction_updated", instruction)

        return ProgressResult(
            state=self._state,
            message=instruction.text,
            location=point,
            quality=quality,
            progress=progress,
            deviation=deviation,
            instruction=instruction,
            announced=announced,
        )

    def _next_instruction(self, point: GeoPoint, route: Route, step_index: int) -> NavigationInstruction:
        step = route.steps[step_index]
        remaining = distance(point, step.end)
        is_last = step_index == len(route.steps) - 1

        # Close to the end of a leg the next maneuver takes over
        if not is_last and remaining <= self.config.announce_threshold_m:
            return self._instructions.build_instruction(route.steps[step_index + 1], remaining, upcoming=True)
        return self._instructions.build_instruction(step, remaining, to_destination=is_last)

    def _has_arrived(self, point: GeoPoint, route: Route, step_index: int) -> bool:
        if step_index >= len(route.steps):
            return True
        if step_index < len(route.steps) - 1:
            return False
        return distance(point, route.destination) <= self.config.arrival_tolerance_m

    def _inactive_result(self) -> ProgressResult:
        location = self._session.current_location if self._session is not None else None
        return ProgressResult(
            state=self._state,
            message="Navigation is not active.",
            location=location,
        )

    # ------------------------------------------------------------------
    # Re-routing
    # ------------------------------------------------------------------

    def _begin_recalculation(self, origin: GeoPoint, deviation: DeviationResult) -> None:
        route = self._session.route
        self._state = SessionState.RECALCULATING
        logger.warning(f"Off route by {deviation.lateral_distance_m:.0f} m — recalculating.")
        self._emit("deviation_detected", deviation)
        self._recalc_task = self._loop.create_task(
            self._recalculate(origin, route.destination, route.mode, self._generation)
        )

    async def _recalculate(
        self, origin: GeoPoint, destination: GeoPoint, mode: TravelMode, generation: int
    ) -> None:
        attempts = self.config.max_recalculation_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                route = await asyncio.wait_for(
                    self._provider.compute_route(origin, destination, mode),
                    timeout=self.config.recalculation_timeout_s,
                )
                validate_route(route, self.config)
            except Exception as exc:
                last_error = exc
                logger.warning(f"Recalculation attempt {attempt}/{attempts} failed: {exc!r}")
                if attempt < attempts:
                    await asyncio.sleep(self.config.recalculation_retry_delay_s)
                continue

            await self._post(_ROUTE, route, generation)
            return

        error = RecalculationFailed(
            f"Route recalculation failed after {attempts} attempts: {last_error!r}",
            attempts=attempts,
        )
        error.__cause__ = last_error
        await self._post(_RECALC_FAILED, error, generation)

    def _apply_route(self, route: Route) -> ProgressResult:
        session = self._session
        self._recalc_task = None
        session.route = route
        session.current_step_index = 0
        session.recalculations += 1
        self._counters.reset()
        session.consecutive_deviations = 0
        self._last_instruction = None
        self._state = SessionState.ACTIVE
        logger.info(f"Route recalculated — {len(route.steps)} steps, {route.total_distance_m:.0f} m.")
        self._emit("route_recalculated", route)
        return ProgressResult(
            state=self._state,
            message="Route recalculated.",
            location=session.current_location,
        )

    def _fail_recalculation(self, error: RecalculationFailed) -> ProgressResult:
        self._recalc_task = None
        self.last_error = error
        logger.error(str(error))
        self._emit("navigation_failed", error)
        self._finish(SessionState.STOPPED, "recalculation-failed")
        return ProgressResult(state=self._state, message=str(error), location=self._session.current_location)

    def _abort(self, exc: Exception) -> None:
        if not self.is_active:
            return
        self.last_error = exc
        self._emit("navigation_failed", exc)
        self._finish(SessionState.STOPPED, "error")

    # ------------------------------------------------------------------
    # Session end & events
    # ------------------------------------------------------------------

    def _finish(self, state: SessionState, reason: str) -> NavigationSummary:
        session = self._session
        now = time.time()
        session.active = False
        session.end_time = now
        self._state = state
        self._generation += 1
        self._teardown()

        summary = NavigationSummary(
            session_id=session.session_id,
            reason=reason,
            elapsed_s=now - session.start_time,
            distance_travelled_m=session.distance_travelled_m,
            route_distance_m=session.route.total_distance_m,
            final_location=session.current_location,
            recalculations=session.recalculations,
        )
        logger.info(f"Navigation completed ({reason}) after {summary.elapsed_s:.0f} s, "
                    f"{summary.distance_travelled_m:.0f} m travelled.")
        self._emit("navigation_completed", summary)
        return summary

    def _teardown(self) -> None:
        """Release the session's timer, subscription and re-routing task."""
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            try:
                unsubscribe()
            except Exception:
                logger.exception("Failed to unsubscribe from location source.")

        current = asyncio.current_task()
        for task in (self._tick_task, self._recalc_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._tick_task = None
        self._recalc_task = None

    def _emit(self, event: str, payload: Any) -> None:
        for sink in self._sinks:
            handler = getattr(sink, event, None)
            if handler is None:
                continue
            try:
                result = handler(payload)
            except Exception:
                logger.exception(f"Sink {type(sink).__name__} failed on {event}.")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._sink_tasks.add(task)
                task.add_done_callback(self._sink_task_done)

    def _sink_task_done(self, task: asyncio.Future) -> None:
        self._sink_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Event sink task failed: {task.exception()!r}")
