import pytest

from wayfinder.errors import SensorDataInvalid
from wayfinder.location_filter import LocationFilter
from wayfinder.models import GeoPoint, SignalQuality
from wayfinder.nav_config import NavConfig


def _walk(move, origin, count, spacing_m=10.0, interval_s=1.0, accuracy_m=5.0):
    return [
        move(origin, 0.0, i * spacing_m, timestamp=origin.timestamp + i * interval_s, accuracy_m=accuracy_m)
        for i in range(count)
    ]


class TestBootstrapAndSmoothing:

    def test_first_fixes_pass_through(self, origin, move):
        loc_filter = LocationFilter()
        fixes = _walk(move, origin, 3)

        for fix in fixes:
            assert loc_filter.ingest(fix) is fix

        assert loc_filter.history_size == 3
        assert loc_filter.last_known_good is fixes[-1]

    def test_fourth_fix_is_smoothed(self, origin, move):
        loc_filter = LocationFilter()
        fixes = _walk(move, origin, 4)
        for fix in fixes[:3]:
            loc_filter.ingest(fix)

        smoothed = loc_filter.ingest(fixes[3])

        gain = 1.1 / 2.1
        assert loc_filter.gain[0] == pytest.approx(gain)
        expected_lat = fixes[2].lat + gain * (fixes[3].lat - fixes[2].lat)
        assert smoothed.lat == pytest.approx(expected_lat, abs=1e-12)
        assert fixes[2].lat < smoothed.lat < fixes[3].lat
        assert smoothed.timestamp == fixes[3].timestamp
        assert smoothed.accuracy_m == fixes[3].accuracy_m

    def test_history_is_bounded(self, origin, move):
        loc_filter = LocationFilter()
        for fix in _walk(move, origin, 15):
            loc_filter.ingest(fix)
        assert loc_filter.history_size == 10

    def test_configure_clamps_noise(self, origin, move):
        loc_filter = LocationFilter()
        loc_filter.configure(process_noise=0.0, measurement_noise=0.0)
        for fix in _walk(move, origin, 4):
            loc_filter.ingest(fix)
        assert loc_filter.gain[0] == pytest.approx(1.01 / 1.11)

    def test_reset_clears_state(self, origin, move):
        loc_filter = LocationFilter()
        for fix in _walk(move, origin, 5):
            loc_filter.ingest(fix)

        loc_filter.reset()

        assert loc_filter.history_size == 0
        assert loc_filter.last_known_good is None


class TestJumpRejection:

    def test_implausible_speed_returns_last_good(self, origin, move):
        loc_filter = LocationFilter()
        first = loc_filter.ingest(origin)
        # 1 km in one second is 3600 km/h
        jump = move(origin, 90.0, 1000.0, timestamp=origin.timestamp + 1.0)

        assert loc_filter.ingest(jump) is first
        assert loc_filter.history_size == 1

    def test_plausible_speed_is_accepted(self, origin, move):
        loc_filter = LocationFilter()
        loc_filter.ingest(origin)
        # 50 m in one second is 180 km/h
        fast = move(origin, 90.0, 50.0, timestamp=origin.timestamp + 1.0)
        assert loc_filter.ingest(fast) is fast

    @pytest.mark.parametrize("speed_kmh", [60.0, 100.0, 150.0])
    def test_sustained_driving_speed_never_rejected(self, origin, move, speed_kmh):
        loc_filter = LocationFilter()
        spacing_m = speed_kmh / 3.6
        fixes = _walk(move, origin, 30, spacing_m=spacing_m, interval_s=1.0)

        outputs = [loc_filter.ingest(fix) for fix in fixes]

        # A rejected fix comes back as the previous estimate, with its older timestamp
        assert [out.timestamp for out in outputs] == [fix.timestamp for fix in fixes]
        assert loc_filter.history_size == 10

    def test_fixes_after_rejected_jump_are_accepted(self, origin, move):
        loc_filter = LocationFilter()
        fixes = _walk(move, origin, 10, spacing_m=25.0)
        for fix in fixes[:5]:
            loc_filter.ingest(fix)

        glitch = move(origin, 90.0, 5000.0, timestamp=fixes[5].timestamp - 0.5)
        assert loc_filter.ingest(glitch).timestamp == fixes[4].timestamp

        for fix in fixes[5:]:
            assert loc_filter.ingest(fix).timestamp == fix.timestamp

    def test_non_positive_time_delta_is_not_a_jump(self, origin, move):
        loc_filter = LocationFilter()
        loc_filter.ingest(origin)
        same_instant = move(origin, 90.0, 1000.0, timestamp=origin.timestamp)
        assert loc_filter.ingest(same_instant) is same_instant

    def test_long_gap_resets_filter(self, origin, move):
        loc_filter = LocationFilter()
        for fix in _walk(move, origin, 5):
            loc_filter.ingest(fix)

        later = move(origin, 90.0, 2000.0, timestamp=origin.timestamp + 120.0)

        assert loc_filter.ingest(later) is later
        assert loc_filter.history_size == 1


class TestValidation:

    @pytest.mark.parametrize("fix", [
        None,
        GeoPoint(float("nan"), 32.85, timestamp=0.0),
        GeoPoint(39.92, float("inf"), timestamp=0.0),
        GeoPoint(91.0, 32.85, timestamp=0.0),
        GeoPoint(39.92, -181.0, timestamp=0.0),
        GeoPoint(39.92, 32.85, accuracy_m=-1.0, timestamp=0.0),
        GeoPoint(39.92, 32.85, timestamp=float("nan")),
    ])
    def test_invalid_fix_raises(self, fix):
        loc_filter = LocationFilter()
        with pytest.raises(SensorDataInvalid):
            loc_filter.ingest(fix)
        assert loc_filter.history_size == 0


class TestQualityAndStatistics:

    @pytest.mark.parametrize("accuracy, expected", [
        (3.0, SignalQuality.EXCELLENT),
        (5.0, SignalQuality.EXCELLENT),
        (8.0, SignalQuality.GOOD),
        (15.0, SignalQuality.FAIR),
        (25.0, SignalQuality.POOR),
        (None, SignalQuality.POOR),
    ])
    def test_classify_quality(self, accuracy, expected):
        loc_filter = LocationFilter()
        assert loc_filter.classify_quality(GeoPoint(39.92, 32.85, accuracy_m=accuracy, timestamp=0.0)) is expected

    def test_thresholds_follow_config(self):
        loc_filter = LocationFilter(NavConfig(excellent_accuracy_m=2.0))
        assert loc_filter.classify_quality(GeoPoint(39.92, 32.85, accuracy_m=3.0, timestamp=0.0)) is SignalQuality.GOOD

    def test_statistics(self, origin, move):
        loc_filter = LocationFilter()
        for i, accuracy in enumerate((4.0, 6.0, 8.0)):
            loc_filter.ingest(move(origin, 0.0, i * 10.0, timestamp=origin.timestamp + i, accuracy_m=accuracy))

        stats = loc_filter.statistics()

        assert stats.sample_count == 3
        assert stats.average_accuracy_m == pytest.approx(6.0)
        assert stats.min_accuracy_m == pytest.approx(4.0)
        assert stats.max_accuracy_m == pytest.approx(8.0)
        assert stats.current_quality is SignalQuality.GOOD

    def test_statistics_empty(self):
        stats = LocationFilter().statistics()
        assert stats.sample_count == 0
        assert stats.current_quality is SignalQuality.POOR
