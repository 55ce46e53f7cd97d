import pytest
from pydantic import ValidationError

from volley.exceptions import VolleyConfigError
from volley.load.config import LoadProfile, LoadTestConfig, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        "value, expected",
        [("250ms", 0.25), ("30s", 30.0), ("5m", 300.0), ("2h", 7200.0), ("1.5s", 1.5), (12, 12.0)],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "10", "10x", "s", "-5s"])
    def test_invalid(self, value):
        with pytest.raises(VolleyConfigError) as exc_info:
            parse_duration(value)
        assert exc_info.value.code == "invalid_duration"


class TestLoadProfile:
    def test_parse_variants(self):
        assert LoadProfile.parse("ramp-up") is LoadProfile.RAMP_UP
        assert LoadProfile.parse("RAMP_DOWN") is LoadProfile.RAMP_DOWN
        assert LoadProfile.parse(LoadProfile.WAVE) is LoadProfile.WAVE

    def test_unknown(self):
        with pytest.raises(VolleyConfigError) as exc_info:
            LoadProfile.parse("sawtooth")
        assert exc_info.value.code == "unknown_profile"


class TestLoadTestConfig:
    def test_defaults(self):
        config = LoadTestConfig()
        assert config.users == 1
        assert config.duration_seconds == 60
        assert config.ramp_up_seconds == 10
        assert config.requests_per_second is None
        assert config.profile == LoadProfile.CONSTANT
        assert config.report_interval_seconds == 10
        assert config.success_rate_threshold == 0.95

    @pytest.mark.parametrize(
        "field, value",
        [
            ("users", 0),
            ("duration_seconds", 0),
            ("ramp_up_seconds", -1),
            ("requests_per_second", 0),
            ("think_time_seconds", -0.5),
            ("success_rate_threshold", 1.5),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            LoadTestConfig(**{field: value})

    def test_presets(self):
        assert LoadTestConfig.smoke().users == 5
        stress = LoadTestConfig.stress(max_users=40)
        assert (stress.users, stress.profile) == (40, LoadProfile.RAMP_UP)
        assert LoadTestConfig.spike().profile == LoadProfile.SPIKE
        endurance = LoadTestConfig.endurance(hours=2)
        assert endurance.duration_seconds == 7200
        capacity = LoadTestConfig.capacity()
        assert (capacity.users, capacity.profile) == (500, LoadProfile.STEP)

    def test_implied_thresholds(self):
        config = LoadTestConfig(max_response_time_ms=800, success_rate_threshold=0.9)
        thresholds = config.thresholds()
        assert thresholds.max_response_time_ms == 800
        assert thresholds.min_success_rate == 0.9
        assert thresholds.max_error_rate == pytest.approx(0.1)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VOLLEY_LOAD_USERS", "25")
        monkeypatch.setenv("VOLLEY_LOAD_DURATION", "2m")
        monkeypatch.setenv("VOLLEY_LOAD_PROFILE", "wave")
        monkeypatch.setenv("VOLLEY_LOAD_THINK_TIME", "200ms")

        config = LoadTestConfig.from_env(ramp_up_seconds=0)
        assert config.users == 25
        assert config.duration_seconds == 120
        assert config.profile == LoadProfile.WAVE
        assert config.think_time_seconds == pytest.approx(0.2)
        assert config.ramp_up_seconds == 0
