import pytest
from pydantic import ValidationError

from volley.config import ExecutionConfig, RetryConfig
from volley.listeners import LoggingListener


class TestRetryConfig:
    def test_defaults(self):
        config = RetryConfig()
        assert config.max_retries == 0
        assert config.initial_delay_ms == 1000
        assert config.max_delay_ms == 10000
        assert config.exponential is True

    def test_max_delay_below_initial_rejected(self):
        with pytest.raises(ValidationError):
            RetryConfig(initial_delay_ms=500, max_delay_ms=100)

    def test_negative_retries_rejected(self):
        with pytest.raises(ValidationError):
            RetryConfig(max_retries=-1)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            RetryConfig(retries=3)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VOLLEY_MAX_RETRIES", "3")
        monkeypatch.setenv("VOLLEY_RETRY_INITIAL_DELAY_MS", "200")
        monkeypatch.setenv("VOLLEY_RETRY_EXPONENTIAL", "false")

        config = RetryConfig.from_env()
        assert config.max_retries == 3
        assert config.initial_delay_ms == 200
        assert config.exponential is False


class TestExecutionConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.setattr("volley.config.os.cpu_count", lambda: 6)
        config = ExecutionConfig()
        assert config.parallel is False
        assert config.max_parallel == 6
        assert config.fail_fast is False
        assert config.timeout_ms == 300_000
        assert config.listeners == []

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            ExecutionConfig(max_parallel=0)
        with pytest.raises(ValidationError):
            ExecutionConfig(timeout_ms=0)

    def test_frozen(self):
        config = ExecutionConfig()
        with pytest.raises(ValidationError):
            config.parallel = True

    def test_from_env_reads_environment_each_call(self, monkeypatch):
        monkeypatch.setenv("VOLLEY_PARALLEL", "true")
        monkeypatch.setenv("VOLLEY_MAX_PARALLEL", "3")
        monkeypatch.setenv("VOLLEY_FAIL_FAST", "1")
        monkeypatch.setenv("VOLLEY_MAX_RETRIES", "2")

        first = ExecutionConfig.from_env()
        assert first.parallel is True
        assert first.max_parallel == 3
        assert first.fail_fast is True
        assert first.retry.max_retries == 2

        monkeypatch.setenv("VOLLEY_MAX_PARALLEL", "5")
        assert ExecutionConfig.from_env().max_parallel == 5
        assert first.max_parallel == 3

    def test_from_env_overrides_win(self, monkeypatch):
        monkeypatch.setenv("VOLLEY_TIMEOUT_MS", "1000")
        listener = LoggingListener()
        config = ExecutionConfig.from_env(timeout_ms=50, listeners=[listener])
        assert config.timeout_ms == 50
        assert config.listeners[0] is listener
