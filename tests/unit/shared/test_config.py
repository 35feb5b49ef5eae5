import pytest
from prometheus_client import REGISTRY

from query_monitor.core.config import Settings
from shared.constants import Environment
from shared.metrics import get_counter, metric_name


class TestSettings:
    """Service settings defaults and environment overrides."""

    def test_defaults(self):
        s = Settings()
        assert s.fetch_min_interval_seconds == 5.0
        assert s.rate_limit_penalty_seconds == 30.0
        assert s.auto_refresh_interval_seconds == 10.0
        assert s.fingerprint_max_length == 100
        assert s.trend_noise_threshold_percent == 5
        assert s.rate_limit_error_codes == ["RATE_5001"]
        assert s.backend_stats_path == "/superadmin/query-stats"
        assert s.otel_service_name == "query-monitor"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FETCH_MIN_INTERVAL_SECONDS", "2.5")
        monkeypatch.setenv("BACKEND_BASE_URL", "http://admin.internal/api")
        monkeypatch.setenv("RATE_LIMIT_ERROR_CODES", '["RATE_5001", "RATE_5002"]')

        s = Settings()

        assert s.fetch_min_interval_seconds == 2.5
        assert s.backend_base_url == "http://admin.internal/api"
        assert s.rate_limit_error_codes == ["RATE_5001", "RATE_5002"]

    def test_redaction_patterns_cover_credentials(self):
        patterns = Settings().app_log_redaction_patterns
        assert "token" in patterns
        assert "authorization" in patterns


class TestEnvironment:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("production", Environment.PRODUCTION),
            (" Development ", Environment.DEVELOPMENT),
            ("TESTING", Environment.TESTING),
            ("qa-cluster", Environment.PRODUCTION),
        ],
    )
    def test_parse(self, raw, expected):
        assert Environment.parse(raw) is expected

    def test_docs_hidden_in_production(self):
        assert Environment.PRODUCTION.exposes_docs is False
        assert Environment.STAGING.exposes_docs is True


class TestMetricHelpers:
    def test_service_prefix_is_snake_case(self):
        assert metric_name("fetch_total", "query-monitor") == "query_monitor_fetch_total"
        assert metric_name("query_monitor_x", "query_monitor") == "query_monitor_x"
        assert metric_name("plain") == "plain"

    def test_invalid_names_are_rejected(self):
        with pytest.raises(ValueError):
            metric_name("Bad-Name")

    def test_labelled_counter(self):
        counter = get_counter(
            "config_test_events_total", "Test counter.", "query_monitor", labelnames=("kind",)
        )
        counter.labels(kind="a").inc()
        assert (
            REGISTRY.get_sample_value(
                "query_monitor_config_test_events_total", {"kind": "a"}
            )
            == 1.0
        )


def test_log_level_is_normalized(monkeypatch):
    monkeypatch.setenv("APP_LOG_LEVEL", " debug ")
    assert Settings().app_log_level == "DEBUG"
