from shared.config import BaseServiceConfig


class Settings(BaseServiceConfig):
    # Backend endpoints (relative to backend_base_url)
    backend_stats_path: str = "/superadmin/query-stats"
    backend_reset_path: str = "/superadmin/query-stats/reset"

    # Fetch policy
    fetch_min_interval_seconds: float = 5.0
    rate_limit_penalty_seconds: float = 30.0
    auto_refresh_interval_seconds: float = 10.0
    rate_limit_error_codes: list[str] = ["RATE_5001"]
    rate_limit_phrases: list[str] = ["rate limit", "too many requests"]

    # Startup
    initial_fetch_on_startup: bool = True
    initial_fetch_retries: int = 3

    # Aggregation
    fingerprint_max_length: int = 100
    trend_noise_threshold_percent: int = 5
    severity_threshold_ms: float = 500.0

    # Views / charts
    default_page_size: int = 10
    chart_top_models: int = 5
    chart_hourly_buckets: int = 10

    # Export
    export_filename_prefix: str = "query-stats"

    # Notifications kept for polling clients
    notification_history_size: int = 50

    otel_service_name: str = "query-monitor"


settings = Settings()
