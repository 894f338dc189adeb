"""Central runtime configuration for the component webhook reconciler."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


WEBHOOK_ACTIONS = {"simulated", "http"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    env: str = "development"
    log_level: str = "INFO"
    app_name: str = "component_webhooks"
    app_version: str = "0.1.0"
    webhook_name: str = "test-webhook"
    webhook_wait_duration_seconds: int = 300
    webhook_action: str = "simulated"
    webhook_simulated_delay_seconds: float = 30.0
    webhook_endpoint_url: str = ""
    webhook_endpoint_token: str = ""
    package_namespace: str = "zarf"
    package_payload_key: str = "data"
    field_manager: str = "component-webhooks"
    kubernetes_api_url: str = "https://kubernetes.default.svc"
    kubernetes_token_path: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    kubernetes_ca_path: str = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"
    kubernetes_timeout_seconds: int = 20
    executor_max_workers: int = 8
    admission_fail_closed: bool = False
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = 0.0
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def _validate(settings: Settings) -> Settings:
    if not settings.webhook_name.strip():
        raise ValueError("WEBHOOK_NAME must not be empty.")
    if settings.webhook_wait_duration_seconds <= 0:
        raise ValueError("WEBHOOK_WAIT_DURATION_SECONDS must be positive.")
    if settings.webhook_action.strip().lower() not in WEBHOOK_ACTIONS:
        raise ValueError("WEBHOOK_ACTION must be one of: http, simulated.")
    if settings.webhook_simulated_delay_seconds < 0:
        raise ValueError("WEBHOOK_SIMULATED_DELAY_SECONDS must be zero or positive.")
    if settings.webhook_action.strip().lower() == "http" and not settings.webhook_endpoint_url.strip():
        raise ValueError("WEBHOOK_ENDPOINT_URL is required when WEBHOOK_ACTION=http.")
    if not settings.package_namespace.strip():
        raise ValueError("PACKAGE_NAMESPACE must not be empty.")
    if not settings.package_payload_key.strip():
        raise ValueError("PACKAGE_PAYLOAD_KEY must not be empty.")
    if not settings.field_manager.strip():
        raise ValueError("FIELD_MANAGER must not be empty.")
    if settings.kubernetes_timeout_seconds <= 0:
        raise ValueError("KUBERNETES_TIMEOUT_SECONDS must be positive.")
    if settings.executor_max_workers <= 0:
        raise ValueError("EXECUTOR_MAX_WORKERS must be positive.")
    if settings.sentry_traces_sample_rate < 0 or settings.sentry_traces_sample_rate > 1:
        raise ValueError("SENTRY_TRACES_SAMPLE_RATE must be between 0 and 1.")
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return validated settings as a cached singleton."""

    return _validate(Settings())
