"""In-process metrics collector with Prometheus text exposition."""

from __future__ import annotations

from collections import defaultdict
from threading import Lock
import time
from typing import Dict, Tuple


_lock = Lock()
_started_at = time.time()

_http_requests_total: Dict[Tuple[str, str, str], int] = defaultdict(int)
_http_request_duration_sum: Dict[Tuple[str, str], float] = defaultdict(float)
_http_request_duration_count: Dict[Tuple[str, str], int] = defaultdict(int)
_webhooks_dispatched_total: Dict[str, int] = defaultdict(int)
_webhook_patch_total: Dict[Tuple[str, str], int] = defaultdict(int)
_webhook_action_failures_total: Dict[str, int] = defaultdict(int)
_payload_decode_errors_total: Dict[str, int] = defaultdict(int)


def _escape_label(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _normalize_label(value: str, *, fallback: str = "unknown") -> str:
    normalized = (value or "").strip()
    return normalized or fallback


def record_http_request(*, method: str, path: str, status_code: int, duration_seconds: float) -> None:
    status = str(status_code)
    method_label = method.upper()
    path_label = path or "unknown"
    duration = max(duration_seconds, 0.0)

    with _lock:
        _http_requests_total[(method_label, path_label, status)] += 1
        _http_request_duration_sum[(method_label, path_label)] += duration
        _http_request_duration_count[(method_label, path_label)] += 1


def record_webhooks_dispatched(*, webhook: str, count: int = 1) -> None:
    if count <= 0:
        return
    with _lock:
        _webhooks_dispatched_total[_normalize_label(webhook)] += int(count)


def record_webhook_patch(*, webhook: str, outcome: str) -> None:
    with _lock:
        _webhook_patch_total[(_normalize_label(webhook), _normalize_label(outcome))] += 1


def record_webhook_action_failure(*, webhook: str) -> None:
    with _lock:
        _webhook_action_failures_total[_normalize_label(webhook)] += 1


def record_payload_decode_error(*, source: str) -> None:
    with _lock:
        _payload_decode_errors_total[_normalize_label(source)] += 1


def _render_counter(
    lines: list[str],
    *,
    name: str,
    help_text: str,
    label_names: Tuple[str, ...],
    values: Dict,
) -> None:
    lines.append(f"# HELP {name} {help_text}")
    lines.append(f"# TYPE {name} counter")
    for key, value in sorted(values.items()):
        key_tuple = key if isinstance(key, tuple) else (key,)
        labels = ",".join(
            f'{label}="{_escape_label(str(item))}"' for label, item in zip(label_names, key_tuple)
        )
        lines.append(f"{name}{{{labels}}} {value}")


def render_prometheus_metrics(*, app_name: str, app_version: str, env: str) -> str:
    uptime = max(time.time() - _started_at, 0.0)

    with _lock:
        http_total = dict(_http_requests_total)
        duration_sum = dict(_http_request_duration_sum)
        duration_count = dict(_http_request_duration_count)
        dispatched_total = dict(_webhooks_dispatched_total)
        patch_total = dict(_webhook_patch_total)
        action_failures_total = dict(_webhook_action_failures_total)
        decode_errors_total = dict(_payload_decode_errors_total)

    lines = [
        "# HELP component_webhooks_build_info Build metadata.",
        "# TYPE component_webhooks_build_info gauge",
        (
            f'component_webhooks_build_info{{app_name="{_escape_label(app_name)}",'
            f'version="{_escape_label(app_version)}",env="{_escape_label(env)}"}} 1'
        ),
        "# HELP component_webhooks_process_uptime_seconds Process uptime in seconds.",
        "# TYPE component_webhooks_process_uptime_seconds gauge",
        f"component_webhooks_process_uptime_seconds {uptime:.6f}",
    ]

    _render_counter(
        lines,
        name="component_webhooks_http_requests_total",
        help_text="Total HTTP requests.",
        label_names=("method", "path", "status"),
        values=http_total,
    )

    lines.extend(
        [
            "# HELP component_webhooks_http_request_duration_seconds Request duration summary.",
            "# TYPE component_webhooks_http_request_duration_seconds summary",
        ]
    )
    for (method, path), value in sorted(duration_sum.items()):
        lines.append(
            (
                f'component_webhooks_http_request_duration_seconds_sum{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value:.6f}'
            )
        )
    for (method, path), value in sorted(duration_count.items()):
        lines.append(
            (
                f'component_webhooks_http_request_duration_seconds_count{{method="{_escape_label(method)}",'
                f'path="{_escape_label(path)}"}} {value}'
            )
        )

    _render_counter(
        lines,
        name="component_webhooks_dispatched_total",
        help_text="Webhook runs marked Running by the admission pass.",
        label_names=("webhook",),
        values=dispatched_total,
    )
    _render_counter(
        lines,
        name="component_webhooks_patch_total",
        help_text="Write-back outcomes of background webhook runs.",
        label_names=("webhook", "outcome"),
        values=patch_total,
    )
    _render_counter(
        lines,
        name="component_webhooks_action_failures_total",
        help_text="Webhook actions that raised before completion.",
        label_names=("webhook",),
        values=action_failures_total,
    )
    _render_counter(
        lines,
        name="component_webhooks_payload_decode_errors_total",
        help_text="Package payloads that could not be decoded.",
        label_names=("source",),
        values=decode_errors_total,
    )

    lines.append("")
    return "\n".join(lines)


def reset_metrics_for_tests() -> None:
    global _started_at
    with _lock:
        _http_requests_total.clear()
        _http_request_duration_sum.clear()
        _http_request_duration_count.clear()
        _webhooks_dispatched_total.clear()
        _webhook_patch_total.clear()
        _webhook_action_failures_total.clear()
        _payload_decode_errors_total.clear()
    _started_at = time.time()
