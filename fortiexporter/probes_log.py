"""Probes for licensing and logging state."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .client import APIError
from .metrics import Desc, Metric, ValueType
from .probes_bgp import ProbeError, TargetMetadata


def _fetch(client: Any, path: str, query: str) -> Any:
    try:
        return client.get(path, query)
    except APIError as exc:
        raise ProbeError(str(exc)) from exc


def _get(obj: Mapping[str, Any], key: str) -> Any:
    if key in obj:
        return obj[key]
    lowered = key.lower()
    for name, value in obj.items():
        if name.lower() == lowered:
            return value
    return None


def _object(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProbeError(f"{what}: expected an object")
    return value


def _objects(data: Any, what: str) -> list[Mapping[str, Any]]:
    if data is None:
        return []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ProbeError(f"{what}: expected a list of objects")
    return data


def _text(value: Any, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProbeError(f"{what}: expected a string, got {value!r}")
    return value


def _number(value: Any, what: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProbeError(f"{what}: expected a number, got {value!r}")
    return float(value)


def probe_license_status(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report used and available VDOM licenses."""
    used_desc = Desc("fortigate_license_vdom_usage", "The amount of VDOM licenses currently used")
    max_desc = Desc("fortigate_license_vdom_max", "The total amount of VDOM licenses available")

    path = "api/v2/monitor/license/status/select"
    response = _object(_fetch(client, path, ""), path)
    vdom = _object(_get(_object(_get(response, "results"), "results"), "vdom"), "vdom")
    return [
        used_desc.metric(ValueType.GAUGE, _number(_get(vdom, "used"), "used")),
        max_desc.metric(ValueType.GAUGE, _number(_get(vdom, "max"), "max")),
    ]


def probe_log_current_disk_usage(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report disk space used by and available for logs, per VDOM."""
    used_desc = Desc("fortigate_log_disk_used_bytes", "Disk used bytes for log", ("vdom",))
    total_desc = Desc("fortigate_log_disk_total_bytes", "Disk total bytes for log", ("vdom",))

    path = "api/v2/monitor/log/current-disk-usage"
    metrics = []
    for response in _objects(_fetch(client, path, "vdom=*"), path):
        vdom = _text(_get(response, "vdom"), "vdom")
        results = _object(_get(response, "results"), "results")
        metrics.append(
            used_desc.metric(
                ValueType.GAUGE, _number(_get(results, "used_bytes"), "used_bytes"), vdom
            )
        )
        metrics.append(
            total_desc.metric(
                ValueType.GAUGE, _number(_get(results, "total_bytes"), "total_bytes"), vdom
            )
        )
    return metrics


def probe_log_analyzer(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report FortiAnalyzer registration state and received logs, per VDOM."""
    info_desc = Desc(
        "fortigate_log_fortianalyzer_registration_info",
        "Fortianalyzer state info",
        ("vdom", "registration", "connection"),
    )
    received_desc = Desc(
        "fortigate_log_fortianalyzer_logs_received",
        "Received logs in fortianalyzer",
        ("vdom",),
    )

    path = "api/v2/monitor/log/fortianalyzer"
    metrics = []
    for response in _objects(_fetch(client, path, "vdom=*"), path):
        vdom = _text(_get(response, "vdom"), "vdom")
        results = _object(_get(response, "results"), "results")
        metrics.append(
            info_desc.metric(
                ValueType.GAUGE,
                1,
                vdom,
                _text(_get(results, "registration"), "registration"),
                _text(_get(results, "connection"), "connection"),
            )
        )
        metrics.append(
            received_desc.metric(
                ValueType.GAUGE, _number(_get(results, "received"), "received"), vdom
            )
        )
    return metrics


def probe_log_analyzer_queue(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report the FortiAnalyzer log queue, per VDOM."""
    connections_desc = Desc(
        "fortigate_log_fortianalyzer_queue_connections",
        "Fortianalyzer queue connected state",
        ("vdom",),
    )
    logs_desc = Desc(
        "fortigate_log_fortianalyzer_queue_logs",
        "State of logs in the queue",
        ("vdom", "state"),
    )

    path = "api/v2/monitor/log/fortianalyzer-queue"
    metrics = []
    for response in _objects(_fetch(client, path, "vdom=*"), path):
        vdom = _text(_get(response, "vdom"), "vdom")
        results = _object(_get(response, "results"), "results")
        metrics.append(
            connections_desc.metric(
                ValueType.GAUGE, _number(_get(results, "connected"), "connected"), vdom
            )
        )
        # Failed and cached logs are treated as gauges; nothing documents them as counters.
        metrics.append(
            logs_desc.metric(
                ValueType.GAUGE,
                _number(_get(results, "failed_logs"), "failed_logs"),
                vdom,
                "failed",
            )
        )
        metrics.append(
            logs_desc.metric(
                ValueType.GAUGE,
                _number(_get(results, "cached_logs"), "cached_logs"),
                vdom,
                "cached",
            )
        )
    return metrics