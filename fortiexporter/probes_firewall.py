"""Probes for firewall policies and load-balancing virtual servers."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .client import APIError
from .metrics import Desc, Metric, ValueType
from .probes_bgp import ProbeError, TargetMetadata
from .version import parse_version

log = logging.getLogger(__name__)

_LOAD_BALANCE_PATH = "api/v2/monitor/firewall/load-balance"
_POLICY_STATS_PATH = "api/v2/monitor/firewall/policy/select"
_POLICY6_STATS_PATH = "api/v2/monitor/firewall/policy6/select"
_POLICY_CONFIG_PATH = "api/v2/cmdb/firewall/policy"
_POLICY6_CONFIG_PATH = "api/v2/cmdb/firewall/policy6"


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


def _integer(value: Any, what: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise ProbeError(f"{what}: expected an integer, got {value!r}")
    return int(value)


def parse_rtt(rtt: str) -> float:
    """Convert a real server RTT in milliseconds to seconds.

    "<1" counts as one millisecond; an empty or unparsable value gives NaN.
    """
    if rtt == "<1":
        return 0.001
    if rtt == "":
        return math.nan
    try:
        if "_" in rtt or rtt != rtt.strip():
            raise ValueError(f"invalid syntax: {rtt!r}")
        return float(rtt) / 1000
    except ValueError as exc:
        log.warning("Failed to parse RTT value: %s", exc)
        return math.nan


def probe_firewall_load_balance(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report virtual servers and the state of their real servers."""
    if meta.version_major < 6 or (meta.version_major == 6 and meta.version_minor < 4):
        # Before 6.4.0 there is no real_server_id.
        return []

    virtual_info = Desc(
        "fortigate_lb_virtual_server_info",
        "Info metric regarding virtual servers",
        ("vdom", "name", "ip", "port", "type"),
    )
    real_info = Desc(
        "fortigate_lb_real_server_info",
        "Info metric regarding real servers",
        ("vdom", "virtual_server", "id", "ip", "port"),
    )
    real_mode = Desc(
        "fortigate_lb_real_server_mode",
        "Mode of this real server: active, standby or disabled",
        ("vdom", "virtual_server", "id", "mode"),
    )
    real_status = Desc(
        "fortigate_lb_real_server_status",
        "Status of this real server: up, down or unknown",
        ("vdom", "virtual_server", "id", "state"),
    )
    real_sessions = Desc(
        "fortigate_lb_real_server_active_sessions",
        "Number of sessions active on this real server",
        ("vdom", "virtual_server", "id"),
    )
    real_rtt = Desc(
        "fortigate_lb_real_server_rtt_seconds",
        "Round Trip Time (RTT) for this real server. A RTT of 1 ms or less is reported "
        "as 1 ms (0.001 s). A RTT of -1 indicates a parsing error.",
        ("vdom", "virtual_server", "id"),
    )
    real_bytes = Desc(
        "fortigate_lb_real_server_processed_bytes_total",
        "Number of bytes processed by this real server",
        ("vdom", "virtual_server", "id"),
    )

    # Only the first 1000 entries are fetched; there is no pagination.
    data = _fetch(client, _LOAD_BALANCE_PATH, "vdom=*&start=0&count=1000")
    metrics: list[Metric] = []
    for response in _objects(data, _LOAD_BALANCE_PATH):
        vdom = _text(_get(response, "vdom"), "vdom")
        for virtual in _objects(_get(response, "results"), "results"):
            name = _text(_get(virtual, "virtual_server_name"), "virtual_server_name")
            metrics.append(
                virtual_info.metric(
                    ValueType.GAUGE,
                    1,
                    vdom,
                    name,
                    _text(_get(virtual, "virtual_server_ip"), "virtual_server_ip"),
                    str(_integer(_get(virtual, "virtual_server_port"), "virtual_server_port")),
                    _text(_get(virtual, "virtual_server_type"), "virtual_server_type"),
                )
            )
            for real in _objects(_get(virtual, "list"), "list"):
                server_id = str(_integer(_get(real, "real_server_id"), "real_server_id"))
                mode = _text(_get(real, "mode"), "mode")
                status = _text(_get(real, "status"), "status")
                state = status if status in ("up", "down") else "unknown"
                labels = (vdom, name, server_id)

                metrics.append(
                    real_info.metric(
                        ValueType.GAUGE,
                        1,
                        *labels,
                        _text(_get(real, "real_server_ip"), "real_server_ip"),
                        str(_integer(_get(real, "real_server_port"), "real_server_port")),
                    )
                )
                metrics.extend(
                    real_mode.metric(ValueType.GAUGE, 1.0 if mode == m else 0.0, *labels, m)
                    for m in ("active", "standby", "disabled")
                )
                metrics.extend(
                    real_status.metric(ValueType.GAUGE, 1.0 if state == s else 0.0, *labels, s)
                    for s in ("up", "down", "unknown")
                )
                metrics.append(
                    real_sessions.metric(
                        ValueType.GAUGE,
                        _number(_get(real, "active_sessions"), "active_sessions"),
                        *labels,
                    )
                )
                metrics.append(
                    real_rtt.metric(
                        ValueType.GAUGE, parse_rtt(_text(_get(real, "RTT"), "RTT")), *labels
                    )
                )
                metrics.append(
                    real_bytes.metric(
                        ValueType.COUNTER,
                        _number(_get(real, "bytes_processed"), "bytes_processed"),
                        *labels,
                    )
                )
    return metrics


def _policy_names(data: Any, what: str) -> dict[str, str]:
    names: dict[str, str] = {}
    for response in _objects(data, what):
        for policy in _objects(_get(response, "results"), "results"):
            names[_text(_get(policy, "uuid"), "uuid")] = _text(_get(policy, "name"), "name")
    return names


def _policy_metrics(
    responses: Iterable[Mapping[str, Any]],
    names: Mapping[str, str],
    protocol: str,
    descs: tuple[Desc, Desc, Desc, Desc],
) -> Iterator[Metric]:
    hit_count, bytes_total, packets, active_sessions = descs
    for response in responses:
        vdom = _text(_get(response, "vdom"), "vdom")
        for stats in _objects(_get(response, "results"), "results"):
            policy_id = _integer(_get(stats, "policyid"), "policyid")
            uuid = _text(_get(stats, "uuid"), "uuid")
            name = "Implicit Deny"
            if policy_id > 0:
                if uuid in names:
                    name = names[uuid]
                else:
                    log.warning(
                        "Failed to map %r to policy config - this should not happen", uuid
                    )
                    name = "<UNKNOWN>"
            labels = (vdom, protocol, name, uuid, str(policy_id))
            yield hit_count.metric(
                ValueType.COUNTER, _number(_get(stats, "hit_count"), "hit_count"), *labels
            )
            yield bytes_total.metric(
                ValueType.COUNTER, _number(_get(stats, "bytes"), "bytes"), *labels
            )
            yield packets.metric(
                ValueType.COUNTER, _number(_get(stats, "packets"), "packets"), *labels
            )
            yield active_sessions.metric(
                ValueType.GAUGE,
                _number(_get(stats, "active_sessions"), "active_sessions"),
                *labels,
            )


def probe_firewall_policies(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report hits, traffic and sessions of every IPv4 and IPv6 policy."""
    label_names = ("vdom", "protocol", "name", "uuid", "id")
    descs = (
        Desc(
            "fortigate_policy_hit_count_total",
            "Number of times a policy has been hit",
            label_names,
        ),
        Desc(
            "fortigate_policy_bytes_total",
            "Number of bytes that has passed through a policy",
            label_names,
        ),
        Desc(
            "fortigate_policy_packets_total",
            "Number of packets that has passed through a policy",
            label_names,
        ),
        Desc(
            "fortigate_policy_active_sessions",
            "Number of active sessions for a policy",
            label_names,
        ),
    )

    # ip_version=ipv4 is a no-op when combined policies are not active.
    stats4 = _objects(
        _fetch(client, _POLICY_STATS_PATH, "vdom=*&ip_version=ipv4"), _POLICY_STATS_PATH
    )
    if not stats4:
        raise ProbeError("no policy statistics returned")
    version = _text(_get(stats4[0], "version"), "version")
    try:
        major, minor = parse_version(version)
    except ValueError as exc:
        raise ProbeError(f"Could not parse version number {version!r}") from exc
    # From 6.4 on, IPv4 and IPv6 policies are combined.
    combined = major > 6 or (major == 6 and minor >= 4)

    if combined:
        stats6 = _objects(
            _fetch(client, _POLICY_STATS_PATH, "vdom=*&ip_version=ipv6"), _POLICY_STATS_PATH
        )
    else:
        stats6 = _objects(_fetch(client, _POLICY6_STATS_PATH, "vdom=*"), _POLICY6_STATS_PATH)

    query = "vdom=*&policyid|name|uuid|action|status"
    names4 = _policy_names(_fetch(client, _POLICY_CONFIG_PATH, query), _POLICY_CONFIG_PATH)
    if combined:
        names6 = names4
    else:
        names6 = _policy_names(
            _fetch(client, _POLICY6_CONFIG_PATH, query), _POLICY6_CONFIG_PATH
        )

    metrics = list(_policy_metrics(stats4, names4, "ipv4", descs))
    metrics.extend(_policy_metrics(stats6, names6, "ipv6", descs))
    return metrics