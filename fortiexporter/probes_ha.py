"""Probes for high-availability cluster members."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .client import APIError
from .metrics import Desc, Metric, ValueType
from .probes_bgp import ProbeError, TargetMetadata

_CHECKSUM_PATH = "api/v2/monitor/system/ha-checksums"
_STATISTICS_PATH = "api/v2/monitor/system/ha-statistics"
_HA_CONFIG_PATH = "api/v2/cmdb/system/ha"


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


def _integer(value: Any, what: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise ProbeError(f"{what}: expected an integer, got {value!r}")
    return int(value)


def probe_system_ha_checksum(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report which cluster members hold the manage and root master roles."""
    role_desc = Desc(
        "fortigate_ha_member_has_role", "Master/Slave information", ("role", "serial")
    )

    response = _object(_fetch(client, _CHECKSUM_PATH, "scope=global"), _CHECKSUM_PATH)
    metrics: list[Metric] = []
    for member in _objects(_get(response, "results"), "results"):
        serial = _text(_get(member, "serial_no"), "serial_no")
        metrics.append(
            role_desc.metric(
                ValueType.GAUGE,
                _integer(_get(member, "is_manage_master"), "is_manage_master"),
                "manage_master",
                serial,
            )
        )
        metrics.append(
            role_desc.metric(
                ValueType.GAUGE,
                _integer(_get(member, "is_root_master"), "is_root_master"),
                "root_master",
                serial,
            )
        )
    return metrics


def probe_system_ha_statistics(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report load and traffic of every HA cluster member."""
    member_labels = ("vdom", "hostname")
    info_desc = Desc(
        "fortigate_ha_member_info",
        "Info metric regarding cluster members",
        ("vdom", "hostname", "serial", "group"),
    )
    # (description, value type, JSON key, divisor)
    series = (
        (
            Desc(
                "fortigate_ha_member_sessions",
                "Sessions which are handled by this HA member",
                member_labels,
            ),
            ValueType.GAUGE,
            "sessions",
            1,
        ),
        (
            Desc(
                "fortigate_ha_member_packets_total",
                "Packets which are handled by this HA member",
                member_labels,
            ),
            ValueType.COUNTER,
            "tpacket",
            1,
        ),
        (
            Desc(
                "fortigate_ha_member_virus_events_total",
                "Virus events which are detected by this HA member",
                member_labels,
            ),
            ValueType.COUNTER,
            "vir_usage",
            1,
        ),
        (
            Desc(
                "fortigate_ha_member_network_usage_ratio",
                "Network usage by HA member",
                member_labels,
            ),
            ValueType.GAUGE,
            "net_usage",
            100,
        ),
        (
            Desc(
                "fortigate_ha_member_bytes_total",
                "Bytes transferred by HA member",
                member_labels,
            ),
            ValueType.COUNTER,
            "tbyte",
            1,
        ),
        (
            Desc(
                "fortigate_ha_member_ips_events_total",
                "IPS events processed by HA member",
                member_labels,
            ),
            ValueType.COUNTER,
            "intr_usage",
            1,
        ),
        (
            Desc(
                "fortigate_ha_member_cpu_usage_ratio",
                "CPU usage by HA member",
                member_labels,
            ),
            ValueType.GAUGE,
            "cpu_usage",
            100,
        ),
        (
            Desc(
                "fortigate_ha_member_memory_usage_ratio",
                "Memory usage by HA member",
                member_labels,
            ),
            ValueType.GAUGE,
            "mem_usage",
            100,
        ),
    )

    stats = _object(_fetch(client, _STATISTICS_PATH, ""), _STATISTICS_PATH)
    ha_config = _object(_fetch(client, _HA_CONFIG_PATH, ""), _HA_CONFIG_PATH)
    group = _text(_get(_object(_get(ha_config, "results"), "results"), "group-name"), "group-name")

    vdom = _text(_get(stats, "vdom"), "vdom")
    metrics: list[Metric] = []
    for member in _objects(_get(stats, "results"), "results"):
        hostname = _text(_get(member, "hostname"), "hostname")
        metrics.append(
            info_desc.metric(
                ValueType.GAUGE,
                1,
                vdom,
                hostname,
                _text(_get(member, "serial_no"), "serial_no"),
                group,
            )
        )
        for desc, value_type, key, divisor in series:
            value = _number(_get(member, key), key)
            if divisor != 1:
                value /= divisor
            metrics.append(desc.metric(value_type, value, vdom, hostname))
    return metrics