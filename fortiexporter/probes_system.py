"""Probes for certificates, FortiManager connectivity and interfaces."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .client import APIError
from .metrics import Desc, Metric, ValueType
from .probes_bgp import ProbeError, TargetMetadata

_CERTIFICATES_PATH = "api/v2/monitor/system/available-certificates"
_FORTIMANAGER_PATH = "api/v2/monitor/system/fortimanager/status"
_INTERFACE_PATH = "api/v2/monitor/system/interface/select"

_CONNECTION_STATES = {0: "down", 1: "handshake", 2: "up"}
_REGISTRATION_STATES = {0: "unknown", 1: "inprogress", 2: "registered", 3: "unregistered"}


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


def _flag(value: Any, what: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ProbeError(f"{what}: expected a boolean, got {value!r}")
    return value


def probe_system_available_certificates(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report validity and references of certificates, global and per VDOM."""
    info_desc = Desc(
        "fortigate_certificate_info",
        "Info metric containing meta information about the certificate",
        ("name", "source", "scope", "vdom", "status", "type"),
    )
    label_names = ("name", "source", "scope", "vdom")
    valid_from_desc = Desc(
        "fortigate_certificate_valid_from_seconds",
        "Unix timestamp from which this certificate is valid",
        label_names,
    )
    valid_to_desc = Desc(
        "fortigate_certificate_valid_to_seconds",
        "Unix timestamp till which this certificate is valid",
        label_names,
    )
    references_desc = Desc(
        "fortigate_certificate_cmdb_references",
        "Number of times the certificate is referenced",
        label_names,
    )

    global_response = _object(
        _fetch(client, _CERTIFICATES_PATH, "scope=global"), _CERTIFICATES_PATH
    )
    vdom_responses = _objects(
        _fetch(client, _CERTIFICATES_PATH, "vdom=*"), _CERTIFICATES_PATH
    )
    scoped = [(response, "vdom") for response in vdom_responses]
    scoped.append((global_response, "global"))

    metrics: list[Metric] = []
    for response, scope in scoped:
        vdom = _text(_get(response, "vdom"), "vdom")
        for cert in _objects(_get(response, "results"), "results"):
            labels = (
                _text(_get(cert, "name"), "name"),
                _text(_get(cert, "source"), "source"),
                scope,
                vdom,
            )
            metrics.append(
                info_desc.metric(
                    ValueType.GAUGE,
                    1,
                    *labels,
                    _text(_get(cert, "status"), "status"),
                    _text(_get(cert, "type"), "type"),
                )
            )
            metrics.append(
                valid_from_desc.metric(
                    ValueType.GAUGE, _number(_get(cert, "valid_from"), "valid_from"), *labels
                )
            )
            metrics.append(
                valid_to_desc.metric(
                    ValueType.GAUGE, _number(_get(cert, "valid_to"), "valid_to"), *labels
                )
            )
            metrics.append(
                references_desc.metric(
                    ValueType.GAUGE, _number(_get(cert, "q_ref"), "q_ref"), *labels
                )
            )
    return metrics


def probe_system_fortimanager_status(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report FortiManager tunnel and registration state, per VDOM."""
    connection_desc = Desc(
        "fortigate_fortimanager_connection_status",
        "Fortimanager status ID",
        ("vdom", "mode", "status"),
    )
    registration_desc = Desc(
        "fortigate_fortimanager_registration_status",
        "Fortimanager registration status ID",
        ("vdom", "mode", "status"),
    )

    metrics: list[Metric] = []
    for response in _objects(_fetch(client, _FORTIMANAGER_PATH, "vdom=*"), _FORTIMANAGER_PATH):
        vdom = _text(_get(response, "vdom"), "vdom")
        results = _object(_get(response, "results"), "results")
        mode = _text(_get(results, "mode"), "mode")
        status = _CONNECTION_STATES.get(
            _integer(_get(results, "fortimanager_status_id"), "fortimanager_status_id")
        )
        registration = _REGISTRATION_STATES.get(
            _integer(
                _get(results, "fortimanager_registration_status_id"),
                "fortimanager_registration_status_id",
            )
        )
        metrics.extend(
            connection_desc.metric(ValueType.GAUGE, 1.0 if status == s else 0.0, vdom, mode, s)
            for s in _CONNECTION_STATES.values()
        )
        metrics.extend(
            registration_desc.metric(
                ValueType.GAUGE, 1.0 if registration == s else 0.0, vdom, mode, s
            )
            for s in _REGISTRATION_STATES.values()
        )
    return metrics


def probe_system_interface(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report link state, speed and traffic counters of every interface."""
    label_names = ("vdom", "name", "alias", "parent")
    link_desc = Desc("fortigate_interface_link_up", "Whether the link is up or not", label_names)
    speed_desc = Desc(
        "fortigate_interface_speed_bps", "Speed negotiated on the port in bits/s", label_names
    )
    counters = (
        (
            Desc(
                "fortigate_interface_transmit_packets_total",
                "Number of packets transmitted on the interface",
                label_names,
            ),
            "tx_packets",
        ),
        (
            Desc(
                "fortigate_interface_receive_packets_total",
                "Number of packets received on the interface",
                label_names,
            ),
            "rx_packets",
        ),
        (
            Desc(
                "fortigate_interface_transmit_bytes_total",
                "Number of bytes transmitted on the interface",
                label_names,
            ),
            "tx_bytes",
        ),
        (
            Desc(
                "fortigate_interface_receive_bytes_total",
                "Number of bytes received on the interface",
                label_names,
            ),
            "rx_bytes",
        ),
        (
            Desc(
                "fortigate_interface_transmit_errors_total",
                "Number of transmission errors detected on the interface",
                label_names,
            ),
            "tx_errors",
        ),
        (
            Desc(
                "fortigate_interface_receive_errors_total",
                "Number of reception errors detected on the interface",
                label_names,
            ),
            "rx_errors",
        ),
    )

    data = _fetch(client, _INTERFACE_PATH, "vdom=*&include_vlan=true&include_aggregate=true")
    metrics: list[Metric] = []
    for response in _objects(data, _INTERFACE_PATH):
        vdom = _text(_get(response, "vdom"), "vdom")
        results = _object(_get(response, "results"), "results")
        for iface in results.values():
            iface = _object(iface, "interface")
            labels = (
                vdom,
                _text(_get(iface, "name"), "name"),
                _text(_get(iface, "alias"), "alias"),
                _text(_get(iface, "interface"), "interface"),
            )
            link = 1.0 if _flag(_get(iface, "link"), "link") else 0.0
            metrics.append(link_desc.metric(ValueType.GAUGE, link, *labels))
            speed = _number(_get(iface, "speed"), "speed") * 1000 * 1000
            metrics.append(speed_desc.metric(ValueType.GAUGE, speed, *labels))
            metrics.extend(
                desc.metric(ValueType.COUNTER, _number(_get(iface, key), key), *labels)
                for desc, key in counters
            )
    return metrics