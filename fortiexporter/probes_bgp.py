"""Probes for BGP neighbors and the paths they announce."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from . import config
from .client import APIError
from .metrics import Desc, Metric, ValueType

log = logging.getLogger(__name__)


class ProbeError(Exception):
    """A probe could not produce its metrics."""


@dataclass(frozen=True)
class TargetMetadata:
    """What is known about a target before the probes run."""

    version_major: int
    version_minor: int


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


def _flag(value: Any, what: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ProbeError(f"{what}: expected a boolean, got {value!r}")
    return value


def _integer(value: Any, what: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise ProbeError(f"{what}: expected an integer, got {value!r}")
    return int(value)


def _neighbor_paths(client: Any, meta: TargetMetadata, path: str, family: str) -> list[Metric]:
    max_paths = config.get_config().max_bgp_paths
    if max_paths == 0:
        return []
    if meta.version_major < 7:
        # The endpoint does not exist before 7.0.0.
        return []

    paths_desc = Desc(
        f"fortigate_bgp_neighbor_{family}_paths",
        "Count of paths received from an BGP neighbor",
        ("vdom", "neighbor_ip"),
    )
    best_desc = Desc(
        f"fortigate_bgp_neighbor_{family}_best_paths",
        "Count of best paths for an BGP neighbor",
        ("vdom", "neighbor_ip"),
    )

    responses = _objects(_fetch(client, path, f"vdom=*&count={max_paths}"), path)

    all_paths: Counter[tuple[str, str]] = Counter()
    best_paths: Counter[tuple[str, str]] = Counter()
    for response in responses:
        vdom = _text(_get(response, "vdom"), "vdom")
        results = _objects(_get(response, "results"), "results")
        if len(results) > max_paths:
            raise ProbeError(
                f"Received more BGP Paths than maximum ({len(results)} > {max_paths}) "
                "allowed, ignoring metric"
            )
        for route in results:
            key = (vdom, _text(_get(route, "learned_from"), "learned_from"))
            all_paths[key] += 1
            if _flag(_get(route, "is_best"), "is_best"):
                best_paths[key] += 1

    metrics = [paths_desc.metric(ValueType.GAUGE, count, *key) for key, count in all_paths.items()]
    metrics.extend(
        best_desc.metric(ValueType.GAUGE, count, *key) for key, count in best_paths.items()
    )
    return metrics


def probe_bgp_neighbor_paths_ipv4(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Count IPv4 paths and best paths per BGP neighbor."""
    return _neighbor_paths(client, meta, "api/v2/monitor/router/bgp/paths", "ipv4")


def probe_bgp_neighbor_paths_ipv6(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Count IPv6 paths and best paths per BGP neighbor."""
    return _neighbor_paths(client, meta, "api/v2/monitor/router/bgp/paths6", "ipv6")


def _neighbors(client: Any, meta: TargetMetadata, path: str, family: str) -> list[Metric]:
    if meta.version_major < 7:
        # The endpoint does not exist before 7.0.0.
        return []

    desc = Desc(
        f"fortigate_bgp_neighbor_{family}_info",
        f"Configured bgp neighbor over {family}",
        ("vdom", "remote_as", "state", "admin_status", "local_ip", "neighbor_ip"),
    )

    metrics = []
    for response in _objects(_fetch(client, path, "vdom=*"), path):
        vdom = _text(_get(response, "vdom"), "vdom")
        for peer in _objects(_get(response, "results"), "results"):
            metrics.append(
                desc.metric(
                    ValueType.GAUGE,
                    1,
                    vdom,
                    str(_integer(_get(peer, "remote_as"), "remote_as")),
                    _text(_get(peer, "state"), "state"),
                    "true" if _flag(_get(peer, "admin_status"), "admin_status") else "false",
                    _text(_get(peer, "local_ip"), "local_ip"),
                    _text(_get(peer, "neighbor_ip"), "neighbor_ip"),
                )
            )
    return metrics


def probe_bgp_neighbors_ipv4(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report configured BGP neighbors over IPv4."""
    return _neighbors(client, meta, "api/v2/monitor/router/bgp/neighbors", "ipv4")


def probe_bgp_neighbors_ipv6(client: Any, meta: TargetMetadata) -> list[Metric]:
    """Report configured BGP neighbors over IPv6."""
    return _neighbors(client, meta, "api/v2/monitor/router/bgp/neighbors6", "ipv6")