"""Running the selected probes against one target and keeping their metrics."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from .client import APIError, new_forti_client
from .config import FortiExporterConfig
from .metrics import Metric
from .probes_bgp import ProbeError, TargetMetadata
from .probes_firewall import probe_firewall_load_balance, probe_firewall_policies
from .probes_ha import probe_system_ha_checksum, probe_system_ha_statistics
from .probes_log import (
    probe_license_status,
    probe_log_analyzer,
    probe_log_analyzer_queue,
    probe_log_current_disk_usage,
)
from .probes_system import (
    probe_system_available_certificates,
    probe_system_fortimanager_status,
    probe_system_interface,
)
from .version import parse_version

log = logging.getLogger(__name__)

_STATUS_PATH = "api/v2/monitor/system/status"

ProbeFunction = Callable[[Any, TargetMetadata], list[Metric]]


@dataclass(frozen=True)
class NamedProbe:
    """A probe and the name used to select it."""

    name: str
    function: ProbeFunction


DEFAULT_PROBES: tuple[NamedProbe, ...] = (
    NamedProbe("Firewall/LoadBalance", probe_firewall_load_balance),
    NamedProbe("Firewall/Policies", probe_firewall_policies),
    NamedProbe("License/Status", probe_license_status),
    NamedProbe("Log/Fortianalyzer/Status", probe_log_analyzer),
    NamedProbe("Log/Fortianalyzer/Queue", probe_log_analyzer_queue),
    NamedProbe("Log/DiskUsage", probe_log_current_disk_usage),
    NamedProbe("System/AvailableCertificates", probe_system_available_certificates),
    NamedProbe("System/Fortimanager/Status", probe_system_fortimanager_status),
    NamedProbe("System/HAStatistics", probe_system_ha_statistics),
    NamedProbe("System/Interface", probe_system_interface),
    NamedProbe("System/HAChecksum", probe_system_ha_checksum),
)


def probe_wanted(name: str, include: Iterable[str], exclude: Iterable[str]) -> bool:
    """Tell whether a probe is selected by include and exclude name prefixes.

    An empty include list selects every probe; an exclude prefix always wins.
    """
    include = tuple(include)
    wanted = not include or any(name.startswith(prefix) for prefix in include)
    if any(name.startswith(prefix) for prefix in exclude):
        wanted = False
    return wanted


def _get(obj: Mapping[str, Any], key: str) -> Any:
    if key in obj:
        return obj[key]
    lowered = key.lower()
    for name, value in obj.items():
        if name.lower() == lowered:
            return value
    return None


class ProbeCollector:
    """Runs probes against targets and accumulates the metrics they return."""

    def __init__(self, probes: Sequence[NamedProbe] | None = None):
        self._probes = tuple(DEFAULT_PROBES if probes is None else probes)
        self._metrics: list[Metric] = []

    def probe(self, target: str, http_client: Any, config: FortiExporterConfig) -> bool:
        """Run every wanted probe against the target.

        Returns whether all of them succeeded. Raises ValueError for a target
        URL that cannot be used and APIError when no client can be built.
        """
        parts = urlsplit(target)
        if parts.scheme not in ("https", "http"):
            raise ValueError(f'Unsupported scheme "{parts.scheme}"')

        # Keep nothing but scheme and host.
        host = parts.netloc.rpartition("@")[2]
        base = f"{parts.scheme}://{host}" if host else f"{parts.scheme}:"
        client = new_forti_client(base, http_client, config)

        # The status endpoint is open to any access group, so it checks the
        # credentials and tells the OS version before the probes run.
        try:
            status = client.get(_STATUS_PATH, "")
        except APIError as exc:
            log.error("Error: API connectivity test failed, %s", exc)
            return False
        if not isinstance(status, dict):
            log.error("Error: API connectivity test returned no status object")
            return False
        state = _get(status, "status")
        version = _get(status, "version")
        if state is not None and not isinstance(state, str):
            log.error("Error: API connectivity test returned status: %r", state)
            return False
        if state != "success":
            log.error("Error: API connectivity test returned status: %s", state or "")
            return False
        if not isinstance(version, str):
            log.error("Error: Failed to parse OS version: %r", version)
            return False
        try:
            major, minor = parse_version(version)
        except ValueError:
            log.error("Error: Failed to parse OS version: %r", version)
            return False

        meta = TargetMetadata(version_major=major, version_minor=minor)
        auth = config.auth_keys[base]

        success = True
        for named in self._probes:
            if not probe_wanted(named.name, auth.probes.include, auth.probes.exclude):
                continue
            try:
                metrics = named.function(client, meta)
            except ProbeError as exc:
                log.error("Error: %s", exc)
                success = False
                continue
            self._metrics.extend(metrics)
        return success

    def collect(self) -> list[Metric]:
        """Return every metric gathered so far."""
        return list(self._metrics)