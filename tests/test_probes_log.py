import copy
import textwrap
from urllib.parse import parse_qs, urlsplit

import pytest

from fortiexporter.client import APIError
from fortiexporter.metrics import render_text
from fortiexporter.probes_bgp import ProbeError, TargetMetadata
from fortiexporter.probes_log import (
    probe_license_status,
    probe_log_analyzer,
    probe_log_analyzer_queue,
    probe_log_current_disk_usage,
)

META = TargetMetadata(version_major=7, version_minor=0)


class FakeClient:
    def __init__(self):
        self.data = {}
        self.calls = []

    def prepare(self, url, payload):
        parts = urlsplit(url)
        self.data.setdefault(parts.path, []).append((parse_qs(parts.query), payload))

    def get(self, path, query=""):
        self.calls.append((path, query))
        if path not in self.data:
            raise APIError(f"unprepared path {path!r}")
        asked = parse_qs(query, keep_blank_values=True)
        for wanted, payload in self.data[path]:
            if all(asked.get(k, [None])[0] == v[0] for k, v in wanted.items()):
                return copy.deepcopy(payload)
        raise APIError(f"no prepared response for {path!r} with {query!r}")


def expected(text):
    return textwrap.dedent(text).lstrip("\n")


def test_license_status():
    client = FakeClient()
    client.prepare(
        "api/v2/monitor/license/status/select",
        {
            "status": "success",
            "results": {
                "vdom": {"type": "licensed", "can_upgrade": True, "used": 114, "max": 125}
            },
        },
    )
    metrics = probe_license_status(client, META)
    assert render_text(metrics) == expected(
        """
        # HELP fortigate_license_vdom_max The total amount of VDOM licenses available
        # TYPE fortigate_license_vdom_max gauge
        fortigate_license_vdom_max 125
        # HELP fortigate_license_vdom_usage The amount of VDOM licenses currently used
        # TYPE fortigate_license_vdom_usage gauge
        fortigate_license_vdom_usage 114
        """
    )
    assert client.calls == [("api/v2/monitor/license/status/select", "")]


def test_license_status_api_error():
    with pytest.raises(ProbeError, match="unprepared"):
        probe_license_status(FakeClient(), META)


def test_log_current_disk_usage():
    client = FakeClient()
    client.prepare(
        "api/v2/monitor/log/current-disk-usage",
        [{"vdom": "root", "results": {"used_bytes": 700000000, "total_bytes": 30000000000}}],
    )
    metrics = probe_log_current_disk_usage(client, META)
    assert render_text(metrics) == expected(
        """
        # HELP fortigate_log_disk_total_bytes Disk total bytes for log
        # TYPE fortigate_log_disk_total_bytes gauge
        fortigate_log_disk_total_bytes{vdom="root"} 3e+10
        # HELP fortigate_log_disk_used_bytes Disk used bytes for log
        # TYPE fortigate_log_disk_used_bytes gauge
        fortigate_log_disk_used_bytes{vdom="root"} 7e+08
        """
    )
    assert client.calls == [("api/v2/monitor/log/current-disk-usage", "vdom=*")]


def test_log_current_disk_usage_empty_list():
    client = FakeClient()
    client.prepare("api/v2/monitor/log/current-disk-usage", [])
    assert probe_log_current_disk_usage(client, META) == []


def test_log_analyzer_queue():
    client = FakeClient()
    client.prepare(
        "api/v2/monitor/log/fortianalyzer-queue",
        [{"vdom": "root", "results": {"connected": 1, "failed_logs": 0, "cached_logs": 0}}],
    )
    metrics = probe_log_analyzer_queue(client, META)
    assert render_text(metrics) == expected(
        """
        # HELP fortigate_log_fortianalyzer_queue_connections Fortianalyzer queue connected state
        # TYPE fortigate_log_fortianalyzer_queue_connections gauge
        fortigate_log_fortianalyzer_queue_connections{vdom="root"} 1
        # HELP fortigate_log_fortianalyzer_queue_logs State of logs in the queue
        # TYPE fortigate_log_fortianalyzer_queue_logs gauge
        fortigate_log_fortianalyzer_queue_logs{state="cached",vdom="root"} 0
        fortigate_log_fortianalyzer_queue_logs{state="failed",vdom="root"} 0
        """
    )


def test_log_analyzer():
    client = FakeClient()
    client.prepare(
        "api/v2/monitor/log/fortianalyzer",
        [
            {
                "vdom": "root",
                "results": {"registration": "registered", "connection": "allow", "received": 999},
            }
        ],
    )
    metrics = probe_log_analyzer(client, META)
    assert render_text(metrics) == expected(
        """
        # HELP fortigate_log_fortianalyzer_logs_received Received logs in fortianalyzer
        # TYPE fortigate_log_fortianalyzer_logs_received gauge
        fortigate_log_fortianalyzer_logs_received{vdom="root"} 999
        # HELP fortigate_log_fortianalyzer_registration_info Fortianalyzer state info
        # TYPE fortigate_log_fortianalyzer_registration_info gauge
        fortigate_log_fortianalyzer_registration_info{connection="allow",registration="registered",vdom="root"} 1
        """
    )


def test_log_analyzer_rejects_wrong_types():
    client = FakeClient()
    client.prepare(
        "api/v2/monitor/log/fortianalyzer",
        [{"vdom": "root", "results": {"received": "many"}}],
    )
    with pytest.raises(ProbeError, match="received"):
        probe_log_analyzer(client, META)