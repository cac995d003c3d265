# fortiexporter

A Prometheus exporter for FortiGate firewalls. It works in the multi-target
style. Prometheus asks the exporter to probe a device. The exporter then calls
the FortiOS REST API on that device with an API token and answers with the
metrics in the Prometheus text format.

## Installation

```
pip install .
```

The only runtime dependency is PyYAML.

## Authentication file

The exporter reads a YAML map from target to API token. By default the file
is `fortigate-key.yaml` in the working directory.

```yaml
"https://192.0.2.1":
  token: token
  probes:
    include:
      - System
      - Firewall/Policies
    exclude:
      - System/Interface
```

Each key is the scheme and host of the device, with no path. Tokens only
work over HTTPS. A target whose entry has no token is refused.

The optional `probes` lists filter probes by name prefix:

- If `include` is empty, every probe runs.
- A probe whose name starts with any entry in `exclude` is skipped, even if it also matches `include`.

## Running

```
fortiexporter --auth-file fortigate-key.yaml --listen :9710
```

Each option can also be written with a single dash, for example `-listen :9710`.

| option             | default              | meaning                                             |
|--------------------|----------------------|-----------------------------------------------------|
| `--auth-file`      | `fortigate-key.yaml` | authentication map                                  |
| `--listen`         | `:9710`              | `host:port` to listen on; an empty host means all   |
| `--scrape-timeout` | `30`                 | seconds after which a probe sends no more requests  |
| `--https-timeout`  | `10`                 | timeout in seconds for requests to the devices      |
| `--insecure`       | off                  | accept certificates that fail verification          |
| `--extra-ca-certs` | empty                | comma-separated PEM files to trust in addition      |
| `--max-bgp-paths`  | `10000`              | BGP paths to fetch when counting routes; 0 disables |
| `--max-vpn-users`  | `0`                  | accepted and stored; no probe uses it               |

The command exits with status 1 in these cases:

- the authentication file or an extra CA file cannot be read or parsed;
- a CA file cannot be loaded;
- the listen address cannot be bound.

## Endpoints

- `/metrics` gives `fortigate_exporter_build_info`, with the labels `version`, `revision` and `pythonversion`.
- `/probe?target=https://192.0.2.1` probes one device. The response always includes `probe_success` and `probe_duration_seconds`, followed by the metrics from the probes.
  - A missing target, a target whose scheme is not `http` or `https`, or a target with no usable entry in the authentication map gives a 400 response.
  - A device that cannot be reached or fails a probe still gives a 200 response, with `probe_success` set to 0.

Any other path gives a 404 response.

Prometheus scrape configuration:

```yaml
scrape_configs:
  - job_name: fortigate
    metrics_path: /probe
    static_configs:
      - targets: ["https://192.0.2.1"]
    relabel_configs:
      - source_labels: [__address__]
        target_label: __param_target
      - source_labels: [__param_target]
        target_label: instance
      - target_label: __address__
        replacement: localhost:9710
```

## Probes

Each probe starts with a request to `api/v2/monitor/system/status`. This
request checks the token and reads the FortiOS version. The probes then run
in this order:

| name                           | metrics prefix                           |
|--------------------------------|------------------------------------------|
| `Firewall/LoadBalance`         | `fortigate_lb_` (FortiOS 6.4 and later)  |
| `Firewall/Policies`            | `fortigate_policy_`                      |
| `License/Status`               | `fortigate_license_vdom_`                |
| `Log/Fortianalyzer/Status`     | `fortigate_log_fortianalyzer_`           |
| `Log/Fortianalyzer/Queue`      | `fortigate_log_fortianalyzer_queue_`     |
| `Log/DiskUsage`                | `fortigate_log_disk_`                    |
| `System/AvailableCertificates` | `fortigate_certificate_`                 |
| `System/Fortimanager/Status`   | `fortigate_fortimanager_`                |
| `System/HAStatistics`          | `fortigate_ha_member_`                   |
| `System/Interface`             | `fortigate_interface_`                   |
| `System/HAChecksum`            | `fortigate_ha_member_has_role`           |

The BGP probes are in `fortiexporter.probes_bgp` but do not run by default:

- `probe_bgp_neighbors_ipv4`
- `probe_bgp_neighbors_ipv6`
- `probe_bgp_neighbor_paths_ipv4`
- `probe_bgp_neighbor_paths_ipv6`

They return nothing before FortiOS 7.0. The path probes read `max_bgp_paths`
from the configuration set with `fortiexporter.config.set_config` or loaded
with `init`/`reinit`.

## What it does not do

The package has no probes for the following:

- system time;
- resource usage;
- sensors;
- link monitors;
- VDOM resources;
- FSSO users;
- IPsec or SSL VPN;
- SD-WAN health checks;
- Wi-Fi access points or clients.

Probes run one after another, not in parallel.

## Using it as a library

```python
from fortiexporter.client import UrllibHTTPClient, configure
from fortiexporter.collector import ProbeCollector
from fortiexporter.config import load_config
from fortiexporter.metrics import render_text

config = load_config(["--auth-file", "fortigate-key.yaml"])
configure(config)  # TLS context and timeout for UrllibHTTPClient
collector = ProbeCollector()
ok = collector.probe("https://192.0.2.1", UrllibHTTPClient(), config)
print(render_text(collector.collect()))
```

`ProbeCollector` takes an optional sequence of `NamedProbe(name, function)`
in place of the default probe list. This lets you add the BGP probes:

```python
from fortiexporter.collector import DEFAULT_PROBES, NamedProbe, ProbeCollector
from fortiexporter.probes_bgp import probe_bgp_neighbors_ipv4

collector = ProbeCollector(
    DEFAULT_PROBES + (NamedProbe("BGP/Neighbors/IPv4", probe_bgp_neighbors_ipv4),)
)
```

Any object with a `do(request)` method that returns an `HTTPResponse` can
stand in for `UrllibHTTPClient`. `handle_probe(query, config, http_client)` in
`fortiexporter.server` returns the same text as the `/probe` endpoint.

## Tests

```
pip install .[test]
pytest
```