"""Command line flags and the authentication map of the exporter."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import yaml

log = logging.getLogger(__name__)


class ConfigError(Exception):
    """The exporter configuration could not be loaded."""


@dataclass(frozen=True)
class Probes:
    """Name prefixes of probes to run or to skip for a target."""

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class TargetAuth:
    """Credentials and probe selection for one target."""

    token: str = ""
    probes: Probes = field(default_factory=Probes)


@dataclass(frozen=True)
class LocalCert:
    """An extra CA bundle read from disk."""

    path: str
    content: bytes


@dataclass(frozen=True)
class FortiExporterConfig:
    """Settled configuration of a running exporter."""

    auth_keys: dict[str, TargetAuth] = field(default_factory=dict)
    listen: str = ":9710"
    scrape_timeout: int = 30
    tls_timeout: int = 10
    tls_insecure: bool = False
    tls_extra_cas: tuple[LocalCert, ...] = ()
    max_bgp_paths: int = 10000
    max_vpn_users: int = 0


_saved: FortiExporterConfig | None = None


def build_parser() -> argparse.ArgumentParser:
    """Return the parser for the exporter's command line flags."""
    parser = argparse.ArgumentParser(
        prog="fortigate-exporter",
        description="Prometheus exporter for FortiGate devices",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-auth-file", "--auth-file", dest="auth_file", default="fortigate-key.yaml",
        help="file containing the authentication map to use when connecting to a Fortigate device",
    )
    parser.add_argument(
        "-listen", "--listen", dest="listen", default=":9710", help="address to listen on",
    )
    parser.add_argument(
        "-scrape-timeout", "--scrape-timeout", dest="scrape_timeout", type=int, default=30,
        help="max seconds to allow a scrape to take",
    )
    parser.add_argument(
        "-https-timeout", "--https-timeout", dest="tls_timeout", type=int, default=10,
        help="TLS Handshake timeout in seconds",
    )
    parser.add_argument(
        "-insecure", "--insecure", dest="tls_insecure", action="store_true",
        help="Allow insecure certificates",
    )
    parser.add_argument(
        "-extra-ca-certs", "--extra-ca-certs", dest="extra_ca_certs", default="",
        help="comma-separated files containing extra PEMs to trust for TLS connections "
        "in addition to the system trust store",
    )
    parser.add_argument(
        "-max-bgp-paths", "--max-bgp-paths", dest="max_bgp_paths", type=int, default=10000,
        help="How many BGP Paths to receive when counting routes, needs to be greater than "
        "or equal to the number of routes or metrics will not be generated",
    )
    parser.add_argument(
        "-max-vpn-users", "--max-vpn-users", dest="max_vpn_users", type=int, default=0,
        help="How many VPN Users to receive when counting users, needs to be greater than "
        "or equal the number of users or metrics will not be generated (0 eq. none by default)",
    )
    return parser


def _probe_list(value: object, what: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"probes {what} must be a list")
    return tuple(str(item) for item in value)


def _parse_auth_keys(data: object) -> dict[str, TargetAuth]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Failed to parse API authentication map file: expected a mapping")
    keys: dict[str, TargetAuth] = {}
    for target, entry in data.items():
        entry = entry or {}
        if not isinstance(entry, dict):
            raise ConfigError(f"authentication entry for {target!r} must be a mapping")
        probes = entry.get("probes") or {}
        if not isinstance(probes, dict):
            raise ConfigError(f"probes for {target!r} must be a mapping")
        keys[str(target)] = TargetAuth(
            token=str(entry.get("token") or ""),
            probes=Probes(
                include=_probe_list(probes.get("include"), "include"),
                exclude=_probe_list(probes.get("exclude"), "exclude"),
            ),
        )
    return keys


def load_config(argv: Sequence[str] | None = None) -> FortiExporterConfig:
    """Parse flags and read the files they name into a configuration."""
    args = build_parser().parse_args(argv)

    try:
        raw = Path(args.auth_file).read_bytes()
    except OSError as exc:
        raise ConfigError(f"Failed to read API authentication map file: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse API authentication map file: {exc}") from exc

    auth_keys = _parse_auth_keys(data)
    log.info("Loaded %d API keys", len(auth_keys))

    extra_cas = []
    for ca_path in args.extra_ca_certs.split(","):
        if not ca_path:
            continue
        try:
            content = Path(ca_path).read_bytes()
        except OSError as exc:
            raise ConfigError(f"Failed to read extra CA file {ca_path!r}: {exc}") from exc
        extra_cas.append(LocalCert(path=ca_path, content=content))

    return FortiExporterConfig(
        auth_keys=auth_keys,
        listen=args.listen,
        scrape_timeout=args.scrape_timeout,
        tls_timeout=args.tls_timeout,
        tls_insecure=args.tls_insecure,
        tls_extra_cas=tuple(extra_cas),
        max_bgp_paths=args.max_bgp_paths,
        max_vpn_users=args.max_vpn_users,
    )


def init(argv: Sequence[str] | None = None) -> FortiExporterConfig:
    """Load the configuration unless it has been loaded already."""
    if _saved is not None:
        return _saved
    return reinit(argv)


def reinit(argv: Sequence[str] | None = None) -> FortiExporterConfig:
    """Load the configuration again and keep it as the current one."""
    config = load_config(argv)
    set_config(config)
    return config


def get_config() -> FortiExporterConfig:
    """Return the current configuration."""
    if _saved is None:
        raise ConfigError("configuration has not been loaded")
    return _saved


def set_config(config: FortiExporterConfig | None) -> FortiExporterConfig | None:
    """Replace the current configuration and return the one replaced; None clears it."""
    global _saved
    if config is not None and not isinstance(config, FortiExporterConfig):
        raise TypeError(
            f"expected FortiExporterConfig or None, got {type(config).__name__}"
        )
    previous, _saved = _saved, config
    return previous