import pytest

from fortiexporter import config as cfg
from fortiexporter.config import (
    ConfigError,
    FortiExporterConfig,
    LocalCert,
    Probes,
    TargetAuth,
    get_config,
    init,
    load_config,
    reinit,
    set_config,
)

AUTH_YAML = """\
"https://192.0.2.1":
  token: token
  probes:
    include: [System, Firewall]
    exclude: [System/HAChecksum]
"https://198.51.100.2":
  token: token
"""


@pytest.fixture(autouse=True)
def _clear_config():
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def auth_file(tmp_path):
    path = tmp_path / "keys.yaml"
    path.write_text(AUTH_YAML)
    return path


def test_defaults(auth_file):
    conf = load_config(["-auth-file", str(auth_file)])
    assert conf.listen == ":9710"
    assert conf.scrape_timeout == 30
    assert conf.tls_timeout == 10
    assert conf.tls_insecure is False
    assert conf.max_bgp_paths == 10000
    assert conf.max_vpn_users == 0
    assert conf.tls_extra_cas == ()


def test_parser_default_auth_file():
    args = cfg.build_parser().parse_args([])
    assert args.auth_file == "fortigate-key.yaml"


def test_auth_keys_parsed(auth_file):
    conf = load_config(["-auth-file", str(auth_file)])
    assert conf.auth_keys == {
        "https://192.0.2.1": TargetAuth(
            token="token",
            probes=Probes(include=("System", "Firewall"), exclude=("System/HAChecksum",)),
        ),
        "https://198.51.100.2": TargetAuth(token="token", probes=Probes()),
    }


def test_flags_override(auth_file):
    conf = load_config(
        [
            "--auth-file", str(auth_file),
            "-listen", "127.0.0.1:9999",
            "-scrape-timeout", "5",
            "-https-timeout", "3",
            "-insecure",
            "-max-bgp-paths", "20",
            "-max-vpn-users", "7",
        ]
    )
    assert conf.listen == "127.0.0.1:9999"
    assert conf.scrape_timeout == 5
    assert conf.tls_timeout == 3
    assert conf.tls_insecure is True
    assert conf.max_bgp_paths == 20
    assert conf.max_vpn_users == 7


def test_empty_auth_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(["-auth-file", str(path)]).auth_keys == {}


def test_missing_auth_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(["-auth-file", str(tmp_path / "absent.yaml")])


def test_malformed_auth_file(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("key: [unterminated\n")
    with pytest.raises(ConfigError):
        load_config(["-auth-file", str(path)])


def test_auth_file_not_a_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError):
        load_config(["-auth-file", str(path)])


def test_extra_ca_files_read(auth_file, tmp_path):
    first = tmp_path / "a.pem"
    second = tmp_path / "b.pem"
    first.write_bytes(b"first bundle")
    second.write_bytes(b"second bundle")
    conf = load_config(
        ["-auth-file", str(auth_file), "-extra-ca-certs", f"{first},,{second}"]
    )
    assert conf.tls_extra_cas == (
        LocalCert(path=str(first), content=b"first bundle"),
        LocalCert(path=str(second), content=b"second bundle"),
    )


def test_missing_extra_ca_file(auth_file, tmp_path):
    with pytest.raises(ConfigError):
        load_config(["-auth-file", str(auth_file), "-extra-ca-certs", str(tmp_path / "nope.pem")])


def test_get_config_before_load():
    with pytest.raises(ConfigError):
        get_config()


def test_init_only_loads_once(auth_file):
    first = init(["-auth-file", str(auth_file)])
    assert get_config() == first
    again = init(["-auth-file", str(auth_file), "-listen", ":1"])
    assert again.listen == ":9710"
    assert get_config() is first


def test_reinit_replaces(auth_file):
    init(["-auth-file", str(auth_file)])
    reloaded = reinit(["-auth-file", str(auth_file), "-listen", ":1"])
    assert get_config().listen == reloaded.listen == ":1"


def test_set_config_roundtrip():
    conf = FortiExporterConfig(listen=":1234")
    set_config(conf)
    assert get_config() is conf