"""Test config loading and parsing."""

from __future__ import annotations

import pytest
import yaml

from puppetry.config import Config, load_config
from puppetry.core.errors import PuppetryConfigurationError


class TestLoadConfig:
    def test_missing_file_returns_empty(self, tmp_path):
        assert load_config(tmp_path / "nope.yaml") == {}

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("irc_server: irc.example.net:6697\nident_port: 1113\n")
        assert load_config(path) == {"irc_server": "irc.example.net:6697", "ident_port": 1113}

    def test_non_dict_returns_empty(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        assert load_config(path) == {}

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("irc_server: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_config(path)


class TestConfigDefaults:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PUPPETRY_IRC_TLS_VERIFY", raising=False)
        monkeypatch.delenv("PUPPETRY_RPC_TOKEN", raising=False)
        cfg = Config({})
        assert cfg.irc_server == ""
        assert cfg.irc_use_tls is True
        assert cfg.irc_tls_verify is True
        assert cfg.ident_port == 113
        assert cfg.ident_lookup_timeout == 2.0
        assert cfg.rpc_host == "127.0.0.1"
        assert cfg.rpc_port == 8420
        assert cfg.rpc_token is None
        assert cfg.puppet_ping_interval == 240
        assert cfg.connect_settle_timeout == 1.0

    def test_values_from_data(self, monkeypatch):
        monkeypatch.delenv("PUPPETRY_RPC_TOKEN", raising=False)
        cfg = Config(
            {
                "irc_server": "irc.example.net:6697",
                "irc_server_password": "pw",
                "irc_webirc_password": "gate",
                "rpc_token": "  tok  ",
                "ident_port": "1113",
            }
        )
        assert cfg.irc_server_password == "pw"
        assert cfg.irc_webirc_password == "gate"
        assert cfg.rpc_token == "tok"
        assert cfg.ident_port == 1113


class TestEnvOverrides:
    def test_tls_verify_env_false(self, monkeypatch):
        monkeypatch.setenv("PUPPETRY_IRC_TLS_VERIFY", "false")
        assert Config({"irc_tls_verify": True}).irc_tls_verify is False

    def test_tls_verify_env_unrecognized_falls_back(self, monkeypatch):
        monkeypatch.setenv("PUPPETRY_IRC_TLS_VERIFY", "maybe")
        assert Config({"irc_tls_verify": False}).irc_tls_verify is False

    def test_rpc_token_env_wins(self, monkeypatch):
        monkeypatch.setenv("PUPPETRY_RPC_TOKEN", "from-env")
        assert Config({"rpc_token": "from-file"}).rpc_token == "from-env"


class TestValidation:
    def test_reload_accepts_valid(self):
        cfg = Config()
        cfg.reload({"ident_port": 113, "rpc_port": 0})
        assert cfg.rpc_port == 0

    @pytest.mark.parametrize("value", ["abc", None, [1]])
    def test_non_integer_port(self, value):
        with pytest.raises(PuppetryConfigurationError) as exc_info:
            Config().reload({"ident_port": value})
        assert exc_info.value.code == "invalid_port"

    def test_port_out_of_range(self):
        with pytest.raises(PuppetryConfigurationError):
            Config().reload({"rpc_port": 70000})

    def test_server_must_be_string(self):
        with pytest.raises(PuppetryConfigurationError) as exc_info:
            Config().reload({"irc_server": 6697})
        assert exc_info.value.code == "invalid_server"

    def test_reload_without_validation(self):
        cfg = Config()
        cfg.reload({"rpc_port": "abc"}, validate=False)
        assert cfg["rpc_port"] == "abc"
