"""Unit tests for configuration assembly.

Covers:
  - shallow, last-value-wins merge of overrides onto defaults
  - environment-derived defaults and their literal fallbacks
  - TIMEOUT=0 disabling the deadline
  - duration parsing for the static freshness directive
  - block-list YAML loading
  - immutability of ServerConfig
"""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from pkgfront.config import (
    ConfigError,
    ServerConfig,
    default_server_config,
    load_blocklist,
    max_age_seconds,
    merge_config,
    parse_duration_ms,
)


# ─── merge_config ────────────────────────────────────────────────────────────


class TestMergeConfig:

    def test_override_wins_and_other_fields_kept(self) -> None:
        """{port: 5000, timeout: 20000} + {port: 8080} → {port: 8080, timeout: 20000}."""
        defaults = ServerConfig(port=5000, timeout=20000)
        config = merge_config({"port": 8080}, defaults=defaults)
        assert config.port == 8080
        assert config.timeout == 20000

    def test_defaults_not_mutated(self) -> None:
        defaults = ServerConfig(port=5000)
        merge_config({"port": 8080}, defaults=defaults)
        assert defaults.port == 5000

    def test_no_overrides_returns_defaults(self) -> None:
        defaults = ServerConfig(port=5000)
        assert merge_config(None, defaults=defaults) is defaults
        assert merge_config({}, defaults=defaults) is defaults

    def test_registry_fields_pass_through(self) -> None:
        defaults = ServerConfig()
        config = merge_config(
            {
                "registry_url": "https://registry.example.test",
                "redirect_ttl": 60,
                "auto_index": False,
                "blocklist": ["evil-pkg"],
            },
            defaults=defaults,
        )
        assert config.registry_url == "https://registry.example.test"
        assert config.redirect_ttl == 60
        assert config.auto_index is False
        assert config.blocklist == ("evil-pkg",)

    def test_merge_is_shallow(self) -> None:
        """A list override replaces the default list; it is not concatenated."""
        defaults = ServerConfig(blocklist=("a", "b"))
        config = merge_config({"blocklist": ["c"]}, defaults=defaults)
        assert config.blocklist == ("c",)

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ConfigError, match="no_such_field"):
            merge_config({"no_such_field": 1}, defaults=ServerConfig())

    def test_invalid_max_age_rejected(self) -> None:
        with pytest.raises(ConfigError):
            merge_config({"max_age": "forever"}, defaults=ServerConfig())

    @pytest.mark.parametrize("timeout", [-1, -5000, "200", True])
    def test_invalid_timeout_rejected(self, timeout) -> None:
        with pytest.raises(ConfigError, match="timeout"):
            merge_config({"timeout": timeout}, defaults=ServerConfig())

    def test_zero_timeout_accepted(self) -> None:
        assert merge_config({"timeout": 0}, defaults=ServerConfig()).timeout == 0

    def test_uses_environment_when_defaults_omitted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "7000")
        monkeypatch.delenv("TIMEOUT", raising=False)
        config = merge_config({"timeout": 100})
        assert config.port == 7000
        assert config.timeout == 100


class TestServerConfigImmutable:

    def test_frozen(self) -> None:
        config = ServerConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.port = 1234  # type: ignore[misc]


# ─── default_server_config ───────────────────────────────────────────────────


class TestDefaultServerConfig:

    def test_literal_fallbacks(self) -> None:
        config = default_server_config({})
        assert config.port == 5000
        assert config.timeout == 20000
        assert config.max_age == "365d"
        assert config.public_dir == "public"
        assert config.registry_url == "https://registry.npmjs.org"
        assert config.redirect_ttl == 500
        assert config.auto_index is True
        assert config.blocklist == ()

    def test_environment_values(self) -> None:
        config = default_server_config(
            {
                "PORT": "8080",
                "TIMEOUT": "15000",
                "MAX_AGE": "1d",
                "REGISTRY_URL": "https://registry.example.test/",
                "REDIRECT_TTL": "30",
                "DISABLE_INDEX": "1",
            }
        )
        assert config.port == 8080
        assert config.timeout == 15000
        assert config.max_age == "1d"
        assert config.registry_url == "https://registry.example.test"
        assert config.redirect_ttl == 30
        assert config.auto_index is False

    def test_zero_timeout_disables_deadline(self) -> None:
        assert default_server_config({"TIMEOUT": "0"}).timeout == 0

    def test_negative_timeout_rejected(self) -> None:
        with pytest.raises(ConfigError, match="timeout"):
            default_server_config({"TIMEOUT": "-5"})

    @pytest.mark.parametrize("raw", ["", "abc", "  "])
    def test_invalid_integers_fall_back(self, raw: str) -> None:
        config = default_server_config({"PORT": raw, "TIMEOUT": raw})
        assert config.port == 5000
        assert config.timeout == 20000

    def test_blocklist_file(self, tmp_path: Path) -> None:
        path = tmp_path / "blocklist.yaml"
        path.write_text("- evil-pkg\n- '@scope/bad'\n")
        config = default_server_config({"PACKAGE_BLOCKLIST": str(path)})
        assert config.blocklist == ("evil-pkg", "@scope/bad")


# ─── Durations ───────────────────────────────────────────────────────────────


class TestDurations:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("365d", 365 * 86_400_000),
            ("2h", 7_200_000),
            ("10m", 600_000),
            ("30s", 30_000),
            ("250ms", 250),
            ("1500", 1500),
            (1500, 1500),
            ("1w", 604_800_000),
        ],
    )
    def test_parse_duration_ms(self, value, expected: int) -> None:
        assert parse_duration_ms(value) == expected

    @pytest.mark.parametrize("value", ["", "soon", "-5", "5x", True, -1])
    def test_invalid_durations(self, value) -> None:
        with pytest.raises(ConfigError):
            parse_duration_ms(value)

    def test_max_age_seconds(self) -> None:
        assert max_age_seconds("365d") == 31_536_000
        assert ServerConfig(max_age="1h").max_age_seconds == 3600


# ─── Block list ──────────────────────────────────────────────────────────────


class TestLoadBlocklist:

    def test_mapping_form(self, tmp_path: Path) -> None:
        path = tmp_path / "blocklist.yaml"
        path.write_text("blocklist:\n  - evil-pkg\n")
        assert load_blocklist(str(path)) == ("evil-pkg",)

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "blocklist.yaml"
        path.write_text("")
        assert load_blocklist(str(path)) == ()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Could not read"):
            load_blocklist(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "blocklist.yaml"
        path.write_text("- [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_blocklist(str(path))

    def test_wrong_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "blocklist.yaml"
        path.write_text("blocklist: evil-pkg\n")
        with pytest.raises(ConfigError, match="list of package names"):
            load_blocklist(str(path))
