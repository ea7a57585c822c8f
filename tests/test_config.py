"""Tests for configuration management."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

import robot_scanner.core.config as config_module
from robot_scanner.core.config import ConfigError, ConfigLoader, get_config

EXPECTED_MIN_LOT = 5
EXPECTED_TIME_WINDOW_MS = 240_000
EXPECTED_TIMEOUT_MS = 120_000
EXPECTED_RECENT = 10


class TestConfigLoader:
    """Test suite for ConfigLoader."""

    def test_load_default_config(self) -> None:
        """Load the packaged settings.yaml with detector defaults."""
        loader = ConfigLoader()
        assert loader.get("detector.min_lot") == EXPECTED_MIN_LOT
        assert loader.get("detector.time_window_ms") == EXPECTED_TIME_WINDOW_MS
        assert loader.get("detector.display_timezone") == "Europe/Moscow"

    def test_get_with_dot_notation(self, tmp_path: Path) -> None:
        """Get nested values with dot notation."""
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
feed:
  url: ws://example.test/trades
  reconnect_base_delay: 2.0
""")

        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("feed.url") == "ws://example.test/trades"
        assert loader.get("feed.reconnect_base_delay") == pytest.approx(2.0)

    def test_get_with_default(self, tmp_path: Path) -> None:
        """Return the default for a missing key."""
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("feed:\n  url: ws://example.test/trades")

        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("nonexistent.key", "default_value") == "default_value"

    def test_get_through_scalar_returns_default(self, tmp_path: Path) -> None:
        """Return the default when a path descends into a scalar."""
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("feed:\n  url: ws://example.test/trades")

        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("feed.url.host", "fallback") == "fallback"

    def test_missing_directory_gives_empty_config(self, tmp_path: Path) -> None:
        """Load nothing when the directory has no settings files."""
        loader = ConfigLoader(config_dir=tmp_path / "absent")
        assert loader.get("detector") is None

    def test_env_var_substitution(self, tmp_path: Path) -> None:
        """Substitute environment variables, falling back to defaults."""
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("""
feed:
  url: ${TEST_FEED_URL}
  reconnect_base_delay: ${TEST_RECONNECT_DELAY:2.5}
""")

        with patch.dict(os.environ, {"TEST_FEED_URL": "ws://env.test"}):
            loader = ConfigLoader(config_dir=tmp_path)
            assert loader.get("feed.url") == "ws://env.test"
            assert loader.get("feed.reconnect_base_delay") == "2.5"

    def test_local_settings_override(self, tmp_path: Path) -> None:
        """Let settings.local.yaml override base settings."""
        (tmp_path / "settings.yaml").write_text("""
detector:
  min_lot: 5
  robot_timeout_ms: 180000
instruments:
  currency: RUB
""")
        (tmp_path / "settings.local.yaml").write_text("""
detector:
  robot_timeout_ms: 120000
instruments:
  currency: USD
""")

        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("detector.min_lot") == EXPECTED_MIN_LOT
        assert loader.get("detector.robot_timeout_ms") == EXPECTED_TIMEOUT_MS
        assert loader.get("instruments.currency") == "USD"

    def test_list_values_are_substituted(self, tmp_path: Path) -> None:
        """Substitute environment variables inside lists."""
        (tmp_path / "settings.yaml").write_text("""
watch:
  - ${TEST_FIGI_ONE:BBG000000001}
  - BBG000000002
""")

        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get("watch") == ["BBG000000001", "BBG000000002"]

    def test_get_section(self, tmp_path: Path) -> None:
        """Return a top-level section as a dictionary."""
        (tmp_path / "settings.yaml").write_text("""
detector:
  recent_samples: 10
""")

        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get_section("detector") == {"recent_samples": EXPECTED_RECENT}

    def test_get_section_missing_is_empty(self, tmp_path: Path) -> None:
        """Return an empty dictionary for an absent section."""
        (tmp_path / "settings.yaml").write_text("feed: {}")

        loader = ConfigLoader(config_dir=tmp_path)
        assert loader.get_section("detector") == {}

    def test_get_section_not_a_dict_raises(self, tmp_path: Path) -> None:
        """Raise ConfigError when a section is a scalar."""
        (tmp_path / "settings.yaml").write_text("detector: 5")

        loader = ConfigLoader(config_dir=tmp_path)
        with pytest.raises(ConfigError, match="detector config must be a dict"):
            loader.get_section("detector")

    def test_full_string_unresolved_env_var_raises_config_error(self, tmp_path: Path) -> None:
        """Raise ConfigError when env var is unset and has no default."""
        (tmp_path / "settings.yaml").write_text("""
feed:
  url: ${NONEXISTENT_ROBOT_SCANNER_VAR}
""")

        with pytest.raises(ConfigError, match="Required environment variable"):
            ConfigLoader(config_dir=tmp_path)

    def test_embedded_env_var_reference_raises_config_error(self, tmp_path: Path) -> None:
        """Raise ConfigError when an env var reference is embedded in a larger string."""
        (tmp_path / "settings.yaml").write_text("""
feed:
  url: wss://stream.example.com/${NONEXISTENT_PATH_VAR}/v1
""")

        with pytest.raises(ConfigError, match="Unresolved environment variable reference"):
            ConfigLoader(config_dir=tmp_path)


_SCHEMA: dict[str, type] = {
    "min_lot": int,
    "interval_tolerance": float,
    "display_timezone": str,
    "enabled": bool,
}


class TestGetTypedSection:
    """Test suite for ConfigLoader.get_typed_section."""

    def _loader(self, tmp_path: Path, body: str) -> ConfigLoader:
        (tmp_path / "settings.yaml").write_text(body)
        return ConfigLoader(config_dir=tmp_path)

    def test_converts_values_to_declared_types(self, tmp_path: Path) -> None:
        """Convert substituted strings and YAML scalars to the schema types."""
        loader = self._loader(
            tmp_path,
            """
detector:
  min_lot: ${TEST_TYPED_MIN_LOT:20}
  interval_tolerance: 1
  display_timezone: UTC
  enabled: "yes"
""",
        )

        section = loader.get_typed_section("detector", _SCHEMA)

        assert section == {
            "min_lot": 20,
            "interval_tolerance": 1.0,
            "display_timezone": "UTC",
            "enabled": True,
        }
        assert isinstance(section["interval_tolerance"], float)

    def test_null_and_missing_keys_are_left_out(self, tmp_path: Path) -> None:
        """Omit keys that are absent or explicitly null."""
        loader = self._loader(tmp_path, "detector:\n  min_lot:\n  display_timezone: UTC\n")

        assert loader.get_typed_section("detector", _SCHEMA) == {"display_timezone": "UTC"}

    def test_integral_float_is_accepted_for_int(self, tmp_path: Path) -> None:
        """Accept 5.0 for an integer field."""
        loader = self._loader(tmp_path, "detector:\n  min_lot: 5.0\n")

        section = loader.get_typed_section("detector", _SCHEMA)

        assert section["min_lot"] == EXPECTED_MIN_LOT
        assert isinstance(section["min_lot"], int)

    @pytest.mark.parametrize("raw", ["5.9", "'5.9'", "true", "many"])
    def test_non_integral_value_for_int_raises(self, tmp_path: Path, raw: str) -> None:
        """Reject values an integer field cannot hold without loss."""
        loader = self._loader(tmp_path, f"detector:\n  min_lot: {raw}\n")

        with pytest.raises(ConfigError, match=r"detector\.min_lot"):
            loader.get_typed_section("detector", _SCHEMA)

    def test_invalid_boolean_raises(self, tmp_path: Path) -> None:
        """Reject strings that do not spell a boolean."""
        loader = self._loader(tmp_path, "detector:\n  enabled: maybe\n")

        with pytest.raises(ConfigError, match=r"detector\.enabled"):
            loader.get_typed_section("detector", _SCHEMA)

    def test_unknown_key_raises(self, tmp_path: Path) -> None:
        """Name every key the schema does not declare."""
        loader = self._loader(tmp_path, "detector:\n  min_lots: 5\n  colour: red\n")

        with pytest.raises(ConfigError, match="Unknown detector settings: colour, min_lots"):
            loader.get_typed_section("detector", _SCHEMA)


class TestGetConfig:
    """Test suite for the lazy singleton get_config() function."""

    def test_returns_config_loader_instance(self) -> None:
        """Return a ConfigLoader instance on first call."""
        assert isinstance(get_config(), ConfigLoader)

    def test_returns_same_instance(self) -> None:
        """Return the same ConfigLoader on subsequent calls."""
        first = get_config()
        second = get_config()
        assert first is second
        assert config_module._config is first
