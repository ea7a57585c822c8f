"""Settings loading for the robot scanner.

Read ``settings.yaml`` and an optional uncommitted ``settings.local.yaml`` from
the config directory, resolve ``${VAR}`` / ``${VAR:default}`` references
against the environment (after loading ``.env``), and hand out sections as
plain dictionaries or as dictionaries coerced to declared field types.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

_SETTINGS_FILES = ("settings.yaml", "settings.local.yaml")
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


class ConfigLoader:
    """Layered YAML settings with environment references resolved at load time.

    Args:
        config_dir: Directory holding the settings files. Defaults to the
            ``config`` directory packaged with ``robot_scanner``.

    """

    def __init__(self, config_dir: Path | None = None) -> None:
        """Load ``.env`` and then every settings file present in ``config_dir``."""
        load_dotenv()
        if config_dir is None:
            config_dir = Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)
        settings: dict[str, Any] = {}
        for name in _SETTINGS_FILES:
            path = self.config_dir / name
            if path.exists():
                with path.open() as f:
                    _merge_into(settings, cast("dict[str, Any]", yaml.safe_load(f) or {}))
        self._settings = cast("dict[str, Any]", _resolve(settings))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a value by dotted path, e.g. ``feed.url``.

        Returns ``default`` when any path segment is missing, null, or
        descends into a non-mapping.
        """
        node: Any = self._settings
        for part in key.split("."):
            if not isinstance(node, dict):
                return default
            node = cast("dict[str, Any]", node).get(part)
            if node is None:
                return default
        return node

    def get_section(self, name: str) -> dict[str, Any]:
        """Return a top-level section, or an empty dict when it is absent.

        Raises:
            ConfigError: If the section is present but not a mapping.

        """
        section: Any = self.get(name, {})
        if not isinstance(section, dict):
            msg = f"{name} config must be a dict, got {type(section).__name__}"
            raise ConfigError(msg)
        return cast("dict[str, Any]", section)

    def get_typed_section(self, name: str, schema: Mapping[str, type]) -> dict[str, Any]:
        """Return a section with every value converted to its declared type.

        Keys missing from the section or set to null are left out, so the
        caller's own defaults apply. Strings produced by environment
        substitution are parsed; an ``int`` field only accepts integral
        numbers.

        Args:
            name: Top-level section name, e.g. ``detector``.
            schema: Allowed keys mapped to their target type (``int``,
                ``float``, ``str`` or ``bool``).

        Returns:
            Converted settings for the keys present in the section.

        Raises:
            ConfigError: On an unknown key or a value that does not fit its type.

        """
        section = self.get_section(name)
        unknown = sorted(set(section) - set(schema))
        if unknown:
            msg = f"Unknown {name} settings: {', '.join(unknown)}"
            raise ConfigError(msg)

        typed: dict[str, Any] = {}
        for key, raw in section.items():
            if raw is None:
                continue
            try:
                typed[key] = _coerce(raw, schema[key])
            except (TypeError, ValueError) as exc:
                msg = f"Invalid value for {name}.{key}: {raw!r} (expected {schema[key].__name__})"
                raise ConfigError(msg) from exc
        return typed


def _merge_into(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Recursively overlay ``override`` onto ``base`` in place."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_into(cast("dict[str, Any]", current), cast("dict[str, Any]", value))
        else:
            base[key] = value


def _resolve(node: Any) -> Any:
    """Replace whole-string ``${VAR}`` references throughout a settings tree.

    Raises:
        ConfigError: If a variable is unset with no default, or a reference
            is embedded inside a longer string.

    """
    if isinstance(node, dict):
        return {k: _resolve(v) for k, v in cast("dict[str, Any]", node).items()}
    if isinstance(node, list):
        return [_resolve(item) for item in cast("list[Any]", node)]
    if not isinstance(node, str):
        return node

    match = _ENV_REFERENCE.fullmatch(node)
    if match is None:
        if _ENV_REFERENCE.search(node):
            msg = f"Unresolved environment variable reference in: {node}"
            raise ConfigError(msg)
        return node

    value = os.getenv(match["name"], match["default"])
    if value is None:
        msg = f"Required environment variable ${{{match['name']}}} is not set and has no default"
        raise ConfigError(msg)
    return value


def _coerce(value: Any, kind: type) -> Any:
    """Convert one raw setting to ``kind``.

    Raises:
        ValueError: If the value cannot represent ``kind`` without loss.
        TypeError: If the value has an unconvertible type.

    """
    if kind is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in {"true", "yes", "1"}:
            return True
        if text in {"false", "no", "0"}:
            return False
        msg = f"not a boolean: {value!r}"
        raise ValueError(msg)
    if kind is int:
        if isinstance(value, bool):
            msg = "booleans are not integers"
            raise TypeError(msg)
        if isinstance(value, float):
            if not value.is_integer():
                msg = f"not an integer: {value}"
                raise ValueError(msg)
            return int(value)
        return int(value)
    return kind(value)


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the process-wide ``ConfigLoader``, loading settings on first use.

    Returns:
        The shared ``ConfigLoader`` instance.

    """
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
