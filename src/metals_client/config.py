"""
Configuration file parsing for the Metals client.

Settings are merged from three YAML files, later ones overriding earlier ones:
machine-level, user-level, then the project file found by walking up from the
workspace root.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import platformdirs
import yaml

from metals_client.logging import LogLevel, parse_log_level

__all__ = [
    "PROJECT_CONFIG_NAME",
    "ClientConfig",
    "ConfigError",
    "SettingsStore",
    "get_user_config_path",
    "get_machine_config_path",
    "find_project_config",
    "parse_config_file",
    "load_config",
]

PROJECT_CONFIG_NAME = ".metals-client.yml"


class ConfigError(Exception):
    """
    Raised when a configuration file is invalid.
    """

    pass


@dataclass(frozen=True)
class ClientConfig:
    """Resolved client settings.

    Attributes:
        server_command: argv used to spawn the language server
        server_properties: extra JVM properties appended to the server command
        java_home: JAVA_HOME exported to the server process, if set
        log_level: verbosity of the client log
        tick_interval: seconds between slow-task elapsed-time updates
        completion_delay: seconds a finished slow task stays visible
        initialization_options: overrides merged into the initialize request
    """

    server_command: list[str] = field(default_factory=lambda: ["metals"])
    server_properties: list[str] = field(default_factory=list)
    java_home: Optional[str] = None
    log_level: LogLevel = LogLevel.INFO
    tick_interval: float = 1.0
    completion_delay: float = 1.0
    initialization_options: dict = field(default_factory=dict)

    def full_server_command(self) -> list[str]:
        """Return the argv with server properties placed after the executable."""
        if not self.server_command:
            raise ConfigError("'server_command' must not be empty")
        return [self.server_command[0], *self.server_properties, *self.server_command[1:]]

    def server_env(self, base: dict[str, str]) -> dict[str, str]:
        env = dict(base)
        if self.java_home:
            env["JAVA_HOME"] = self.java_home
        return env


def get_machine_config_path() -> Path:
    """
    Get the path to the machine-level (system-wide) configuration file.

    Returns:
        Path to the machine config file (may not exist)
    """
    config_dir = Path(platformdirs.site_config_dir("metals-client"))
    return config_dir / "config.yml"


def get_user_config_path() -> Path:
    """
    Get the path to the user-level configuration file.

    Returns:
        Path to the user config file (may not exist)
    """
    config_dir: Path = Path(platformdirs.user_config_dir("metals-client"))
    return config_dir / "config.yml"


def find_project_config(start_dir: Path) -> Optional[Path]:
    """
    Walk up the directory tree from start_dir to find .metals-client.yml.

    Args:
        start_dir: Directory to start searching from

    Returns:
        Path to the project config if found, None otherwise
    """
    try:
        current = start_dir.resolve()
    except (OSError, RuntimeError):
        return None

    # Maximum depth guards against pathological symlink layouts
    max_depth = 100
    for _ in range(max_depth):
        try:
            config_path = current / PROJECT_CONFIG_NAME
            if config_path.exists():
                return config_path
        except (OSError, PermissionError):
            pass

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


_FIELDS = {
    "server_command",
    "server_properties",
    "java_home",
    "log_level",
    "tick_interval",
    "completion_delay",
    "initialization_options",
}


def _read_yaml_mapping(path: Path) -> dict:
    """Read a YAML file that must contain a mapping. Missing or empty files yield {}."""
    if not path.exists():
        return {}

    try:
        content = path.read_text()
    except (IOError, OSError) as e:
        raise ConfigError(f"Error reading config file '{path}': {e}") from e

    if not content.strip():
        return {}

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML in config file '{path}': {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Error in config file '{path}': top level must be a dictionary")
    return data


def _expect(path: Path, data: dict, key: str, kind: type | tuple[type, ...], kind_name: str) -> Any:
    value = data[key]
    # bool is an int subclass, never accept it for numeric fields
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise ConfigError(f"Error in config file '{path}': Field '{key}' must be {kind_name}")
    if not isinstance(value, kind):
        raise ConfigError(f"Error in config file '{path}': Field '{key}' must be {kind_name}")
    return value


def parse_config_file(path: Path) -> dict[str, Any]:
    """
    Parse one configuration file into validated ClientConfig field overrides.

    Unknown keys are rejected so that typos surface instead of being ignored.

    Args:
        path: Path to the configuration file

    Returns:
        Mapping of ClientConfig field names to values. Empty if the file
        doesn't exist or is empty.

    Raises:
        ConfigError: If the file is malformed or a field has the wrong type

    Config File Example:
        ```yaml
        server_command: [cs, launch, "org.scalameta:metals_2.13:1.3.0", -M, scala.meta.metals.Main]
        server_properties: [-Xss4m, -Xms100m]
        java_home: /usr/lib/jvm/java-17
        log_level: debug
        ```
    """
    data = _read_yaml_mapping(path)
    overrides: dict[str, Any] = {}

    for key in data:
        if key not in _FIELDS:
            raise ConfigError(f"Error in config file '{path}': Unknown field '{key}'")

    if "server_command" in data:
        command = data["server_command"]
        if isinstance(command, str):
            command = command.split()
        if not isinstance(command, list) or not all(isinstance(part, str) for part in command):
            raise ConfigError(
                f"Error in config file '{path}': Field 'server_command' must be a string or a list of strings"
            )
        if not command:
            raise ConfigError(f"Error in config file '{path}': Field 'server_command' must not be empty")
        overrides["server_command"] = command

    if "server_properties" in data:
        properties = _expect(path, data, "server_properties", list, "a list")
        overrides["server_properties"] = [str(prop) for prop in properties]

    if "java_home" in data:
        java_home = data["java_home"]
        if java_home is not None and not isinstance(java_home, str):
            raise ConfigError(f"Error in config file '{path}': Field 'java_home' must be a string")
        overrides["java_home"] = java_home or None

    if "log_level" in data:
        level = _expect(path, data, "log_level", str, "a string")
        try:
            overrides["log_level"] = parse_log_level(level)
        except ValueError as e:
            raise ConfigError(f"Error in config file '{path}': {e}") from e

    for key in ("tick_interval", "completion_delay"):
        if key in data:
            value = _expect(path, data, key, (int, float), "a number")
            if value < 0:
                raise ConfigError(f"Error in config file '{path}': Field '{key}' must not be negative")
            overrides[key] = float(value)

    if "initialization_options" in data:
        overrides["initialization_options"] = _expect(
            path, data, "initialization_options", dict, "a dictionary"
        )

    return overrides


def load_config(workspace: Optional[Path] = None) -> ClientConfig:
    """
    Build the effective configuration for a workspace.

    Args:
        workspace: Workspace root used to locate the project config file

    Returns:
        ClientConfig with machine, user and project overrides applied in order
    """
    config = ClientConfig()
    paths = [get_machine_config_path(), get_user_config_path()]
    if workspace is not None:
        project = find_project_config(workspace)
        if project is not None:
            paths.append(project)

    for path in paths:
        overrides = parse_config_file(path)
        if overrides:
            config = replace(config, **overrides)
    return config


class SettingsStore:
    """Opaque key/value settings persisted in a YAML file.

    Values are stored as given; interpretation is up to the reader (see
    ``parse_config_file`` for the keys the client itself understands).
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        return _read_yaml_mapping(self._path).get(key, default)

    def items(self) -> dict[str, Any]:
        return dict(_read_yaml_mapping(self._path))

    def update(self, key: str, value: Any) -> None:
        """Set a key, or remove it when value is None, and write the file back."""
        data = _read_yaml_mapping(self._path)
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=True))
        except OSError as e:
            raise ConfigError(f"Error writing config file '{self._path}': {e}") from e
