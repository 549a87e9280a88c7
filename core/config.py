from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Optional

from core.numbers import parse_strict

CONFIG_FILE_NAME = ".asm_visualizer.json"
ADDRESS_KEYS = ("pc_start", "pc_end", "sp_start")
COUNT_KEYS = ("code_lines", "code_look_behind", "stack_lines", "input_capacity")


class ConfigError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class VisualizerConfig:
    pc_start: int = 0x4000
    pc_end: int = 0x7FFF
    sp_start: int = 0xFF00
    code_lines: int = 20
    code_look_behind: int = 5
    stack_lines: int = 20
    input_capacity: int = 20
    export_name: str = "web_export.html"
    last_file: Optional[str] = None

    def with_load(self, file_path: str, pc_start: int, pc_end: int, sp_start: int) -> "VisualizerConfig":
        return replace(self, last_file=file_path, pc_start=pc_start, pc_end=pc_end, sp_start=sp_start)

    def to_json(self) -> dict:
        data = asdict(self)
        for key in ADDRESS_KEYS:
            data[key] = f"0x{data[key]:X}"
        return data


def default_config_path() -> Path:
    return Path.cwd() / CONFIG_FILE_NAME


def _load_json(path: Path) -> dict:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config: {exc}") from exc


def _validate_address(key: str, value: object) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer or a hex string.")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        try:
            result = parse_strict(value)
        except ValueError as exc:
            raise ConfigError(f"{key} is not a valid address: {value!r}") from exc
    else:
        raise ConfigError(f"{key} must be an integer or a hex string.")
    if result < 0:
        raise ConfigError(f"{key} must not be negative.")
    return result


def validate_config(data: object) -> VisualizerConfig:
    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object.")
    known = {f.name for f in fields(VisualizerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
    values: dict = {}
    for key in ADDRESS_KEYS:
        if key in data:
            values[key] = _validate_address(key, data[key])
    for key in COUNT_KEYS:
        if key in data:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{key} must be an integer.")
            minimum = 0 if key == "code_look_behind" else 1
            if value < minimum:
                raise ConfigError(f"{key} must be at least {minimum}.")
            values[key] = value
    if "export_name" in data:
        export_name = data["export_name"]
        if not isinstance(export_name, str) or not export_name.strip():
            raise ConfigError("export_name must be a non-empty string.")
        values["export_name"] = export_name.strip()
    if "last_file" in data:
        last_file = data["last_file"]
        if last_file is not None and not isinstance(last_file, str):
            raise ConfigError("last_file must be a string or null.")
        values["last_file"] = last_file
    return VisualizerConfig(**values)


def load_config(path: Optional[Path | str] = None) -> VisualizerConfig:
    """Read a config file; a missing default file yields the defaults."""
    if path is None:
        resolved = default_config_path()
        if not resolved.exists():
            return VisualizerConfig()
    else:
        resolved = Path(path).expanduser()
        if not resolved.exists():
            raise ConfigError(f"Config not found: {resolved}")
    return validate_config(_load_json(resolved))


def save_config(config: VisualizerConfig, path: Optional[Path | str] = None) -> Path:
    resolved = Path(path).expanduser() if path is not None else default_config_path()
    try:
        with resolved.open("w", encoding="utf-8") as handle:
            json.dump(config.to_json(), handle, indent=2)
    except OSError as exc:
        raise ConfigError(f"Failed to write config: {exc}") from exc
    return resolved
