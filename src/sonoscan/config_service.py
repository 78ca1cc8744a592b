"""Configuration management for sonoscan.

This module centralises the logic for finding and loading the
configuration file.  It supports both AppData and portable installation
modes, resolves the appropriate configuration directory, and reads and
writes ``config.json`` with JSON schema validation.

Portable mode is controlled via a ``portable.flag`` file located
alongside the application or by passing ``--portable`` to the CLI.  The
flag file takes precedence over the command line.

Example usage::

    from sonoscan.config_service import ConfigService

    config_service = ConfigService(app_dir=Path.cwd())
    cfg = config_service.load_config()
    cfg["chart_style"] = "bars"
    config_service.save_config(cfg)

"""

from __future__ import annotations

import json
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from . import tuning
from .reporter import ChartStyle
from .workers import resolve_worker_count

PACKAGE_SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

DEFAULT_CONFIG: Dict[str, Any] = {
    "workers": "auto",
    "chart_style": "lines",
    "log_file": None,
    "plot_file": None,
    "dump_folder": True,
    "tail_folder": True,
    "recursive": False,
}


def _get_appdata_root(app_name: str = "sonoscan") -> Path:
    """Return the platform-specific base directory for config files."""
    system = platform.system().lower()
    if system == "windows":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / app_name
        return Path.home() / f"AppData/Roaming/{app_name}"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / app_name
    return Path.home() / ".config" / app_name


def _load_json(path: Path) -> Any:
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _save_json(data: Any, file_path: Path) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2)


def _validate_json(data: Any, schema_path: Path) -> None:
    schema = _load_json(schema_path)
    if not schema:
        return
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc.message}")


def validate_settings(cfg: Dict[str, Any]) -> None:
    """Semantic checks the schema cannot express (closed enums resolved eagerly)."""
    ChartStyle.parse(cfg.get("chart_style", "lines"))
    resolve_worker_count(cfg.get("workers", "auto"))


@dataclass
class ConfigService:
    """Resolve and manage sonoscan configuration."""

    app_dir: Path
    portable_flag_filename: str = "portable.flag"
    config_filename: str = "config.json"
    tuning_filename: str = "tuning.json"
    schema_name: str = "config.schema.json"
    _cached_mode: Optional[bool] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.app_dir = Path(self.app_dir)

    def _portable_flag_exists(self) -> bool:
        return (self.app_dir / self.portable_flag_filename).exists()

    def detect_mode(self, cli_portable: bool = False) -> bool:
        """Return ``True`` if portable mode should be used.

        A ``portable.flag`` file in the application directory always forces
        portable mode; otherwise ``cli_portable`` decides.  The result is
        cached for subsequent calls.
        """
        if self._cached_mode is None:
            if self._portable_flag_exists():
                self._cached_mode = True
            else:
                self._cached_mode = bool(cli_portable)
        return self._cached_mode

    def is_portable_mode(self) -> bool:
        return self._portable_flag_exists()

    def get_config_dir(self, cli_portable: bool = False) -> Path:
        if self.detect_mode(cli_portable=cli_portable):
            return self.app_dir
        return _get_appdata_root()

    def get_config_path(self, cli_portable: bool = False) -> Path:
        return self.get_config_dir(cli_portable) / self.config_filename

    def get_tuning_path(self, cli_portable: bool = False) -> Path:
        return self.get_config_dir(cli_portable) / self.tuning_filename

    def get_schema_path(self) -> Path:
        local = self.app_dir / "schemas" / self.schema_name
        if local.exists():
            return local
        return PACKAGE_SCHEMA_DIR / self.schema_name

    def load_config(self, cli_portable: bool = False) -> Dict[str, Any]:
        """Load configuration merged over defaults, validating against the schema.

        An invalid file is reported and ignored (defaults are used).
        """
        cfg: Dict[str, Any] = dict(DEFAULT_CONFIG)
        data = _load_json(self.get_config_path(cli_portable))
        if data is None:
            return cfg
        try:
            _validate_json(data, self.get_schema_path())
            validate_settings({**cfg, **data})
        except ValueError as exc:
            print(f"Warning: {exc}. Falling back to defaults.")
            return cfg
        cfg.update(data)
        return cfg

    def save_config(self, config: Dict[str, Any], cli_portable: bool = False) -> None:
        """Write configuration to disk, validating it first."""
        _validate_json(config, self.get_schema_path())
        validate_settings({**DEFAULT_CONFIG, **config})
        _save_json(config, self.get_config_path(cli_portable))

    def load_tuning(self, cli_portable: bool = False, output_root: Optional[Path] = None) -> bool:
        """Apply ``tuning.json`` overrides from the config dir, then from ``output_root``.

        Values found under ``output_root`` win.  Returns ``True`` if any file
        was applied.
        """
        paths = [self.get_tuning_path(cli_portable)]
        if output_root is not None:
            extra = Path(output_root) / self.tuning_filename
            if extra.resolve() != paths[0].resolve():
                paths.append(extra)
        applied = False
        for path in paths:
            data = _load_json(path)
            if isinstance(data, dict):
                tuning.apply_overrides(data)
                applied = True
        return applied
