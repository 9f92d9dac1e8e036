"""
Configuration management for dctop.

This module provides configuration file support with YAML format,
user preferences, and default settings.

Features:
- YAML configuration file at ~/.config/dctop/config.yaml
- Default values with user overrides
- Keybinding customization for the single-letter actions
- Color theme: style role -> curses color name
- Refresh pacing and worker pool sizes
- Log location, level and rotation

Architecture:
- ConfigManager: Main configuration interface
- Merges user config with defaults, section by section
- Provides typed access to settings
- Handles missing/invalid config gracefully (logged, defaults used)
"""

import yaml
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class KeyBindings:
    """Customizable single-key actions. Values are matched case-sensitively."""
    quit: str = "q"
    search: str = "/"
    clear_search: str = "c"
    inspect: str = "i"
    logs: str = "l"
    shell: str = "e"
    first: str = "g"
    last: str = "G"


@dataclass
class ColorTheme:
    """Curses color names for every style role the renderer uses."""
    border: str = "red"
    separator: str = "magenta"
    inspect_separator: str = "green"
    search_prompt: str = "yellow"
    focus: str = "blue"
    bar_filled: str = "green"
    bar_empty: str = "default"
    info: str = "white"
    warning: str = "yellow"
    error: str = "red"

    def color_for(self, role: str) -> str:
        """Theme color for a role; anything that isn't a role is taken as a color name."""
        if role in {f.name for f in fields(self)}:
            return getattr(self, role)
        return role


@dataclass
class UIConfig:
    color_theme: ColorTheme = field(default_factory=ColorTheme)
    refresh_interval: int = 50  # milliseconds between input polls
    row_render_workers: int = 8


@dataclass
class DockerConfig:
    default_shell: str = "/bin/bash"
    fallback_shell: str = "/bin/sh"
    min_refresh_interval: float = 0.5  # seconds
    inspect_cache_ttl: float = 2.0  # seconds
    stats_workers: int = 8
    logs_tail: int = 200


@dataclass
class LogConfig:
    level: str = "INFO"
    file_path: Optional[str] = None  # None for default
    max_size_mb: int = 10
    backup_count: int = 5


@dataclass
class AppConfig:
    keybindings: KeyBindings = field(default_factory=KeyBindings)
    ui: UIConfig = field(default_factory=UIConfig)
    docker: DockerConfig = field(default_factory=DockerConfig)
    logging: LogConfig = field(default_factory=LogConfig)


class ConfigManager:
    """Configuration manager with YAML file support."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".config" / "dctop"
        self.config_file = self.config_dir / "config.yaml"
        self._config: AppConfig = AppConfig()
        self.load_config()

    def load_config(self) -> None:
        """Load configuration from YAML file, creating it with defaults if missing."""
        try:
            if self.config_file.exists():
                with open(self.config_file, 'r') as f:
                    user_config = yaml.safe_load(f) or {}
                if not isinstance(user_config, dict):
                    raise ValueError(f"expected a mapping, got {type(user_config).__name__}")
                self._config = self._merge_configs(AppConfig(), user_config)
                logger.debug(f"Loaded configuration from {self.config_file}")
            else:
                self.save_config()
                logger.info(f"Created default configuration at {self.config_file}")
        except Exception as e:
            logger.error(f"Failed to load config: {e}, using defaults")
            self._config = AppConfig()

    def save_config(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w') as f:
                yaml.dump(self._config_to_dict(self._config), f, default_flow_style=False, indent=2)
            logger.debug(f"Saved configuration to {self.config_file}")
        except Exception as e:
            logger.error(f"Failed to save config: {e}")

    def get_config(self) -> AppConfig:
        return self._config

    def _merge_configs(self, default: AppConfig, user: Dict[str, Any]) -> AppConfig:
        for section in fields(default):
            updates = user.get(section.name)
            if isinstance(updates, dict):
                self._merge_dataclass(getattr(default, section.name), updates)
        return default

    def _merge_dataclass(self, obj: Any, updates: Dict[str, Any]) -> None:
        """Merge updates into a dataclass, recursing into nested sections."""
        for key, value in updates.items():
            if not hasattr(obj, key):
                logger.warning(f"Unknown config key '{key}' ignored")
                continue
            current = getattr(obj, key)
            if is_dataclass(current):
                if isinstance(value, dict):
                    self._merge_dataclass(current, value)
            else:
                setattr(obj, key, value)

    def _config_to_dict(self, config: Any) -> Dict[str, Any]:
        result = {}
        for f in fields(config):
            value = getattr(config, f.name)
            result[f.name] = self._config_to_dict(value) if is_dataclass(value) else value
        return result

    def get_log_level(self) -> str:
        return str(self._config.logging.level).upper()

    def get_custom_log_path(self) -> Optional[str]:
        return self._config.logging.file_path


# Global config instance
config_manager = ConfigManager()
