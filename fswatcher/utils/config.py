"""
Configuration management for fswatcher
"""
import os
import sys
import json
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
from dataclasses import dataclass, field, asdict, fields
import logging

logger = logging.getLogger(__name__)


@dataclass
class WatchConfig:
    """Directory watching configuration"""
    debounce_time: float = 0.5  # seconds
    recursive: bool = True
    max_depth: Optional[int] = None
    follow_symlinks: bool = False
    exclude_patterns: list = field(default_factory=lambda: [
        "node_modules", "__pycache__", ".git", ".svn", ".hg",
    ])
    ignore_patterns: list = field(default_factory=lambda: [
        "*.tmp", "*.temp", "*.swp", "*.swo", "*~",
        "Thumbs.db", "desktop.ini", ".DS_Store",
    ])
    extensions: list = field(default_factory=list)  # empty: every file
    event_types: list = field(default_factory=lambda: [
        "created", "modified", "deleted", "renamed",
    ])
    use_polling: bool = False
    poll_interval: float = 1.0  # seconds

    def __post_init__(self):
        if self.debounce_time < 0:
            raise ValueError(f"debounce_time must not be negative: {self.debounce_time}")
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth must not be negative: {self.max_depth}")


@dataclass
class TransformConfig:
    """Declarative output prediction rule"""
    input_pattern: str = ""
    output_template: str = ""
    format_change: bool = False


@dataclass
class Config:
    """Main configuration class"""
    watch_directories: list = field(default_factory=list)
    watchdog: WatchConfig = field(default_factory=WatchConfig)
    transforms: list = field(default_factory=list)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_format: str = "text"  # text, json, or color

    def __post_init__(self):
        # Convert nested dictionaries loaded from files
        if isinstance(self.watchdog, dict):
            self.watchdog = WatchConfig(**self.watchdog)
        self.transforms = [
            TransformConfig(**rule) if isinstance(rule, dict) else rule
            for rule in self.transforms
        ]
        self.watch_directories = [Path(p).expanduser() for p in self.watch_directories]

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        data = asdict(self)
        data['watch_directories'] = [str(p) for p in self.watch_directories]
        return data

    def to_json(self, indent: int = 2) -> str:
        """Convert config to JSON string"""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def to_yaml(self) -> str:
        """Convert config to YAML string"""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)

    def save(self, path: Union[str, Path]):
        """Save config to file"""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix.lower() in ['.yaml', '.yml']:
            with open(path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)
        else:  # default to JSON
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2, default=str)

        logger.info(f"Configuration saved to {path}")

    def update_from_dict(self, data: Dict[str, Any]):
        """Update config from dictionary"""
        watch_fields = {f.name for f in fields(WatchConfig)}

        for key, value in (data or {}).items():
            if key == 'watchdog' and isinstance(value, dict):
                self.update_from_dict(value)
            elif key == 'watch_directories':
                self.watch_directories = [Path(p).expanduser() for p in value]
            elif key == 'transforms':
                self.transforms = [
                    TransformConfig(**rule) if isinstance(rule, dict) else rule
                    for rule in value
                ]
            elif key in watch_fields:
                setattr(self.watchdog, key, value)
            elif hasattr(self, key):
                setattr(self, key, value)
            else:
                logger.warning(f"Ignoring unknown configuration key: {key}")

        # Re-run validation on the updated section
        self.watchdog.__post_init__()


def _default_config_paths() -> List[Path]:
    paths = [Path("fswatcher.yaml"), Path("fswatcher.json")]

    if sys.platform == "win32":
        appdata = Path(os.environ.get('LOCALAPPDATA', Path.home()))
        paths.extend([
            appdata / "fswatcher" / "config.yaml",
            appdata / "fswatcher" / "config.json",
        ])
    elif sys.platform == "darwin":
        support = Path.home() / "Library" / "Application Support" / "fswatcher"
        paths.extend([support / "config.yaml", support / "config.json"])
    else:  # linux
        paths.extend([
            Path.home() / ".config" / "fswatcher" / "config.yaml",
            Path.home() / ".config" / "fswatcher" / "config.json",
            Path("/etc/fswatcher/config.yaml"),
        ])

    return paths


def get_default_config_path() -> Path:
    """Get default configuration path based on platform"""
    if sys.platform == "win32":
        appdata = Path(os.environ.get('LOCALAPPDATA', Path.home()))
        return appdata / "fswatcher" / "config.yaml"
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "fswatcher" / "config.yaml"
    else:  # linux
        return Path.home() / ".config" / "fswatcher" / "config.yaml"


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    with open(config_path, 'r', encoding='utf-8') as f:
        if config_path.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        return json.load(f)


def load_config(path: Union[str, Path] = None) -> Config:
    """
    Load configuration from file or create default

    An explicitly given path must exist and parse; default locations are
    tried in order and skipped when missing or broken.
    """
    if path:
        config_path = Path(path)
        logger.info(f"Loading configuration from {config_path}")
        config = Config()
        config.update_from_dict(_read_config_file(config_path))
        return config

    for config_path in _default_config_paths():
        if not config_path.exists():
            continue
        try:
            logger.info(f"Loading configuration from {config_path}")
            config = Config()
            config.update_from_dict(_read_config_file(config_path))
            logger.info("Configuration loaded successfully")
            return config
        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            logger.error(f"Error loading configuration from {config_path}: {e}")

    logger.info("No configuration file found, using default configuration")
    return Config()


def save_config(config: Config, path: Union[str, Path] = None):
    """Save configuration to file"""
    config.save(path or get_default_config_path())


# Global config instance
_config_instance = None


def get_config() -> Config:
    """Get global configuration instance"""
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reload_config(path: Union[str, Path] = None) -> Config:
    """Reload configuration from file"""
    global _config_instance
    _config_instance = load_config(path)
    return _config_instance
