"""
Configuration management for photoshelf.
"""

from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .constants import (COLLISION_LAST_WINS, COLLISION_POLICIES, DEFAULT_UPLOAD_WORKERS,
                        IGNORED_NAMES, PROGRAM, get_logger)
from .errors import ConfigError


class Config:
    """Manages configuration file for storing user preferences."""

    def __init__(self, config_path: Optional[Path] = None):
        # Default config location: ~/.<PROGRAM>/config.yml
        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = Path.home() / f".{PROGRAM}" / "config.yml"
        self.program_root = self.config_path.parent
        self.data = self._load_config()

    def _load_config(self) -> Dict:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            get_logger().warning(f"Could not load config: {e}")
            return {}

        if not isinstance(data, dict):
            get_logger().warning(f"Ignoring config {self.config_path}: not a mapping")
            return {}
        return data

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            self.program_root.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self.data, f, default_flow_style=False)
        except OSError as e:
            get_logger().error(f"Could not save config: {e}")

    def get_last_sources(self) -> List[str]:
        """Get the last used sort source directories."""
        sources = self.data.get('last_sources') or []
        if isinstance(sources, str):
            return [sources]
        return list(sources)

    def get_last_dest(self) -> Optional[str]:
        """Get the last used sort destination directory."""
        return self.data.get('last_dest')

    def get_last_sync_source(self) -> Optional[str]:
        """Get the last directory mirrored to the remote store."""
        return self.data.get('last_sync_source')

    def get_remote_url(self) -> Optional[str]:
        """Get the saved remote base URL."""
        return self.data.get('remote_url')

    def get_remote_user(self) -> Optional[str]:
        """Get the saved remote username."""
        return self.data.get('remote_user')

    def get_upload_workers(self) -> int:
        """Get the number of concurrent uploads (default: 5)."""
        workers = self.data.get('upload_workers', DEFAULT_UPLOAD_WORKERS)
        try:
            workers = int(workers)
        except (TypeError, ValueError):
            raise ConfigError(f"upload_workers must be an integer, got {workers!r}")
        if workers < 1:
            raise ConfigError(f"upload_workers must be at least 1, got {workers}")
        return workers

    def get_collision_policy(self) -> str:
        """Get the policy for sidecar records found under several sources (default: last)."""
        policy = self.data.get('collision_policy', COLLISION_LAST_WINS)
        if policy not in COLLISION_POLICIES:
            raise ConfigError(f"collision_policy must be one of "
                              f"{', '.join(COLLISION_POLICIES)}, got {policy!r}")
        return policy

    def get_ignore_names(self) -> List[str]:
        """Built-in ignore list plus any configured extra names."""
        extra = self.data.get('ignore_names') or []
        return list(IGNORED_NAMES) + [str(name) for name in extra]

    def update_sort_paths(self, sources: List[str], dest: str) -> None:
        """Update and save the last used sort paths."""
        self.data['last_sources'] = list(sources)
        self.data['last_dest'] = dest
        self.save_config()

    def update_sync_settings(self, source: str, remote_url: str, remote_user: Optional[str]) -> None:
        """Update and save the last used sync source and remote settings."""
        self.data['last_sync_source'] = source
        self.data['remote_url'] = remote_url
        if remote_user:
            self.data['remote_user'] = remote_user
        self.save_config()
