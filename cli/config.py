"""Configuration management for the panupload CLI."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_API_BASE,
    DEFAULT_CHUNK_SIZE_MB,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_TIMEOUT_SECONDS,
    LIST_PAGE_SIZE,
    MIB,
    ROOT_FOLDER_ID,
)
from common.logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Manages CLI configuration stored in JSON file."""

    DEFAULT_CONFIG = {
        "api_base": os.environ.get("PAN_API_BASE", DEFAULT_API_BASE),
        "timeout": DEFAULT_TIMEOUT_SECONDS,
        "max_retries": DEFAULT_MAX_RETRIES,
        "retry_backoff_multiplier": DEFAULT_RETRY_BACKOFF_MULTIPLIER,
        "chunk_size_mb": DEFAULT_CHUNK_SIZE_MB,
        "list_page_size": LIST_PAGE_SIZE,
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.panupload/config.json)
        """
        self.config_path = config_path
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.panupload' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            logger.warning(f"Config directory not writable, using {self.config_path}")

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Config file unreadable ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Config backup failed: {copy_error}")
                return self.DEFAULT_CONFIG.copy()

        config = self.DEFAULT_CONFIG.copy()
        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except IOError as e:
            logger.warning(f"Cannot write default config: {e}")
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Cannot save config: {e}")

    def get_token(self) -> Optional[str]:
        """
        Get stored bearer token.

        Returns:
            Token string or None if not set
        """
        return self.data.get('token')

    def set_token(self, token: str) -> None:
        """
        Set bearer token and save to file.

        Args:
            token: JWT issued by the service on login
        """
        self.data['token'] = token
        self.save()

    def clear_token(self) -> None:
        """Forget the bearer token and the remembered folder."""
        self.data.pop('token', None)
        self.data.pop('last_folder', None)
        self.save()

    def get_base_url(self) -> str:
        """
        Get service base URL.

        Returns:
            Base URL without trailing slash (e.g., "http://localhost:8000/api")
        """
        return str(self.data.get('api_base', DEFAULT_API_BASE)).rstrip('/')

    def get_timeout(self) -> int:
        return self.data.get('timeout', DEFAULT_TIMEOUT_SECONDS)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', DEFAULT_MAX_RETRIES),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', DEFAULT_RETRY_BACKOFF_MULTIPLIER),
        }

    def get_chunk_size(self) -> int:
        """
        Get chunk size in bytes.

        Returns:
            chunk_size_mb MiB, never less than 1 MiB
        """
        try:
            size_mb = int(self.data.get('chunk_size_mb', DEFAULT_CHUNK_SIZE_MB))
        except (TypeError, ValueError):
            size_mb = DEFAULT_CHUNK_SIZE_MB
        return max(1, size_mb) * MIB

    def get_list_page_size(self) -> int:
        return int(self.data.get('list_page_size', LIST_PAGE_SIZE))

    def get_last_folder(self) -> dict:
        """
        Get the remembered working folder.

        Returns:
            Dictionary with 'id' and 'path' (root when nothing is remembered)
        """
        stored = self.data.get('last_folder')
        if not isinstance(stored, dict) or 'id' not in stored:
            return {'id': ROOT_FOLDER_ID, 'path': '/'}
        return {'id': int(stored['id']), 'path': stored.get('path') or '/'}

    def set_last_folder(self, folder_id: int, path: str) -> None:
        self.data['last_folder'] = {'id': folder_id, 'path': path}
        self.save()
