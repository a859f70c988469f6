"""
Configuration loader for the HLS snapshot pipeline.

Loads YAML configuration with environment variable substitution and turns
it into an immutable StreamConfig.
"""

import os
import re
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError


# Load .env file if present
load_dotenv()


DEFAULT_POLL_INTERVAL = 60
DEFAULT_OUTPUT_DIR = '.'
PLAYLIST_NAME = 'index.m3u8'
TEMPLATE_FIELD = 'camera_id'


@dataclass(frozen=True)
class StreamConfig:
    """
    Immutable capture settings shared by every pipeline component.

    Built once from the loaded Config; never mutated afterwards.
    """

    url_template: str
    camera_ids: tuple
    poll_interval: float = DEFAULT_POLL_INTERVAL
    clean_up: bool = False
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    keep_frames: int = 1
    verify_ssl: bool = False
    http_timeout: float = 30.0
    ffmpeg_path: str = 'ffmpeg'
    ffmpeg_timeout: float = 30.0
    attempt_timeout: Optional[float] = None
    playlist_name: str = PLAYLIST_NAME

    def __post_init__(self):
        # Frozen, so normalise through object.__setattr__
        if isinstance(self.output_dir, str):
            object.__setattr__(self, 'output_dir', Path(self.output_dir or DEFAULT_OUTPUT_DIR))
        if not isinstance(self.camera_ids, tuple):
            object.__setattr__(self, 'camera_ids', tuple(self.camera_ids))
        if not self.poll_interval:
            object.__setattr__(self, 'poll_interval', DEFAULT_POLL_INTERVAL)
        if self.attempt_timeout is None:
            object.__setattr__(self, 'attempt_timeout', float(self.poll_interval))

    def stream_url(self, camera_id: str) -> str:
        """Resolve the URL template for a single stream."""
        return self.url_template.format(**{TEMPLATE_FIELD: camera_id})

    def stream_dir(self, camera_id: str) -> Path:
        """Directory holding the captured frames of a stream."""
        return self.output_dir / camera_id


def validate_url_template(template: str) -> None:
    """
    Check that a URL template carries exactly one {camera_id} placeholder.

    Raises:
        ConfigurationError: If the template is empty or malformed
    """
    if not template:
        raise ConfigurationError("Required configuration field missing: url_template")

    try:
        fields = [
            (name, spec, conversion)
            for _, name, spec, conversion in string.Formatter().parse(template)
            if name is not None
        ]
    except ValueError as e:
        raise ConfigurationError(f"Invalid url_template {template!r}: {e}")

    # Bare placeholder only: no !conversion, no :format_spec
    if fields != [(TEMPLATE_FIELD, '', None)]:
        raise ConfigurationError(
            f"url_template must contain exactly one {{{TEMPLATE_FIELD}}} placeholder: {template!r}"
        )


class Config:
    """
    Configuration manager with environment variable substitution.

    Usage:
        config = Config.load('config.yaml')
        cameras = config.get('camera_ids')
        verify = config.get('http.verify_ssl', default=False)
    """

    _instance: Optional['Config'] = None
    _env_pattern = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_data: dict):
        self._data = config_data

    @classmethod
    def load(cls, config_path: str = 'config.yaml') -> 'Config':
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            ConfigurationError: If file not found, invalid YAML or invalid values
        """
        path = Path(config_path)

        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(path, 'r') as f:
                raw_content = f.read()

            # Substitute environment variables
            content = cls._substitute_env_vars(raw_content)

            # Parse YAML
            data = yaml.safe_load(content)

            if not isinstance(data, dict):
                raise ConfigurationError("Configuration must be a YAML dictionary")

            instance = cls(data)
            instance._validate()

            # Store as singleton
            cls._instance = instance

            return instance

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration: {e}")

    @classmethod
    def get_instance(cls) -> 'Config':
        """Get the singleton Config instance."""
        if cls._instance is None:
            raise ConfigurationError("Configuration not loaded. Call Config.load() first.")
        return cls._instance

    @classmethod
    def _substitute_env_vars(cls, content: str) -> str:
        """
        Substitute ${VAR} patterns with environment variable values.

        Args:
            content: Raw file content

        Returns:
            Content with environment variables substituted
        """
        def replace(match):
            var_name = match.group(1)
            value = os.environ.get(var_name)
            if value is None:
                # Keep original if not found (might be optional)
                return match.group(0)
            return value

        return cls._env_pattern.sub(replace, content)

    def _validate(self) -> None:
        """
        Validate required configuration fields.

        Raises:
            ConfigurationError: If required fields are missing or invalid
        """
        validate_url_template(self.get('url_template'))

        camera_ids = self.get('camera_ids')
        if not camera_ids:
            raise ConfigurationError("Required configuration field missing: camera_ids")
        if not isinstance(camera_ids, list):
            raise ConfigurationError("camera_ids must be a list")

        seen = set()
        for camera_id in camera_ids:
            if not isinstance(camera_id, (str, int)) or isinstance(camera_id, bool):
                raise ConfigurationError(f"Invalid camera id: {camera_id!r}")
            camera_id = str(camera_id)
            if not camera_id or camera_id in ('.', '..') or '/' in camera_id or '\\' in camera_id:
                raise ConfigurationError(f"Invalid camera id: {camera_id!r}")
            if camera_id in seen:
                raise ConfigurationError(f"Duplicate camera id: {camera_id}")
            seen.add(camera_id)

        for field in ('poll_interval', 'attempt_timeout', 'http.timeout', 'ffmpeg.timeout'):
            value = self.get(field)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigurationError(f"{field} must be a non-negative number")

        keep_frames = self.get('keep_frames', 1)
        if isinstance(keep_frames, bool) or not isinstance(keep_frames, int) or keep_frames < 1:
            raise ConfigurationError("keep_frames must be a positive integer")

        status_every = self.get('logging.status_every', 0)
        if isinstance(status_every, bool) or not isinstance(status_every, int) or status_every < 0:
            raise ConfigurationError("logging.status_every must be a non-negative integer")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated key.

        Args:
            key: Dot-separated key (e.g., 'http.verify_ssl')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._data

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_http_config(self) -> dict:
        """Get HTTP client configuration section."""
        return self._data.get('http') or {}

    def get_ffmpeg_config(self) -> dict:
        """Get FFmpeg configuration section."""
        return self._data.get('ffmpeg') or {}

    def get_logging_config(self) -> dict:
        """Get logging configuration section."""
        return self._data.get('logging') or {}

    def get_output_dir(self) -> Path:
        """Get frame output directory as Path object."""
        return Path(self.get('output_dir') or DEFAULT_OUTPUT_DIR)

    def get_stream_config(self) -> StreamConfig:
        """
        Build the immutable capture settings.

        Returns:
            StreamConfig with defaults applied
        """
        http = self.get_http_config()
        ffmpeg = self.get_ffmpeg_config()
        poll_interval = self.get('poll_interval') or DEFAULT_POLL_INTERVAL

        return StreamConfig(
            url_template=self.get('url_template'),
            camera_ids=tuple(str(c) for c in self.get('camera_ids')),
            poll_interval=poll_interval,
            clean_up=bool(self.get('clean_up', False)),
            output_dir=self.get_output_dir(),
            keep_frames=self.get('keep_frames', 1),
            verify_ssl=bool(http.get('verify_ssl', False)),
            http_timeout=http.get('timeout') or 30.0,
            ffmpeg_path=ffmpeg.get('path') or 'ffmpeg',
            ffmpeg_timeout=ffmpeg.get('timeout') or 30.0,
            attempt_timeout=self.get('attempt_timeout') or poll_interval,
            playlist_name=self.get('playlist_name') or PLAYLIST_NAME,
        )


def load_config(config_path: str = 'config.yaml') -> Config:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Config instance
    """
    return Config.load(config_path)


def get_config() -> Config:
    """
    Get the current configuration instance.

    Returns:
        Config instance

    Raises:
        ConfigurationError: If configuration not loaded
    """
    return Config.get_instance()
