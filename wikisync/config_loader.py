"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import yaml

from .exceptions import ConfigurationError
from .models import RepositoryRef, SyncMapping
from .sync.cache_manager import DEFAULT_CACHE_PATH

TRUTHY = {'1', 'true', 'yes', 'on'}

DEFAULT_CONFIG: Dict[str, Any] = {
    'github': {
        'owner': 'BreadchainCoop',
        'repo': 'shared-obsidian',
        'ref': '',
        'token': '${GITHUB_TOKEN}',
        'api_url': 'https://api.github.com',
        'timeout': 30,
        'max_retries': 0
    },
    'sync': {
        'skip': False,
        'only_on_build': True,
        'cache_path': DEFAULT_CACHE_PATH,
        'attachments_dir': os.path.join('public', 'attachments'),
        'continue_on_error': False,
        'show_progress': True,
        'mappings': [
            {'source': 'wiki', 'target': os.path.join('src', 'content', 'docs')}
        ]
    },
    'logging': {
        'level': None,
        'file': None
    }
}


@dataclass(frozen=True)
class SyncSettings:
    """Typed, immutable view of a validated configuration."""

    repository: RepositoryRef
    token: str = ''
    api_url: str = 'https://api.github.com'
    timeout: float = 30
    max_retries: int = 0
    mappings: Tuple[SyncMapping, ...] = field(default_factory=tuple)
    attachments_dir: str = os.path.join('public', 'attachments')
    cache_path: str = DEFAULT_CACHE_PATH
    skip: bool = False
    only_on_build: bool = True
    continue_on_error: bool = False
    show_progress: bool = True


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Values missing from the file are filled from the built-in defaults.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            ConfigurationError: If the file does not hold a mapping
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ConfigurationError("Configuration file must contain a dictionary")

        return cls._substitute_env_vars_recursive(_deep_merge(DEFAULT_CONFIG, config_data))

    @classmethod
    def default(cls) -> Dict[str, Any]:
        """Built-in configuration, used when no file is given."""
        return cls._substitute_env_vars_recursive(copy.deepcopy(DEFAULT_CONFIG))

    @classmethod
    def apply_env_overrides(cls, config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Fill repository identity, token and wiki path from the environment.

        ``GITHUB_REPO_OWNER``, ``GITHUB_REPO_NAME`` and ``GITHUB_WIKI_PATH``
        take precedence over file values; ``GITHUB_TOKEN`` fills a missing or
        unsubstituted token; ``WIKISYNC_SKIP`` forces skip mode.

        Args:
            config: Configuration dictionary
            environ: Environment mapping (defaults to ``os.environ``)

        Returns:
            New configuration dictionary
        """
        env = os.environ if environ is None else environ
        merged = copy.deepcopy(config)
        github = merged.setdefault('github', {})
        sync = merged.setdefault('sync', {})

        if env.get('GITHUB_REPO_OWNER'):
            github['owner'] = env['GITHUB_REPO_OWNER']
        if env.get('GITHUB_REPO_NAME'):
            github['repo'] = env['GITHUB_REPO_NAME']

        token = github.get('token')
        if env.get('GITHUB_TOKEN') and (not token or cls.ENV_VAR_PATTERN.search(str(token))):
            github['token'] = env['GITHUB_TOKEN']

        mappings = sync.get('mappings') or []
        if env.get('GITHUB_WIKI_PATH') and mappings and isinstance(mappings[0], dict):
            mappings[0]['source'] = env['GITHUB_WIKI_PATH']

        if str(env.get('WIKISYNC_SKIP', '')).lower() in TRUTHY:
            sync['skip'] = True

        return merged

    @classmethod
    def validate(cls, config: Dict[str, Any], require_token: bool = True) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate
            require_token: Whether a usable token must be present

        Raises:
            ConfigurationError: If validation fails
        """
        cls._validate_required_field(config, 'github.owner')
        cls._validate_required_field(config, 'github.repo')
        if require_token:
            cls._validate_required_field(config, 'github.token')

        cls._validate_url(get_nested(config, 'github.api_url', 'https://api.github.com'), 'github.api_url')

        timeout = get_nested(config, 'github.timeout', 30)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationError("github.timeout must be a positive number")

        max_retries = get_nested(config, 'github.max_retries', 0)
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
            raise ConfigurationError("github.max_retries must be a non-negative integer")

        for flag in ('skip', 'only_on_build', 'continue_on_error', 'show_progress'):
            value = get_nested(config, f'sync.{flag}', False)
            if not isinstance(value, bool):
                raise ConfigurationError(f"sync.{flag} must be a boolean")

        for key in ('cache_path', 'attachments_dir'):
            value = get_nested(config, f'sync.{key}', DEFAULT_CONFIG['sync'][key])
            if not isinstance(value, str) or not value:
                raise ConfigurationError(f"sync.{key} must be a non-empty path")

        mappings = get_nested(config, 'sync.mappings', [])
        if not isinstance(mappings, list) or not mappings:
            raise ConfigurationError("sync.mappings must list at least one source/target mapping")

        for position, mapping in enumerate(mappings):
            where = f"sync.mappings[{position}]"
            if not isinstance(mapping, dict):
                raise ConfigurationError(f"{where} must be a mapping with source and target")
            for key in ('source', 'target'):
                if not isinstance(mapping.get(key), str) or not mapping[key].strip('/'):
                    raise ConfigurationError(f"Missing required configuration: {where}.{key}")
            collections = mapping.get('collections', [])
            if not isinstance(collections, list) or not all(isinstance(c, str) for c in collections):
                raise ConfigurationError(f"{where}.collections must be a list of directory names")
            if not isinstance(mapping.get('exclude_readme', True), bool):
                raise ConfigurationError(f"{where}.exclude_readme must be a boolean")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('github', 'sync', 'logging'):
            if not isinstance(merged.get(section), dict):
                merged[section] = {}

        if getattr(args, 'ref', None):
            merged['github']['ref'] = args.ref

        if getattr(args, 'skip', False):
            merged['sync']['skip'] = True

        if getattr(args, 'cache_path', None):
            merged['sync']['cache_path'] = args.cache_path

        if getattr(args, 'attachments_dir', None):
            merged['sync']['attachments_dir'] = args.attachments_dir

        if getattr(args, 'continue_on_error', False):
            merged['sync']['continue_on_error'] = True

        if getattr(args, 'no_progress', False):
            merged['sync']['show_progress'] = False

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        verbose = getattr(args, 'verbose', 0) or 0
        if verbose >= 2:
            merged['logging']['level'] = 'DEBUG'
        elif verbose == 1:
            merged['logging']['level'] = 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config: dict, field_path: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field_path)
        if value is None or value == '':
            raise ConfigurationError(f"Missing required configuration: {field_path}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ConfigurationError(
                f"Configuration field '{field_path}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: Any, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url if isinstance(url, str) else '')
        if parsed.scheme not in ('http', 'https'):
            raise ConfigurationError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ConfigurationError(f"{field_name} missing hostname: {url}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "github.owner")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config
    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def _build_mapping(data: Dict[str, Any]) -> SyncMapping:
    exclude = ('readme.md',) if data.get('exclude_readme', True) else ()
    return SyncMapping(
        source_path=data['source'],
        target_dir=data['target'],
        document_extension=data.get('extension', '.md'),
        exclude_filenames=exclude,
        collections=tuple(data.get('collections', []) or ()),
        index_filename=data.get('index_filename', 'index.md')
    )


def build_settings(config: Dict[str, Any]) -> SyncSettings:
    """
    Turn a validated configuration dictionary into SyncSettings.

    An unsubstituted ``${VAR}`` token is treated as absent.

    Args:
        config: Configuration dictionary

    Returns:
        SyncSettings
    """
    token = get_nested(config, 'github.token') or ''
    if ConfigLoader.ENV_VAR_PATTERN.search(token):
        token = ''

    return SyncSettings(
        repository=RepositoryRef(
            owner=get_nested(config, 'github.owner'),
            name=get_nested(config, 'github.repo'),
            ref=get_nested(config, 'github.ref') or None
        ),
        token=token,
        api_url=get_nested(config, 'github.api_url', 'https://api.github.com'),
        timeout=get_nested(config, 'github.timeout', 30),
        max_retries=get_nested(config, 'github.max_retries', 0),
        mappings=tuple(_build_mapping(m) for m in get_nested(config, 'sync.mappings', [])),
        attachments_dir=get_nested(config, 'sync.attachments_dir', DEFAULT_CONFIG['sync']['attachments_dir']),
        cache_path=get_nested(config, 'sync.cache_path', DEFAULT_CACHE_PATH),
        skip=bool(get_nested(config, 'sync.skip', False)),
        only_on_build=bool(get_nested(config, 'sync.only_on_build', True)),
        continue_on_error=bool(get_nested(config, 'sync.continue_on_error', False)),
        show_progress=bool(get_nested(config, 'sync.show_progress', True))
    )


def should_skip(settings: SyncSettings, command: str = 'build', environ: Optional[Dict[str, str]] = None) -> bool:
    """
    Decide whether a run performs no work at all.

    Args:
        settings: Sync settings
        command: Invoking command ("build", "dev", "preview")
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        True when sync must be skipped
    """
    env = os.environ if environ is None else environ
    if settings.skip:
        return True
    if str(env.get('WIKISYNC_SKIP', '')).lower() in TRUTHY:
        return True
    return settings.only_on_build and command != 'build'


__all__ = [
    'ConfigLoader',
    'SyncSettings',
    'build_settings',
    'get_nested',
    'should_skip',
    'DEFAULT_CONFIG'
]
