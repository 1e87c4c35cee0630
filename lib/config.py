"""
VBR report scripts - Configuration Management

Supports loading configuration from:
1. YAML config file (--config)
2. Environment variables (VBR_*)
3. Command-line arguments (highest priority)

Config file example:
```yaml
log_level: INFO
output_dir: "./reports"

vbr:
  server: vbr01.example.local
  port: 9419
  username: ${VBR_USERNAME}
  verify_ssl: false
  repositories:
    - "Default Backup Repository"
```

The password is only ever read from the VBR_PASSWORD environment variable.
"""
import logging
import os
import re
import stat
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


# Default config file locations (checked in order)
DEFAULT_CONFIG_PATHS = [
    './vbr-config.yaml',
    './vbr-config.yml',
    '~/.vbr/config.yaml',
    '~/.vbr/config.yml',
]

# Environment variable prefix
ENV_PREFIX = 'VBR_'

# Password never comes from a file or CLI
PASSWORD_ENV_VAR = 'VBR_PASSWORD'

# Mapping from config keys to env vars
ENV_VAR_MAPPING = {
    'log_level': 'VBR_LOG_LEVEL',
    'output_dir': 'VBR_OUTPUT_DIR',
    'vbr.server': 'VBR_SERVER',
    'vbr.port': 'VBR_PORT',
    'vbr.username': 'VBR_USERNAME',
    'vbr.api_version': 'VBR_API_VERSION',
    'vbr.verify_ssl': 'VBR_VERIFY_SSL',
    'vbr.repositories': 'VBR_REPOSITORIES',
}


def _substitute_env_vars(value: Any) -> Any:
    """Substitute ${ENV_VAR} patterns in string values."""
    if isinstance(value, str):
        # Pattern: ${VAR_NAME} or ${VAR_NAME:-default}
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) or ''
            return os.environ.get(var_name, default)

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _get_nested(data: Dict, key_path: str, default: Any = None) -> Any:
    """Get a nested value from a dict using dot notation."""
    value = data
    for key in key_path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def _set_nested(data: Dict, key_path: str, value: Any) -> None:
    """Set a nested value in a dict using dot notation."""
    keys = key_path.split('.')
    for key in keys[:-1]:
        data = data.setdefault(key, {})
    data[keys[-1]] = value


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    path = Path(config_path).expanduser()

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    # Warn if the file is readable by group or others
    file_mode = path.stat().st_mode
    if file_mode & (stat.S_IRWXG | stat.S_IRWXO):
        logger.warning(f"Config file {config_path} has loose permissions. "
                       f"Consider: chmod 600 {config_path}")

    logger.info(f"Loading config from {path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping at the top level")

    return _substitute_env_vars(config)


def find_default_config() -> Optional[str]:
    """Find a config file in default locations."""
    for path in DEFAULT_CONFIG_PATHS:
        expanded = Path(path).expanduser()
        if expanded.exists():
            return str(expanded)
    return None


def load_env_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}

    for config_key, env_var in ENV_VAR_MAPPING.items():
        value: Any = os.environ.get(env_var)
        if value is None:
            continue
        if config_key == 'vbr.repositories':
            value = [v.strip() for v in value.split(',') if v.strip()]
        elif config_key == 'vbr.verify_ssl':
            value = _parse_bool(value)
        elif config_key == 'vbr.port':
            value = int(value)
        _set_nested(config, config_key, value)

    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple config dicts. Later configs override earlier ones."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = merge_configs(result[key], value)
            elif value is not None:
                result[key] = value

    return result


def args_to_config(args) -> Dict[str, Any]:
    """Convert argparse args to config dict format."""
    config: Dict[str, Any] = {'vbr': {}}

    arg_mapping = {
        'log_level': 'log_level',
        'output_dir': 'output_dir',
        'server': 'vbr.server',
        'port': 'vbr.port',
        'username': 'vbr.username',
        'api_version': 'vbr.api_version',
        'verify_ssl': 'vbr.verify_ssl',
        'repository': 'vbr.repositories',
    }

    for arg_name, config_key in arg_mapping.items():
        value = getattr(args, arg_name, None)
        if value is not None and value != []:
            _set_nested(config, config_key, value)

    return config


def config_to_args(config: Dict[str, Any], args) -> None:
    """Apply merged config values back onto the argparse namespace."""
    for key in ('log_level', 'output_dir'):
        if key in config:
            setattr(args, key, config[key])

    vbr_config = config.get('vbr', {})
    for key in ('server', 'port', 'username', 'api_version'):
        if key in vbr_config:
            setattr(args, key, vbr_config[key])
    if 'verify_ssl' in vbr_config:
        args.verify_ssl = _parse_bool(vbr_config['verify_ssl'])
    if 'repositories' in vbr_config:
        repos = vbr_config['repositories']
        args.repository = repos if isinstance(repos, list) else [repos]


def load_config(args) -> Dict[str, Any]:
    """
    Load configuration from all sources and merge them.

    Priority (highest to lowest):
    1. CLI arguments
    2. Config file (--config or default location)
    3. Environment variables

    Returns merged config dict.
    """
    configs = []

    env_config = load_env_config()
    if env_config:
        logger.debug("Loaded config from environment variables")
        configs.append(env_config)

    config_path = getattr(args, 'config', None)
    if config_path:
        configs.append(load_config_file(config_path))
    else:
        default_config = find_default_config()
        if default_config:
            logger.info(f"Found default config file: {default_config}")
            configs.append(load_config_file(default_config))

    configs.append(args_to_config(args))

    merged = merge_configs(*configs)
    config_to_args(merged, args)

    return merged


def get_password() -> Optional[str]:
    """Password for the REST API, from VBR_PASSWORD only."""
    return os.environ.get(PASSWORD_ENV_VAR)


def generate_sample_config() -> str:
    """Generate a sample config file content."""
    return '''# VBR report scripts configuration
#
# Environment variable substitution supported:
#   ${VAR_NAME}           - required env var
#   ${VAR_NAME:-default}  - env var with default value

# Logging level: DEBUG, INFO, WARNING, ERROR
log_level: INFO

# Directory for CSV exports (default: current directory)
output_dir: "."

vbr:
  # Backup server hostname or IP
  server: ${VBR_SERVER}

  # REST API port (default 9419)
  port: 9419

  # REST API user (password MUST be set via VBR_PASSWORD)
  username: ${VBR_USERNAME}

  # x-api-version header sent with every request
  api_version: "1.1-rev2"

  # Set to false for self-signed certificates
  verify_ssl: true

  # Repositories to report on when --repository is not given
  # repositories:
  #   - "Default Backup Repository"
'''
