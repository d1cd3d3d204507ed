"""Configuration loader and validator for PulseRelay."""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error exception."""
    pass


# Reserved target name addressing every configured switch
ALL_TARGET = 'all'

# Environment variable to config key mapping
# All environment variables must use the PULSERELAY_ prefix
ENV_VAR_MAPPING = {
    # Web API settings
    'PULSERELAY_WEB_HOST': ('web', 'bind_host', str),
    'PULSERELAY_WEB_PORT': ('web', 'port', int),

    # Event publishing
    'PULSERELAY_MQTT_SERVER': ('mqtt', 'server', str),
    'PULSERELAY_MQTT_CLIENT_ID': ('mqtt', 'client_id', str),

    # Logging settings
    'PULSERELAY_LOG_LEVEL': ('logging', 'level', str),
}


def get_env_var(env_var: str, convert_type: type) -> Optional[Any]:
    """
    Get environment variable and convert to specified type.

    Args:
        env_var: Environment variable name
        convert_type: Type conversion function (int, float, str, or callable)

    Returns:
        Converted value or None if not set
    """
    value = os.environ.get(env_var)
    if value is None:
        return None

    try:
        return convert_type(value)
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to convert environment variable {env_var}={value}: {e}")
        return None


def apply_env_overrides(config: Dict[str, Any]) -> tuple[Dict[str, Any], Dict[str, str]]:
    """
    Apply environment variable overrides to configuration and track which fields were overridden.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (config with overrides applied, dict mapping config paths to env var names)
    """
    logger.debug("Checking for environment variable overrides...")

    env_overridden_paths = {}

    for env_var, mapping_tuple in ENV_VAR_MAPPING.items():
        value = get_env_var(env_var, mapping_tuple[-1])
        if value is None:
            continue

        sections = mapping_tuple[:-1]
        current = config
        for section in sections[:-1]:
            if not isinstance(current.get(section), dict):
                current[section] = {}
            current = current[section]
        current[sections[-1]] = value

        path = '.'.join(sections)
        env_overridden_paths[path] = env_var
        logger.info(f"Environment variable override: {env_var} -> {path} = {value}")

    return config, env_overridden_paths


def _empty_config() -> Dict[str, Any]:
    return {
        'collections': {},
        'switches': {},
        'groups': {},
        'web': {},
        'mqtt': {},
        'logging': {},
    }


class Config:
    """Configuration manager for the application."""

    def __init__(self, config_path: str = None):
        """
        Initialize configuration from YAML file with environment variable overrides.

        Args:
            config_path: Path to the configuration file (defaults to PULSERELAY_CONFIG_PATH env var or "config.yaml")

        Raises:
            ConfigError: If the file cannot be parsed or fails validation
        """
        if config_path is None:
            config_path = os.environ.get('PULSERELAY_CONFIG_PATH', 'config.yaml')

        logger.info(f"Loading configuration from: {config_path}")
        self.config_path = Path(config_path)
        self._config = self._load_config()

        self._config, self._env_overridden_paths = apply_env_overrides(self._config)

        self._validate_config()
        logger.info("Configuration loaded and validated successfully")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file, or a minimal config if the file doesn't exist."""
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}")
            logger.info("Will attempt to use environment variables for configuration")
            return _empty_config()

        try:
            logger.debug(f"Reading configuration file: {self.config_path}")
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file: {e}")
            raise ConfigError(f"Error parsing configuration file: {e}")
        except OSError as e:
            logger.error(f"Unable to read configuration file: {e}")
            raise ConfigError(f"Error loading configuration: {e}")

        if config is None:
            logger.warning("Configuration file is empty, using empty config structure")
            return _empty_config()

        if not isinstance(config, dict):
            logger.error(f"Configuration must be a dictionary, got: {type(config)}")
            raise ConfigError(f"Invalid configuration format: expected dictionary, got {type(config)}")

        logger.info(f"Successfully parsed configuration with {len(config)} top-level sections")
        return config

    def _section(self, name: str) -> Dict[str, Any]:
        value = self._config.get(name)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ConfigError(f"'{name}' configuration must be a dictionary")
        return value

    def _validate_config(self):
        """Validate collections, switches, groups and the web section."""
        logger.info("Validating configuration...")

        collections = self._section('collections')
        for name, cfg in collections.items():
            if not isinstance(cfg, dict):
                raise ConfigError(f"Collection {name} must be a dictionary")
            if not cfg.get('driver'):
                raise ConfigError(f"Collection {name} must specify a driver")
            driverconfig = cfg.get('driverconfig', {})
            if driverconfig is not None and not isinstance(driverconfig, dict):
                raise ConfigError(f"Collection {name} driverconfig must be a dictionary")

        switches = self._section('switches')
        for name, cfg in switches.items():
            if name == ALL_TARGET:
                raise ConfigError(f"'{ALL_TARGET}' is reserved and cannot be used as a switch name")
            if not isinstance(cfg, dict) or not cfg.get('spec'):
                raise ConfigError(f"Switch {name} must have a 'spec' of the form collection.index")

        groups = self._section('groups')
        for name, cfg in groups.items():
            if name == ALL_TARGET:
                raise ConfigError(f"'{ALL_TARGET}' is reserved and cannot be used as a group name")
            if name in switches:
                raise ConfigError(f"Group {name} has the same name as a switch")
            if not isinstance(cfg, dict) or not isinstance(cfg.get('switches'), list):
                raise ConfigError(f"Group {name} must have a 'switches' list")

        port = self.web.get('port')
        if port is not None:
            if not isinstance(port, int) or isinstance(port, bool) or not (1 <= port <= 65535):
                raise ConfigError(f"Invalid web port: {port} (must be between 1 and 65535)")

        logger.info(
            f"Configuration validation completed successfully: {len(collections)} collection(s), "
            f"{len(switches)} switch(es), {len(groups)} group(s)"
        )

    @property
    def collections(self) -> Dict[str, Any]:
        """Get switch collection (driver) configuration."""
        return self._section('collections')

    @property
    def switches(self) -> Dict[str, Any]:
        """Get named switch configuration."""
        return self._section('switches')

    @property
    def groups(self) -> Dict[str, Any]:
        """Get switch group configuration."""
        return self._section('groups')

    @property
    def web(self) -> Dict[str, Any]:
        """Get web API configuration."""
        web = {'bind_host': '0.0.0.0', 'port': 8080}
        web.update(self._section('web'))
        return web

    @property
    def mqtt(self) -> Dict[str, Any]:
        """Get MQTT event publishing configuration (empty server disables it)."""
        mqtt = {'server': None, 'client_id': 'pulserelay'}
        mqtt.update(self._section('mqtt'))
        return mqtt

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        logging_config = {
            'level': 'INFO',
            'max_file_size_mb': 10,
            'backup_count': 5
        }
        logging_config.update(self._section('logging'))
        return logging_config

    @property
    def env_overridden_paths(self) -> Dict[str, str]:
        """
        Get mapping of config paths to environment variable names that override them.

        Returns:
            Dictionary mapping config paths (e.g., 'web.port') to env var names (e.g., 'PULSERELAY_WEB_PORT')
        """
        return self._env_overridden_paths
