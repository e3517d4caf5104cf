# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Configuration management module

Priority order:
1. Command line arguments
2. Environment variables
3. Configuration file (TOML)
4. Default values
"""

import copy
import logging
import os
import sys

# Import TOML library
if sys.version_info >= (3, 11):
    import tomllib
    TOML_BINARY_MODE = True
    TOMLDecodeError = tomllib.TOMLDecodeError
else:
    import toml as tomllib
    TOML_BINARY_MODE = False
    TOMLDecodeError = tomllib.TomlDecodeError
from pathlib import Path
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


class Config:
    """Configuration management class"""

    DEFAULT_CONFIG = {
        'paths': {
            'projects_dir': '~/.claude/projects'
        },
        'processing': {
            # Non-empty decode failures / findings make the CLI exit 1
            'strict': False,
            # Use summary leafUuid as the branch hint when present
            'follow_summary_hint': True
        },
        'output': {
            'format': 'text'  # 'text' or 'json'
        },
        'debug': {
            'verbose': False
        }
    }

    def __init__(self, config_file: Optional[str] = None,
                 projects_dir: Optional[str] = None,
                 verbose: bool = False,
                 strict: Optional[bool] = None):
        """
        Initialize configuration

        Args:
            config_file: Path to configuration file
            projects_dir: Path to projects directory (CLI argument)
            verbose: Verbose logging flag
            strict: Strict mode (CLI argument, None keeps lower layers)
        """
        self.config_file = config_file
        self._config = self._load_config(config_file)

        # Override with environment variables
        self._apply_env_overrides()

        # Override with CLI arguments
        if projects_dir:
            self._config['paths']['projects_dir'] = projects_dir
        if verbose:
            self._config['debug']['verbose'] = verbose
        if strict is not None:
            self._config['processing']['strict'] = strict

        # Resolve paths
        self._resolve_paths()

    def _load_config(self, config_file: Optional[str]) -> Dict[str, Any]:
        """Load configuration file"""
        config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file:
            config_path = Path(config_file)
        else:
            # Default configuration file location
            config_path = Path('config.toml')
            if not config_path.exists():
                config_path = Path.home() / '.config' / 'ccforest' / 'config.toml'

        if config_path.exists():
            try:
                # Python 3.11+ tomllib uses 'rb' mode, toml package uses 'r' mode
                if TOML_BINARY_MODE:
                    with open(config_path, 'rb') as f:
                        file_config = tomllib.load(f)
                else:
                    with open(config_path, 'r', encoding='utf-8') as f:
                        file_config = tomllib.load(f)
                config = self._deep_merge(config, file_config)
            except (OSError, TOMLDecodeError) as e:
                logger.warning("Configuration file load error (%s): %s", config_path, e)

        return config

    def _deep_merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict):
                if isinstance(value, dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    # A section must stay a table
                    logger.warning("Ignoring configuration section '%s': expected a table", key)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self):
        """Override configuration with environment variables"""
        if projects_dir := os.getenv('CLAUDE_PROJECTS_DIR'):
            self._config['paths']['projects_dir'] = projects_dir
        if (strict := os.getenv('CCFOREST_STRICT')) is not None:
            self._config['processing']['strict'] = strict.lower() in _TRUE_VALUES
        if (verbose := os.getenv('CCFOREST_VERBOSE')) is not None:
            self._config['debug']['verbose'] = verbose.lower() in _TRUE_VALUES

    def _resolve_paths(self):
        """Resolve paths (e.g., ~ expansion)"""
        projects_dir = self._config['paths']['projects_dir']
        self._config['paths']['projects_dir'] = str(Path(projects_dir).expanduser())

    # Access configuration values as properties
    @property
    def projects_dir(self) -> str:
        return self._config['paths']['projects_dir']

    @property
    def verbose(self) -> bool:
        return bool(self._config['debug']['verbose'])

    @property
    def strict(self) -> bool:
        return bool(self._config['processing']['strict'])

    @property
    def follow_summary_hint(self) -> bool:
        return bool(self._config['processing']['follow_summary_hint'])

    @property
    def output_format(self) -> str:
        return self.get('output.format', 'text')

    def get(self, key: str, default=None):
        """Get configuration value by nested key (e.g., 'paths.projects_dir')"""
        keys = key.split('.')
        value = self._config
        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default
