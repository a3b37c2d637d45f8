#!/usr/bin/env python3
"""
Configuration file discovery, parsing and schema validation.

Config files are JSON (YAML is accepted as well) with a top level
``platformConfig`` object. ``${VAR}`` references are replaced from the
environment before parsing.
"""

import os
import re
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

import yaml
from jsonschema import Draft7Validator

from platformctl.config.models import PlatformConfig
from platformctl.config.settings import CONFIG_FILE_NAME
from platformctl.core.exceptions import ConfigurationError

DEFAULT_SCHEMA_PATH = Path(__file__).parent / 'integration-tests.schema.json'

IGNORED_DIRECTORIES = {'node_modules', '.git', '.venv', 'venv', '__pycache__', 'dist', 'build'}


@dataclass
class ConfigValidationResult:
    is_valid: bool
    config: Optional[PlatformConfig] = None
    errors: List[str] = field(default_factory=list)
    path: Optional[Path] = None


class PlatformConfigLoader:
    """
    Finds, loads and validates integration-tests.json files.

    Attributes:
        schema_path (Path): JSON schema used for validation.
    """

    # Environment variable pattern: ${VAR_NAME}
    ENV_VAR_PATTERN = re.compile(r'\${([A-Za-z0-9_]+)}')

    def __init__(self, schema_path: Optional[Union[str, Path]] = None):
        self.logger = logging.getLogger('platformctl.config')
        self.schema_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH
        self._validator = None  # type: Optional[Draft7Validator]

    @property
    def validator(self) -> Draft7Validator:
        if self._validator is None:
            with open(self.schema_path, 'r') as f:
                schema = json.load(f)
            Draft7Validator.check_schema(schema)
            self._validator = Draft7Validator(schema)
        return self._validator

    def find_config_file(self, root: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """
        Search ``root`` (default: working directory) recursively for the config file.

        Returns:
            The first match in sorted directory order, or None.
        """
        root = Path(root) if root else Path.cwd()
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRECTORIES)
            if CONFIG_FILE_NAME in filenames:
                return Path(dirpath) / CONFIG_FILE_NAME
        return None

    def _resolve_path(self, config_path: Optional[Union[str, Path]]) -> Optional[Path]:
        if config_path:
            return Path(config_path)
        env_path = os.environ.get('CONFIG_PATH')
        if env_path:
            return Path(env_path)
        return self.find_config_file()

    def _substitute_env_vars(self, raw: str) -> str:
        def replace_env_var(match):
            value = os.environ.get(match.group(1))
            if value is None:
                self.logger.warning(f"Environment variable not found: {match.group(1)}")
                return match.group(0)
            return value

        return self.ENV_VAR_PATTERN.sub(replace_env_var, raw)

    def load_document(self, path: Path) -> Dict[str, Any]:
        """
        Read and parse a config file.

        Raises:
            ConfigurationError: If the file cannot be read or is not valid JSON/YAML.
        """
        try:
            raw = self._substitute_env_vars(path.read_text())
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}")

        if path.suffix in ('.yaml', '.yml'):
            try:
                document = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in config file {path}: {e}")
        else:
            try:
                document = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in config file {path}: {e}")

        if not isinstance(document, dict):
            raise ConfigurationError(f"Config file {path} must contain an object")
        return document

    def schema_errors(self, document: Dict[str, Any]) -> List[str]:
        """Return formatted schema violations, e.g. '/platformConfig/heartbeat/interval: ...'."""
        errors = sorted(self.validator.iter_errors(document), key=lambda e: list(e.absolute_path))
        return [self._format_error(error) for error in errors]

    @staticmethod
    def _format_error(error) -> str:
        path = '/'.join(str(part) for part in error.absolute_path)
        return f"{'/' + path if path else 'root'}: {error.message}"

    def validate_config(self, document: Dict[str, Any]) -> ConfigValidationResult:
        errors = self.schema_errors(document)
        if errors:
            return ConfigValidationResult(is_valid=False, errors=errors)
        return ConfigValidationResult(is_valid=True, config=PlatformConfig.from_dict(document))

    def validate_config_file(self, config_path: Optional[Union[str, Path]] = None) -> ConfigValidationResult:
        """
        Locate, parse and validate a config file.

        Args:
            config_path: Explicit path. Falls back to $CONFIG_PATH, then to a
                recursive search from the working directory.

        Returns:
            ConfigValidationResult: Invalid when no file is found, the file
            cannot be parsed or the schema is violated.
        """
        path = self._resolve_path(config_path)
        if path is None or not path.exists():
            where = path if path is not None else Path.cwd()
            return ConfigValidationResult(
                is_valid=False,
                errors=[f"No valid config file found ({CONFIG_FILE_NAME} under {where})"],
                path=path
            )

        try:
            document = self.load_document(path)
        except ConfigurationError as e:
            self.logger.warning(str(e))
            return ConfigValidationResult(is_valid=False, errors=[str(e)], path=path)

        result = self.validate_config(document)
        result.path = path
        if result.is_valid:
            self.logger.info(f"Configuration loaded and validated from {path}")
        else:
            self.logger.warning(
                f"Configuration {path} failed validation: " + '; '.join(result.errors)
            )
        return result
