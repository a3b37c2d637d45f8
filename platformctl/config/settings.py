"""
Runtime settings taken from environment variables.

The CLI loads a .env file (python-dotenv) before these are read.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional

CONFIG_FILE_NAME = 'integration-tests.json'
DEFAULT_OUTPUT_DIR = 'e2e-results'
E2E_CONTAINER_OUTPUT_PATH = '/reports'

DEFAULT_SETTINGS = {
    'config_path': None,
    'base_url': None,
    'keycloak_admin_username': 'onecx',
    'keycloak_admin_password': 'onecx',
    'keycloak_realm': 'onecx',
    'output_dir': DEFAULT_OUTPUT_DIR,
    'log_level': 'INFO',
}

ENV_MAPPING = {
    'CONFIG_PATH': 'config_path',
    'BASE_URL': 'base_url',
    'KEYCLOAK_ADMIN_USERNAME': 'keycloak_admin_username',
    'KEYCLOAK_ADMIN_PASSWORD': 'keycloak_admin_password',
    'KEYCLOAK_REALM': 'keycloak_realm',
    'PLATFORM_OUTPUT_DIR': 'output_dir',
    'PLATFORM_LOG_LEVEL': 'log_level',
}


def load_settings(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Return DEFAULT_SETTINGS overlaid with any mapped environment variables."""
    environ = os.environ if environ is None else environ
    settings = dict(DEFAULT_SETTINGS)
    for env_var, key in ENV_MAPPING.items():
        value = environ.get(env_var)
        if value:
            settings[key] = value
    return settings


def get_output_path(environ: Optional[Dict[str, str]] = None) -> Path:
    """Absolute path of the results directory, relative to the working directory."""
    return Path.cwd() / load_settings(environ)['output_dir']
