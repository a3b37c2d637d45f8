#!/usr/bin/env python3
"""
Tests for configuration loading, validation and the typed config model.
"""

import json
import pytest
import yaml

from platformctl.config.config_manager import PlatformConfigLoader
from platformctl.config.models import PlatformConfig, HeartbeatConfig
from platformctl.config.settings import load_settings, get_output_path
from platformctl.core.exceptions import ConfigurationError


class TestPlatformConfigLoader:
    """Test the PlatformConfigLoader class functionality."""

    def test_valid_file(self, config_file):
        result = PlatformConfigLoader().validate_config_file(config_file)

        assert result.is_valid is True
        assert result.errors == []
        assert result.path == config_file
        assert result.config.import_data is False
        assert result.config.enable_logging == ('onecx-shell-ui',)

    def test_schema_errors_carry_json_pointer(self, tmp_path):
        path = tmp_path / 'integration-tests.json'
        path.write_text(json.dumps({'platformConfig': {'heartbeat': {'interval': 10}}}))

        result = PlatformConfigLoader().validate_config_file(path)

        assert result.is_valid is False
        assert result.config is None
        assert len(result.errors) == 1
        assert result.errors[0].startswith('/platformConfig/heartbeat/interval: ')

    def test_missing_root_key(self):
        errors = PlatformConfigLoader().schema_errors({})
        assert errors == ["root: 'platformConfig' is a required property"]

    def test_unknown_property(self):
        errors = PlatformConfigLoader().schema_errors({'platformConfig': {'importdata': True}})
        assert len(errors) == 1
        assert errors[0].startswith('/platformConfig: ')

    def test_container_requires_alias(self):
        document = {'platformConfig': {'container': {'service': [{'image': 'acme-svc:1'}]}}}
        errors = PlatformConfigLoader().schema_errors(document)
        assert errors == ["/platformConfig/container/service/0: 'networkAlias' is a required property"]

    def test_invalid_json_is_reported(self, tmp_path):
        path = tmp_path / 'integration-tests.json'
        path.write_text('{"platformConfig": ')

        result = PlatformConfigLoader().validate_config_file(path)

        assert result.is_valid is False
        assert result.path == path
        assert result.config is None
        assert result.errors[0].startswith(f'Invalid JSON in config file {path}')

    def test_load_document_rejects_invalid_json(self, tmp_path):
        path = tmp_path / 'integration-tests.json'
        path.write_text('invalid { json')

        with pytest.raises(ConfigurationError) as exc_info:
            PlatformConfigLoader().load_document(path)
        assert 'Invalid JSON in config file' in str(exc_info.value)

    def test_non_object_document(self, tmp_path):
        path = tmp_path / 'integration-tests.json'
        path.write_text('[1, 2]')
        with pytest.raises(ConfigurationError):
            PlatformConfigLoader().load_document(path)

    def test_missing_file(self, tmp_path):
        result = PlatformConfigLoader().validate_config_file(tmp_path / 'nope.json')

        assert result.is_valid is False
        assert result.errors[0].startswith('No valid config file found')

    def test_yaml_file(self, tmp_path, config_document):
        path = tmp_path / 'integration-tests.yaml'
        path.write_text(yaml.safe_dump(config_document))

        result = PlatformConfigLoader().validate_config_file(path)
        assert result.is_valid is True

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv('ACME_IMAGE', 'ghcr.io/acme/acme-ui:2.0')
        path = tmp_path / 'integration-tests.json'
        path.write_text(json.dumps({'platformConfig': {'container': {'ui': [
            {'image': '${ACME_IMAGE}', 'networkAlias': 'acme-ui'}
        ]}}}))

        result = PlatformConfigLoader().validate_config_file(path)
        assert result.config.container.ui[0].image == 'ghcr.io/acme/acme-ui:2.0'

    def test_config_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv('CONFIG_PATH', str(config_file))
        result = PlatformConfigLoader().validate_config_file()
        assert result.path == config_file

    def test_find_config_file_skips_ignored_directories(self, tmp_path):
        (tmp_path / 'node_modules' / 'pkg').mkdir(parents=True)
        (tmp_path / 'node_modules' / 'pkg' / 'integration-tests.json').write_text('{}')
        (tmp_path / 'e2e').mkdir()
        (tmp_path / 'e2e' / 'integration-tests.json').write_text('{}')

        found = PlatformConfigLoader().find_config_file(tmp_path)
        assert found == tmp_path / 'e2e' / 'integration-tests.json'

    def test_find_config_file_none(self, tmp_path):
        assert PlatformConfigLoader().find_config_file(tmp_path) is None


class TestPlatformConfig:
    """Test the typed configuration model."""

    def test_defaults(self):
        config = PlatformConfig.from_dict({'platformConfig': {}})

        assert config.import_data is True
        assert config.enable_logging is False
        assert config.heartbeat == HeartbeatConfig()
        assert config.container is None
        assert config.e2e is None

    def test_heartbeat_partial_merge(self):
        config = PlatformConfig.from_dict({'heartbeat': {'enabled': True, 'interval': 1000}})
        assert config.heartbeat.to_dict() == {'enabled': True, 'interval': 1000, 'failureThreshold': 3}

    def test_overrides(self, config_document):
        overrides = PlatformConfig.from_dict(config_document).platform_overrides

        assert overrides.keycloak == 'quay.io/keycloak/keycloak:24.0.0'
        assert overrides.postgres is None
        assert overrides.services == {'onecx-theme-svc': 'ghcr.io/onecx/onecx-theme-svc:pr-12'}

    def test_importmanager_override_inside_core(self):
        config = PlatformConfig.from_dict({
            'platformOverrides': {'core': {'importmanager': {'image': 'node:22'}}}
        })
        assert config.platform_overrides.importmanager == 'node:22'

    def test_container_definitions(self, config_document):
        container = PlatformConfig.from_dict(config_document).container

        assert container.has_user_containers()
        assert container.service[0].database_username == 'acme'
        assert container.bff[0].permissions_product_name == 'acme'
        assert container.ui[0].app_base_href == '/acme/'
        assert container.ui[0].health_check.interval == 10000
        assert container.e2e.network_alias == 'acme-e2e'

    def test_only_e2e_declared(self):
        config = PlatformConfig.from_dict({'container': {'e2e': {'image': 'e2e:1', 'networkAlias': 'e2e'}}})
        assert not config.container.has_user_containers()
        assert config.e2e.image == 'e2e:1'


class TestSettings:
    """Test environment driven settings."""

    def test_defaults(self):
        settings = load_settings({})
        assert settings['keycloak_realm'] == 'onecx'
        assert settings['output_dir'] == 'e2e-results'

    def test_environment_overrides(self):
        settings = load_settings({'KEYCLOAK_REALM': 'acme', 'BASE_URL': 'http://acme/', 'PLATFORM_OUTPUT_DIR': 'out'})
        assert settings['keycloak_realm'] == 'acme'
        assert settings['base_url'] == 'http://acme/'
        assert get_output_path({'PLATFORM_OUTPUT_DIR': 'out'}).name == 'out'
