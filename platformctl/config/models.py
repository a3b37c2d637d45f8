"""
Typed, immutable view of the platform configuration.

PlatformConfig.from_dict() accepts the ``platformConfig`` object of an
integration-tests.json document (camelCase keys).
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Any, Optional, Tuple, Union, Mapping

from platformctl.containers.base import HealthCheckSpec

DEFAULT_HEARTBEAT_INTERVAL = 10_000
DEFAULT_FAILURE_THRESHOLD = 3


@dataclass(frozen=True)
class HeartbeatConfig:
    enabled: bool = False
    interval: int = DEFAULT_HEARTBEAT_INTERVAL
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD

    def merged(self, partial: Optional[Mapping[str, Any]]) -> 'HeartbeatConfig':
        """Overlay the fields present in ``partial`` (camelCase or snake_case)."""
        if not partial:
            return self
        updates = {}
        if partial.get('enabled') is not None:
            updates['enabled'] = bool(partial['enabled'])
        if partial.get('interval') is not None:
            updates['interval'] = int(partial['interval'])
        threshold = partial.get('failureThreshold', partial.get('failure_threshold'))
        if threshold is not None:
            updates['failure_threshold'] = int(threshold)
        return replace(self, **updates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'interval': self.interval,
            'failureThreshold': self.failure_threshold
        }


@dataclass(frozen=True)
class PlatformOverrides:
    postgres: Optional[str] = None
    keycloak: Optional[str] = None
    importmanager: Optional[str] = None
    services: Mapping[str, str] = field(default_factory=dict)
    bff: Mapping[str, str] = field(default_factory=dict)
    ui: Mapping[str, str] = field(default_factory=dict)

    @staticmethod
    def _images(section: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        images = {}
        for name, value in (section or {}).items():
            image = value.get('image') if isinstance(value, Mapping) else value
            if image:
                images[name] = image
        return images

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'PlatformOverrides':
        data = data or {}
        core = cls._images(data.get('core'))
        # importmanager is accepted both inside core and at the top level
        importmanager = core.get('importmanager') or cls._images(
            {'importmanager': data.get('importmanager')}
        ).get('importmanager')
        return cls(
            postgres=core.get('postgres'),
            keycloak=core.get('keycloak'),
            importmanager=importmanager,
            services=cls._images(data.get('services')),
            bff=cls._images(data.get('bff')),
            ui=cls._images(data.get('ui'))
        )


@dataclass(frozen=True)
class UserContainerConfig:
    """Common fields of a user declared container."""
    image: str
    network_alias: str
    environments: Mapping[str, str] = field(default_factory=dict)
    health_check: Optional[HealthCheckSpec] = None

    @staticmethod
    def _common(data: Mapping[str, Any]) -> Dict[str, Any]:
        health_check = data.get('healthCheck')
        return {
            'image': data['image'],
            'network_alias': data['networkAlias'],
            'environments': dict(data.get('environments') or {}),
            'health_check': HealthCheckSpec.from_dict(health_check) if health_check else None,
        }


@dataclass(frozen=True)
class SvcContainerConfig(UserContainerConfig):
    database_username: Optional[str] = None
    database_password: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SvcContainerConfig':
        details = data.get('svcDetails') or {}
        return cls(
            database_username=details.get('databaseUsername'),
            database_password=details.get('databasePassword'),
            **cls._common(data)
        )


@dataclass(frozen=True)
class BffContainerConfig(UserContainerConfig):
    permissions_product_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'BffContainerConfig':
        details = data.get('bffDetails') or {}
        return cls(
            permissions_product_name=details.get('permissionsProductName'),
            **cls._common(data)
        )


@dataclass(frozen=True)
class UiContainerConfig(UserContainerConfig):
    app_id: Optional[str] = None
    product_name: Optional[str] = None
    app_base_href: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'UiContainerConfig':
        details = data.get('uiDetails') or {}
        return cls(
            app_id=details.get('appId'),
            product_name=details.get('productName'),
            app_base_href=details.get('appBaseHref'),
            **cls._common(data)
        )


@dataclass(frozen=True)
class E2eContainerConfig(UserContainerConfig):
    base_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'E2eContainerConfig':
        return cls(base_url=data.get('baseUrl'), **cls._common(data))


@dataclass(frozen=True)
class ContainerDefinitions:
    service: Tuple[SvcContainerConfig, ...] = ()
    bff: Tuple[BffContainerConfig, ...] = ()
    ui: Tuple[UiContainerConfig, ...] = ()
    e2e: Optional[E2eContainerConfig] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ContainerDefinitions':
        e2e = data.get('e2e')
        return cls(
            service=tuple(SvcContainerConfig.from_dict(d) for d in data.get('service') or ()),
            bff=tuple(BffContainerConfig.from_dict(d) for d in data.get('bff') or ()),
            ui=tuple(UiContainerConfig.from_dict(d) for d in data.get('ui') or ()),
            e2e=E2eContainerConfig.from_dict(e2e) if e2e else None
        )

    def has_user_containers(self) -> bool:
        return bool(self.service or self.bff or self.ui)


@dataclass(frozen=True)
class PlatformConfig:
    """
    Validated platform configuration.

    Attributes:
        import_data: Import seed data after all containers are up.
        enable_logging: Stream container output; True/False or a list of aliases.
        heartbeat: Heartbeat settings, merged over the defaults.
        platform_overrides: Image overrides per component.
        container: User declared containers, None if the section is absent.
    """
    import_data: bool = True
    enable_logging: Union[bool, Tuple[str, ...]] = False
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    platform_overrides: PlatformOverrides = field(default_factory=PlatformOverrides)
    container: Optional[ContainerDefinitions] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PlatformConfig':
        """Build from the ``platformConfig`` object (or a document containing it)."""
        if 'platformConfig' in data:
            data = data['platformConfig']

        enable_logging = data.get('enableLogging', False)
        if isinstance(enable_logging, (list, tuple)):
            enable_logging = tuple(enable_logging)
        container = data.get('container')
        return cls(
            import_data=data.get('importData', True),
            enable_logging=enable_logging,
            heartbeat=HeartbeatConfig().merged(data.get('heartbeat')),
            platform_overrides=PlatformOverrides.from_dict(data.get('platformOverrides')),
            container=ContainerDefinitions.from_dict(container) if container else None
        )

    @property
    def e2e(self) -> Optional[E2eContainerConfig]:
        return self.container.e2e if self.container else None


DEFAULT_PLATFORM_CONFIG = PlatformConfig()
