#!/usr/bin/env python3
"""
Built-in platform components and container spec builders.

The core platform is a fixed roster: postgres and keycloak, a set of
backend services, the shell BFF and the shell UI. Each entry knows its
registry key, network alias, default image and which other containers it
needs. The builder functions turn that knowledge (or a user declared
container) into a ContainerSpec.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Mapping

from platformctl.containers.base import (
    BindMount,
    ContainerKind,
    ContainerSpec,
    HealthCheckSpec,
    StartedContainer,
    ONE_SHOT_STARTUP_TIMEOUT
)
from platformctl.config.settings import E2E_CONTAINER_OUTPUT_PATH


class ContainerKey:
    """Registry keys of the built-in components."""
    POSTGRES = 'postgres'
    KEYCLOAK = 'keycloak'
    IAM_KC_SVC = 'onecx-iam-kc-svc'
    TENANT_SVC = 'onecx-tenant-svc'
    WORKSPACE_SVC = 'onecx-workspace-svc'
    USER_PROFILE_SVC = 'onecx-user-profile-svc'
    THEME_SVC = 'onecx-theme-svc'
    PRODUCT_STORE_SVC = 'onecx-product-store-svc'
    PERMISSION_SVC = 'onecx-permission-svc'
    SHELL_BFF = 'onecx-shell-bff'
    SHELL_UI = 'onecx-shell-ui'


POSTGRES_IMAGE = 'docker.io/library/postgres:13.4'
KEYCLOAK_IMAGE = 'quay.io/keycloak/keycloak:23.0.4'
IMPORT_MANAGER_IMAGE = 'docker.io/library/node:20'

POSTGRES_ALIAS = 'postgresdb'
KEYCLOAK_ALIAS = 'keycloak-app'
IMPORT_MANAGER_ALIAS = 'import-manager'
DATABASE_NAME = 'onecx'

SHELL_PRODUCT_NAME = 'onecx-shell'
SHELL_UI_APP_ID = 'onecx-shell-ui'
SHELL_UI_BASE_HREF = '/onecx-shell/'
SHELL_UI_CLIENT_ID = 'onecx-shell-ui-client'

IMPORT_DIR = '/import'
IMPORT_RUNNER = 'import-runner.ts'


@dataclass(frozen=True)
class CoreComponent:
    """A built-in component of the platform."""
    key: str
    alias: str
    default_image: str
    kind: ContainerKind
    requires: Tuple[str, ...] = ()
    port: int = 8080


def _ghcr(name: str) -> str:
    return f'ghcr.io/onecx/{name}:main-native'


CORE_SERVICES = (
    CoreComponent(ContainerKey.IAM_KC_SVC, 'onecx-iam-kc-svc', _ghcr('onecx-iam-kc-svc'), ContainerKind.SERVICE),
    CoreComponent(ContainerKey.TENANT_SVC, 'onecx-tenant-svc', _ghcr('onecx-tenant-svc'), ContainerKind.SERVICE),
    CoreComponent(
        ContainerKey.WORKSPACE_SVC, 'onecx-workspace-svc', _ghcr('onecx-workspace-svc'), ContainerKind.SERVICE,
        requires=(ContainerKey.TENANT_SVC,)
    ),
    CoreComponent(
        ContainerKey.USER_PROFILE_SVC, 'onecx-user-profile-svc', _ghcr('onecx-user-profile-svc'), ContainerKind.SERVICE
    ),
    CoreComponent(ContainerKey.THEME_SVC, 'onecx-theme-svc', _ghcr('onecx-theme-svc'), ContainerKind.SERVICE),
    CoreComponent(
        ContainerKey.PRODUCT_STORE_SVC, 'onecx-product-store-svc', _ghcr('onecx-product-store-svc'),
        ContainerKind.SERVICE
    ),
    CoreComponent(
        ContainerKey.PERMISSION_SVC, 'onecx-permission-svc', _ghcr('onecx-permission-svc'), ContainerKind.SERVICE
    ),
)

CORE_BFFS = (
    CoreComponent(
        ContainerKey.SHELL_BFF, 'onecx-shell-bff', _ghcr('onecx-shell-bff'), ContainerKind.BFF,
        requires=(ContainerKey.PERMISSION_SVC,)
    ),
)

CORE_UIS = (
    CoreComponent(
        ContainerKey.SHELL_UI, 'onecx-shell-ui', 'ghcr.io/onecx/onecx-shell-ui:main', ContainerKind.SHELL_UI,
        requires=(ContainerKey.SHELL_BFF,)
    ),
)


def service_url(container: StartedContainer) -> str:
    """URL of a container inside the shared network."""
    return f"http://{container.name}:{container.port}"


def http_health_check(port: int, path: str = '/q/health') -> HealthCheckSpec:
    return HealthCheckSpec(
        test=('CMD-SHELL', f'curl --head -fsS http://localhost:{port}{path}'),
        interval=10_000,
        timeout=5_000,
        retries=3
    )


def postgres_spec(image: str, log_output: bool = False) -> ContainerSpec:
    return ContainerSpec(
        image=image,
        kind=ContainerKind.POSTGRES,
        network_aliases=(POSTGRES_ALIAS,),
        port=5432,
        environment={
            'POSTGRES_DB': DATABASE_NAME,
            'POSTGRES_USER': 'onecx',
            'POSTGRES_PASSWORD': 'onecx',
        },
        health_check=HealthCheckSpec(test=('CMD-SHELL', 'pg_isready -U onecx'), interval=5_000, retries=10),
        log_output=log_output,
        details={'database': DATABASE_NAME, 'username': 'onecx', 'password': 'onecx'}
    )


def keycloak_spec(image: str, settings: Mapping[str, str], log_output: bool = False) -> ContainerSpec:
    """
    Keycloak in dev mode.

    Args:
        image: Keycloak image.
        settings: Runtime settings providing admin credentials and realm.
        log_output: Stream container output.
    """
    realm = settings['keycloak_realm']
    return ContainerSpec(
        image=image,
        kind=ContainerKind.KEYCLOAK,
        network_aliases=(KEYCLOAK_ALIAS,),
        port=8080,
        command=('start-dev', '--import-realm', '--health-enabled=true'),
        environment={
            'KEYCLOAK_ADMIN': settings['keycloak_admin_username'],
            'KEYCLOAK_ADMIN_PASSWORD': settings['keycloak_admin_password'],
            'KC_HOSTNAME_STRICT': 'false',
            'KC_HTTP_ENABLED': 'true',
        },
        health_check=http_health_check(8080, f'/realms/{realm}'),
        log_output=log_output,
        details={
            'realm': realm,
            'admin_username': settings['keycloak_admin_username'],
            'admin_password': settings['keycloak_admin_password'],
        }
    )


def common_environment(keycloak: StartedContainer) -> Dict[str, str]:
    """OIDC settings shared by every service and BFF."""
    return {
        'QUARKUS_OIDC_AUTH_SERVER_URL': f"{service_url(keycloak)}/realms/{keycloak.detail('realm')}",
        'QUARKUS_OIDC_TOKEN_ISSUER': 'any',
        'TKIT_SECURITY_AUTH_ENABLED': 'false',
    }


def service_spec(
    image: str,
    alias: str,
    postgres: StartedContainer,
    keycloak: StartedContainer,
    *,
    port: int = 8080,
    database_username: Optional[str] = None,
    database_password: Optional[str] = None,
    environment: Optional[Mapping[str, str]] = None,
    health_check: Optional[HealthCheckSpec] = None,
    log_output: bool = False
) -> ContainerSpec:
    username = database_username or postgres.detail('username')
    env = common_environment(keycloak)
    env.update({
        'QUARKUS_DATASOURCE_JDBC_URL': (
            f"jdbc:postgresql://{postgres.name}:{postgres.port}/{postgres.detail('database')}"
        ),
        'QUARKUS_DATASOURCE_USERNAME': username,
        'QUARKUS_DATASOURCE_PASSWORD': database_password or postgres.detail('password'),
    })
    env.update(environment or {})
    return ContainerSpec(
        image=image,
        kind=ContainerKind.SERVICE,
        network_aliases=(alias,),
        port=port,
        environment=env,
        health_check=health_check or http_health_check(port),
        log_output=log_output,
        details={'database_username': username}
    )


def bff_spec(
    image: str,
    alias: str,
    keycloak: StartedContainer,
    *,
    port: int = 8080,
    permissions_product_name: str = '',
    environment: Optional[Mapping[str, str]] = None,
    health_check: Optional[HealthCheckSpec] = None,
    log_output: bool = False
) -> ContainerSpec:
    env = common_environment(keycloak)
    env['ONECX_PERMISSIONS_PRODUCT_NAME'] = permissions_product_name
    env.update(environment or {})
    return ContainerSpec(
        image=image,
        kind=ContainerKind.BFF,
        network_aliases=(alias,),
        port=port,
        environment=env,
        health_check=health_check or http_health_check(port),
        log_output=log_output,
        details={'permissions_product_name': permissions_product_name}
    )


def ui_spec(
    image: str,
    alias: str,
    *,
    kind: ContainerKind = ContainerKind.UI,
    port: int = 8080,
    app_id: Optional[str] = None,
    product_name: Optional[str] = None,
    app_base_href: Optional[str] = None,
    client_user_id: Optional[str] = None,
    environment: Optional[Mapping[str, str]] = None,
    health_check: Optional[HealthCheckSpec] = None,
    log_output: bool = False
) -> ContainerSpec:
    env = {}
    if app_base_href:
        env['APP_BASE_HREF'] = app_base_href
    if app_id:
        env['APP_ID'] = app_id
    if product_name:
        env['PRODUCT_NAME'] = product_name
    if client_user_id:
        env['CLIENT_USER_ID'] = client_user_id
    env.update(environment or {})
    return ContainerSpec(
        image=image,
        kind=kind,
        network_aliases=(alias,),
        port=port,
        environment=env,
        health_check=health_check or http_health_check(port, app_base_href or '/'),
        log_output=log_output,
        details={
            'app_id': app_id,
            'product_name': product_name,
            'app_base_href': app_base_href,
            'client_user_id': client_user_id,
        }
    )


def e2e_spec(
    image: str,
    alias: str,
    output_path: Path,
    *,
    base_url: Optional[str] = None,
    environment: Optional[Mapping[str, str]] = None,
    log_output: bool = False
) -> ContainerSpec:
    """One-shot test runner that writes its reports to ``output_path``."""
    env = dict(environment or {})
    if base_url:
        env['BASE_URL'] = base_url
    return ContainerSpec(
        image=image,
        kind=ContainerKind.E2E,
        network_aliases=(alias,),
        port=None,
        environment=env,
        bind_mounts=(BindMount(str(output_path), E2E_CONTAINER_OUTPUT_PATH),),
        one_shot=True,
        startup_timeout=ONE_SHOT_STARTUP_TIMEOUT,
        log_output=log_output
    )


def import_spec(image: str, container_info_path: Path, log_output: bool = False) -> ContainerSpec:
    """
    Import tool container.

    The runner script is expected in the image under /import; the container
    stays alive after the runner exits so its completion can be polled.
    """
    return ContainerSpec(
        image=image,
        kind=ContainerKind.IMPORT,
        network_aliases=(IMPORT_MANAGER_ALIAS,),
        port=None,
        command=('sh', '-c', f'cd {IMPORT_DIR} && npx --yes tsx {IMPORT_RUNNER}; tail -f /dev/null'),
        environment={'CONTAINER_INFO_PATH': f'{IMPORT_DIR}/container-info.json'},
        bind_mounts=(BindMount(str(container_info_path), f'{IMPORT_DIR}/container-info.json', 'ro'),),
        log_output=log_output
    )
