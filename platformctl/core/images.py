#!/usr/bin/env python3
"""
Image verification and resolution.

Every image the platform starts goes through the same decision: prefer a
configured override if it can actually be pulled and started, otherwise
fall back to the default image.
"""

import asyncio
import logging
from typing import Dict, Optional, Iterable

from platformctl.config.models import PlatformConfig
from platformctl.containers import catalog
from platformctl.containers.runtime import DockerRuntime
from platformctl.core.exceptions import ImageVerificationError

PULL_VERIFICATION_TIMEOUT = 30.0


class ImagePullChecker:
    """Checks that an image can be pulled and started."""

    def __init__(self, runtime: DockerRuntime, timeout: float = PULL_VERIFICATION_TIMEOUT):
        self.runtime = runtime
        self.timeout = timeout
        self.logger = logging.getLogger('platformctl.images')

    async def verify_image_pull(self, image: str) -> bool:
        """
        Start the image briefly and stop it again.

        Returns:
            bool: False on timeout or any engine error, never raises.
        """
        try:
            await asyncio.wait_for(self.runtime.verify_image(image), self.timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Verification of {image} timed out after {self.timeout:.0f}s")
            return False
        except ImageVerificationError as e:
            self.logger.debug(str(e))
            return False
        return True

    async def verify_multiple_images(self, images: Iterable[str]) -> Dict[str, bool]:
        results = {}
        for image in images:
            results[image] = await self.verify_image_pull(image)
        return results


class ImageOverrideMapper:
    """Looks up override images in the platform configuration."""

    @staticmethod
    def get_service_image_override(name: str, config: PlatformConfig) -> Optional[str]:
        return config.platform_overrides.services.get(name)

    @staticmethod
    def get_bff_image_override(name: str, config: PlatformConfig) -> Optional[str]:
        return config.platform_overrides.bff.get(name)

    @staticmethod
    def get_ui_image_override(name: str, config: PlatformConfig) -> Optional[str]:
        return config.platform_overrides.ui.get(name)


class ImageResolver:
    """
    Chooses the image to start for each component.

    Attributes:
        pull_checker (ImagePullChecker): Used to verify candidate images.
        config (PlatformConfig): Source of override images.
    """

    def __init__(self, pull_checker: ImagePullChecker, config: PlatformConfig):
        self.pull_checker = pull_checker
        self.config = config
        self.logger = logging.getLogger('platformctl.images')

    async def get_image(self, desired_image: str, override: Optional[str] = None) -> str:
        """
        Resolve an image, preferring a verified override.

        Args:
            desired_image: Default image for the component.
            override: Optional replacement image.

        Returns:
            str: The override if it verifies, else ``desired_image``. The
            default is returned even when its own verification fails, the
            start attempt will then report the real problem.
        """
        candidate = override or desired_image
        if await self.pull_checker.verify_image_pull(candidate):
            return candidate

        if override:
            self.logger.warning(f"Image verification failed: {override} -> {desired_image}")
        else:
            self.logger.warning(f"Image verification failed for {desired_image}, starting it anyway")
        return desired_image

    async def get_postgres_image(self) -> str:
        return await self.get_image(catalog.POSTGRES_IMAGE, self.config.platform_overrides.postgres)

    async def get_keycloak_image(self) -> str:
        return await self.get_image(catalog.KEYCLOAK_IMAGE, self.config.platform_overrides.keycloak)

    async def get_import_manager_image(self) -> str:
        return await self.get_image(catalog.IMPORT_MANAGER_IMAGE, self.config.platform_overrides.importmanager)

    async def get_service_image(self, component: catalog.CoreComponent) -> str:
        override = ImageOverrideMapper.get_service_image_override(component.key, self.config)
        return await self.get_image(component.default_image, override)

    async def get_bff_image(self, component: catalog.CoreComponent) -> str:
        override = ImageOverrideMapper.get_bff_image_override(component.key, self.config)
        return await self.get_image(component.default_image, override)

    async def get_ui_image(self, component: catalog.CoreComponent) -> str:
        override = ImageOverrideMapper.get_ui_image_override(component.key, self.config)
        return await self.get_image(component.default_image, override)
