#!/usr/bin/env python3
"""
Registry of started containers.

The registry is the single record of what is running. It keeps insertion
order so shutdown can walk it backwards. It is not locked: it is only
mutated from the orchestration coroutine.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Iterator

from platformctl.containers.base import StartedContainer


class ContainerRegistry:
    """Keyed store of StartedContainer handles."""

    def __init__(self):
        self._containers = OrderedDict()  # type: OrderedDict[str, StartedContainer]
        self.logger = logging.getLogger('platformctl.registry')

    def add_container(self, key: str, container: StartedContainer) -> None:
        """
        Register a container under ``key``.

        An existing entry is replaced, not stopped; the caller owns the
        replaced handle.
        """
        if key in self._containers:
            self.logger.warning(f"Replacing registered container '{key}'; the previous one is not stopped")
        self._containers[key] = container
        self.logger.info(f"Registered container '{key}'")

    def get_container(self, key: str) -> Optional[StartedContainer]:
        return self._containers.get(key)

    def has_container(self, key: str) -> bool:
        return key in self._containers

    def remove_container(self, key: str) -> bool:
        removed = self._containers.pop(key, None) is not None
        if removed:
            self.logger.info(f"Removed container '{key}' from registry")
        return removed

    def clear(self) -> None:
        self._containers.clear()
        self.logger.info("Container registry cleared")

    def keys(self) -> List[str]:
        return list(self._containers.keys())

    def get_all_containers(self) -> Dict[str, StartedContainer]:
        """Ordered copy of all entries."""
        return OrderedDict(self._containers)

    def __len__(self) -> int:
        return len(self._containers)

    def __contains__(self, key: object) -> bool:
        return key in self._containers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._containers))
