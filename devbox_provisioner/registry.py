from __future__ import annotations

from typing import Dict, Iterable, Iterator, List

from .errors import ConfigurationError, DuplicateResourceError
from .resource import Resource


class ResourceRegistry:
    """Resources by name, in the order they were declared."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: Dict[str, Resource] = {}
        for r in resources:
            self.add(r)

    def add(self, resource: Resource) -> None:
        name = getattr(resource, "name", None)
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Resource name must be a non-empty string, got {name!r}")
        if name in self._resources:
            raise DuplicateResourceError(name)
        self._resources[name] = resource

    def get(self, name: str) -> Resource:
        return self._resources[name]

    def names(self) -> List[str]:
        return list(self._resources)

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)
