"""Immutable inventory snapshots of registered monitored objects"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from collectors.base import CollectorFunction, LabeledObjectGroup
from metrics.models import Labels
from remote.interfaces import InstrumentKind
from remote.metadata import ObjectMetadata


class RegistrationConflictError(Exception):
    """An object cannot join the metric family it maps to"""


@dataclass(frozen=True)
class RegisteredObject:
    """A monitored object known to the local registry"""
    object_name: str
    kind: InstrumentKind
    handle: Any
    metadata: ObjectMetadata
    collector: CollectorFunction

    @property
    def family(self) -> str:
        return self.metadata.name


class InventorySnapshot:
    """Registered objects at one point in time, keyed by object name"""

    def __init__(self, objects: Optional[Mapping[str, RegisteredObject]] = None):
        self._objects = MappingProxyType(dict(objects or {}))

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_name: str) -> bool:
        return object_name in self._objects

    def __iter__(self) -> Iterator[RegisteredObject]:
        return iter(self._objects.values())

    def get(self, object_name: str) -> Optional[RegisteredObject]:
        return self._objects.get(object_name)

    @property
    def objects(self) -> Mapping[str, RegisteredObject]:
        return self._objects

    def groups(self) -> List[Tuple[LabeledObjectGroup, CollectorFunction]]:
        """Build one labeled object group per metric family, ordered by family name"""
        families: Dict[str, List[RegisteredObject]] = {}
        for obj in self._objects.values():
            families.setdefault(obj.family, []).append(obj)

        groups = []
        for name in sorted(families):
            members = sorted(families[name], key=lambda obj: obj.object_name)
            first = members[0]
            group = LabeledObjectGroup(
                name=name,
                help=first.metadata.help,
                labeled_objects={obj.metadata.labels: obj.handle for obj in members},
            )
            groups.append((group, first.collector))
        return groups


class InventoryBuilder:
    """Mutable working copy of a snapshot, private to one reconciliation tick"""

    def __init__(self, base: InventorySnapshot):
        self._objects: Dict[str, RegisteredObject] = {}
        # family name -> labels -> object
        self._families: Dict[str, Dict[Labels, RegisteredObject]] = {}
        for obj in base:
            self._insert(obj)

    def __len__(self) -> int:
        return len(self._objects)

    def _insert(self, obj: RegisteredObject) -> None:
        self._objects[obj.object_name] = obj
        self._families.setdefault(obj.family, {})[obj.metadata.labels] = obj

    def add(self, obj: RegisteredObject) -> None:
        """Add an object, keeping every family internally consistent"""
        members = self._families.get(obj.family, {})
        existing = members.get(obj.metadata.labels)
        if existing is not None and existing.object_name != obj.object_name:
            raise RegistrationConflictError(
                f"{obj.object_name} has the same labels {dict(obj.metadata.labels)} as "
                f"{existing.object_name} in family {obj.family}"
            )

        sibling = next((member for member in members.values() if member.object_name != obj.object_name), None)
        if sibling is not None and (sibling.collector != obj.collector or sibling.metadata.help != obj.metadata.help):
            raise RegistrationConflictError(
                f"{obj.object_name} does not match the help text or collector of family {obj.family}"
            )

        self.remove(obj.object_name)
        self._insert(obj)

    def remove(self, object_name: str) -> Optional[RegisteredObject]:
        """Remove an object; removing an unknown object does nothing"""
        obj = self._objects.pop(object_name, None)
        if obj is not None:
            members = self._families[obj.family]
            del members[obj.metadata.labels]
            if not members:
                del self._families[obj.family]
        return obj

    def build(self) -> InventorySnapshot:
        return InventorySnapshot(self._objects)


class Inventory:
    """Holds the current snapshot.

    Readers take ``snapshot`` once and work from it. The single writer stages
    changes in a builder and publishes the result with one reference
    assignment, so a reader never observes a half-applied tick.
    """

    def __init__(self):
        self._snapshot = InventorySnapshot()

    @property
    def snapshot(self) -> InventorySnapshot:
        return self._snapshot

    def stage(self) -> InventoryBuilder:
        return InventoryBuilder(self._snapshot)

    def publish(self, snapshot: InventorySnapshot) -> None:
        self._snapshot = snapshot
