"""Local registry of monitored objects and metric family collection"""
import fnmatch
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from collectors.functions import default_collector_function
from metrics.models import MetricFamily
from remote.metadata import ObjectNameMetadataFactory
from logging_config import get_logger
from .inventory import Inventory, InventoryBuilder, RegisteredObject


logger = get_logger(__name__)


class Harvester:
    """Turns registered remote objects into metric families.

    Registration goes through an ``InventoryBuilder`` so that a whole
    reconciliation tick can be published at once; collection always works
    from one published snapshot.
    """

    def __init__(self, metadata_factory=None, exclusions: Iterable[str] = (),
                 global_labels: Optional[Dict[str, str]] = None):
        self.metadata_factory = metadata_factory or ObjectNameMetadataFactory()
        self.exclusions = list(exclusions)
        self.global_labels = dict(global_labels or {})
        self.inventory = Inventory()

    def is_excluded(self, family_name: str, object_name: str) -> bool:
        """Check whether a family or object name matches an exclusion pattern"""
        return any(
            fnmatch.fnmatchcase(family_name, pattern) or fnmatch.fnmatchcase(object_name, pattern)
            for pattern in self.exclusions
        )

    def register(self, builder: InventoryBuilder, handle) -> Optional[RegisteredObject]:
        """Register a typed handle; returns None when the object is not exported"""
        metadata = self.metadata_factory.metadata_for(handle)
        if metadata is None:
            logger.debug("No metric metadata for object", object_name=handle.object_name, kind=handle.kind.value)
            return None

        if self.is_excluded(metadata.name, handle.object_name):
            logger.debug("Object excluded", object_name=handle.object_name, family=metadata.name)
            return None

        collector = metadata.collector or default_collector_function(handle.kind)
        if collector is None:
            logger.debug("No collector function for object", object_name=handle.object_name, kind=handle.kind.value)
            return None

        if self.global_labels:
            metadata = replace(metadata, labels=metadata.labels.merge(self.global_labels))

        registered = RegisteredObject(
            object_name=handle.object_name,
            kind=handle.kind,
            handle=handle,
            metadata=metadata,
            collector=collector,
        )
        builder.add(registered)
        return registered

    def unregister(self, builder: InventoryBuilder, object_name: str) -> Optional[RegisteredObject]:
        """Unregister an object; unknown objects are ignored"""
        return builder.remove(object_name)

    def collect(self) -> List[MetricFamily]:
        """Collect every metric family from the current snapshot.

        A group whose instruments cannot be read is left out of the result.
        """
        snapshot = self.inventory.snapshot
        families: List[MetricFamily] = []

        for group, collector in snapshot.groups():
            try:
                families.extend(collector.collect(group))
            except Exception as e:
                logger.warning(
                    "Failed to collect metric family",
                    family=group.name,
                    collector=repr(collector),
                    error=str(e),
                    error_type=type(e).__name__,
                    event_type="collection_error"
                )

        return families

    def get_family_status(self) -> Dict[str, Dict]:
        """Get status information for all registered families"""
        status = {}
        for group, collector in self.inventory.snapshot.groups():
            status[group.name] = {
                "objects": len(group),
                "collector": repr(collector),
                "help": group.help,
            }
        return status
