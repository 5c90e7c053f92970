"""Base collector function interface and labeled object groups"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterator, List, Mapping, TypeVar

from metrics.models import Labels, MetricFamily


T = TypeVar("T")

ScaleFunction = Callable[[float], float]


def identity(value: float) -> float:
    return value


def micros_to_seconds(value: float) -> float:
    return value / 1_000_000


@dataclass(frozen=True)
class LabeledObject(Generic[T]):
    """One monitored object handle together with the labels identifying it"""
    labels: Labels
    handle: T


@dataclass(frozen=True)
class LabeledObjectGroup(Generic[T]):
    """All monitored objects sharing one metric family name"""
    name: str
    help: str
    labeled_objects: Mapping[Labels, T] = field(default_factory=dict)

    def __iter__(self) -> Iterator[LabeledObject[T]]:
        for labels, handle in self.labeled_objects.items():
            yield LabeledObject(labels, handle)

    def __len__(self) -> int:
        return len(self.labeled_objects)


class CollectorFunction(ABC, Generic[T]):
    """Converts a group of labeled objects of one kind into metric families"""

    def __init__(self, scale: ScaleFunction = identity):
        self.scale = scale

    @abstractmethod
    def collect(self, group: LabeledObjectGroup[T]) -> List[MetricFamily]:
        """Build the metric families for one group"""
        pass

    def __call__(self, group: LabeledObjectGroup[T]) -> List[MetricFamily]:
        return self.collect(group)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CollectorFunction):
            return NotImplemented
        return type(self) is type(other) and self.scale == other.scale

    def __hash__(self) -> int:
        return hash((type(self), self.scale))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(scale={getattr(self.scale, '__name__', self.scale)})"
