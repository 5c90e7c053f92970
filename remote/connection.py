"""Remote management connection interface"""
import abc
import importlib
from dataclasses import dataclass, field
from typing import Any, Callable, Set


@dataclass(frozen=True)
class ObjectInstance:
    """One enumerated remote object; identity is the object name alone"""
    object_name: str
    class_name: str = field(default="", compare=False)

    def __str__(self) -> str:
        return self.object_name


class RemoteConnection(abc.ABC):
    """Connection to the management interface of a remote process"""

    @abc.abstractmethod
    def query_objects(self) -> Set[ObjectInstance]:
        """Return every object currently registered in the remote process"""
        pass

    @abc.abstractmethod
    def get_attribute(self, object_name: str, attribute: str) -> Any:
        """Read one attribute of a remote object"""
        pass

    def close(self) -> None:
        """Release the connection"""
        pass


ConnectionFactory = Callable[..., RemoteConnection]


def load_connection_factory(path: str) -> ConnectionFactory:
    """Import a connection factory given as ``package.module:callable``"""
    if not path or ":" not in path:
        raise ValueError(f"Connection factory must look like 'module:callable', got {path!r}")

    module_name, _, attr_name = path.partition(":")
    module = importlib.import_module(module_name)

    factory = module
    for part in attr_name.split("."):
        factory = getattr(factory, part)

    if not callable(factory):
        raise ValueError(f"Connection factory {path!r} is not callable")
    return factory
