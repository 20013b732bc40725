"""Contract between the client and the protocol connectors."""

from abc import ABCMeta, abstractmethod
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Dict, List, Mapping, Optional

from remotefs.exceptions import TransportError
from remotefs.fileinfo import FileInfo


class Action(str, Enum):
    GET = "GET"
    PUT = "PUT"
    APPEND = "APPEND"
    DELETE = "DELETE"
    ISDIR = "ISDIR"
    LIST = "LIST"
    MKDIR = "MKDIR"
    RMDIR = "RMDIR"
    RENAME = "RENAME"
    SIZE = "SIZE"

    def __str__(self) -> str:
        return self.value


PAYLOAD_ACTIONS = frozenset({Action.PUT, Action.APPEND})


@dataclass
class TransportMessage:
    """One response delivered by a connector.

    Only the field matching the action is set.
    """

    stream: Optional[BinaryIO] = None
    entries: Optional[List[FileInfo]] = None
    is_directory: Optional[bool] = None
    size: Optional[int] = None


class ConnectorListener(metaclass=ABCMeta):
    """Receives the outcome of a ``Connector.send`` call.

    Methods may be called from a connector-owned thread.
    """

    @abstractmethod
    def on_message(self, message: TransportMessage) -> None:
        """Handle one response message."""

    @abstractmethod
    def on_complete(self) -> None:
        """The action finished successfully."""

    @abstractmethod
    def on_error(self, error: BaseException) -> None:
        """The action failed."""


class Connector(metaclass=ABCMeta):
    def __init__(self, properties: Mapping[str, str], listener: ConnectorListener) -> None:
        self.properties = dict(properties)
        self.listener = listener

    @abstractmethod
    def send(self, payload: Optional[BinaryIO], action: Action) -> None:
        """
        Start ``action`` without waiting for it to finish.

        Args:
            payload: Stream to upload for PUT and APPEND, None otherwise.
                     The connector drains and closes it.
            action: The operation to perform
        """

    def close(self) -> None:
        """Abort the action in flight, if the connector supports it."""


class ThreadedConnector(Connector):
    """Connector that runs each action on an executor thread.

    Subclasses implement one ``_do_<action>`` method per supported action.
    Each method returns the messages to deliver, in order.
    """

    def __init__(
        self,
        properties: Mapping[str, str],
        listener: ConnectorListener,
        executor: Executor,
    ) -> None:
        super().__init__(properties, listener)
        self._executor = executor
        self._handlers: Dict[Action, Callable[[Optional[BinaryIO]], List[TransportMessage]]] = {
            action: getattr(self, f"_do_{action.value.lower()}") for action in Action
        }

    def send(self, payload: Optional[BinaryIO], action: Action) -> None:
        self._executor.submit(self._run, payload, Action(action))

    def _run(self, payload: Optional[BinaryIO], action: Action) -> None:
        try:
            messages = self._handlers[action](payload)
        except Exception as e:
            self.listener.on_error(self._translate_error(e))
            return
        finally:
            if payload is not None:
                payload.close()

        for message in messages:
            self.listener.on_message(message)
        self.listener.on_complete()

    def _translate_error(self, error: Exception) -> Exception:
        """Map a library exception onto the remotefs hierarchy where possible."""
        return error

    def flag(self, name: str, default: bool = False) -> bool:
        """Read a boolean property from the property bag."""
        value = self.properties.get(name)
        if value is None:
            return default
        return value.strip().lower() == "true"

    def require_property(self, name: str) -> str:
        try:
            return self.properties[name]
        except KeyError:
            raise TransportError(f"Missing required property '{name}'")

    @abstractmethod
    def _do_get(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_put(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_append(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_delete(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_isdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_list(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_mkdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_rmdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_rename(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...

    @abstractmethod
    def _do_size(self, payload: Optional[BinaryIO]) -> List[TransportMessage]: ...


class ConnectorFactory(metaclass=ABCMeta):
    @abstractmethod
    def open_connector(
        self, properties: Mapping[str, str], listener: ConnectorListener
    ) -> Connector:
        """
        Create a connector for the ``uri`` in ``properties``.

        Raises:
            TransportError: If no connector can be created
        """

    def close(self) -> None:
        """Release resources held by the factory."""
