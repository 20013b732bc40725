"""Bridges connector callbacks to the single-shot result handed to callers.

Example:
    slot = client.size("/data/report.csv")

    # Block from synchronous code
    size = slot.result(timeout=30)

    # Or await from a coroutine
    size = await slot
"""

import asyncio
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Generator, Generic, List, Optional, Type, TypeVar

from remotefs.connectors.connector import Action, ConnectorListener, TransportMessage
from remotefs.exceptions import TransportError
from remotefs.fileinfo import FileInfo

T = TypeVar("T")


def as_transport_error(error: BaseException, action: Optional[Action] = None) -> TransportError:
    """Wrap ``error`` in a TransportError tagged with ``action``.

    TransportErrors are passed through, gaining the action if they lack one.
    """
    tag = action.value if action is not None else None
    if isinstance(error, TransportError):
        if error.action is None:
            error.action = tag
        return error
    wrapped = TransportError(str(error) or type(error).__name__, action=tag)
    wrapped.__cause__ = error
    return wrapped


class CompletionSlot(Generic[T]):
    """A result cell that settles exactly once, with a value or an error.

    Thread-safe: the first of resolve(), fail() or cancel() wins and later
    calls are ignored.
    """

    def __init__(self, action: Action) -> None:
        self.action = action
        self._future: "Future[T]" = Future()
        self._lock = threading.Lock()
        self._settled = False
        self._cancel_callbacks: List[Callable[[], None]] = []

    def _settle(self) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
            return True

    def resolve(self, value: T) -> bool:
        """Complete with ``value``. Returns False if already settled."""
        if not self._settle():
            return False
        self._future.set_result(value)
        return True

    def fail(self, error: BaseException) -> bool:
        """Complete with ``error``. Returns False if already settled."""
        if not self._settle():
            return False
        self._future.set_exception(error)
        return True

    def cancel(self) -> bool:
        """Best-effort cancellation.

        Fails the slot with ``TransportError("cancelled")`` and runs the
        registered cancel callbacks, which close the connector.

        Returns:
            True if the slot was still pending
        """
        if not self.fail(TransportError("cancelled", action=self.action.value)):
            return False
        for callback in self._cancel_callbacks:
            callback()
        return True

    def add_cancel_callback(self, callback: Callable[[], None]) -> None:
        self._cancel_callbacks.append(callback)

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> T:
        """Wait for the outcome.

        Raises:
            RemoteFsError: The error the slot was failed with
            TimeoutError: If ``timeout`` seconds pass first
        """
        return self._future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self._future.exception(timeout=timeout)

    def add_done_callback(self, fn: Callable[["CompletionSlot[T]"], Any]) -> None:
        self._future.add_done_callback(lambda _: fn(self))

    def __await__(self) -> Generator[Any, None, T]:
        return asyncio.wrap_future(self._future).__await__()

    def __repr__(self) -> str:
        state = "done" if self.done() else "pending"
        return f"<CompletionSlot {self.action.value} {state}>"


# Result decoders


class ResultDecoder(Generic[T]):
    """Accumulates messages for one action into the caller's result."""

    #: Completing without any message is an error
    requires_message = False

    def __init__(self) -> None:
        self.received = False

    def accept(self, message: TransportMessage) -> None:
        self.received = True

    def value(self) -> T:
        if self.requires_message and not self.received:
            raise TransportError("Transport completed without a result")
        return self._value()

    def _value(self) -> T:
        raise NotImplementedError

    def discard(self) -> None:
        """Release anything accumulated that will never reach the caller."""


class VoidDecoder(ResultDecoder[None]):
    def _value(self) -> None:
        return None


class StreamDecoder(ResultDecoder[Any]):
    requires_message = True

    def __init__(self) -> None:
        super().__init__()
        self.stream: Any = None

    def accept(self, message: TransportMessage) -> None:
        if message.stream is None:
            raise TransportError("Response carries no content stream")
        super().accept(message)
        self.stream = message.stream

    def _value(self) -> Any:
        return self.stream

    def discard(self) -> None:
        if self.stream is not None:
            self.stream.close()


class ListDecoder(ResultDecoder[List[FileInfo]]):
    def __init__(self) -> None:
        super().__init__()
        self.entries: List[FileInfo] = []

    def accept(self, message: TransportMessage) -> None:
        super().accept(message)
        self.entries.extend(message.entries or [])

    def _value(self) -> List[FileInfo]:
        return list(self.entries)


class BooleanDecoder(ResultDecoder[bool]):
    requires_message = True

    def __init__(self) -> None:
        super().__init__()
        self.is_directory = False

    def accept(self, message: TransportMessage) -> None:
        if message.is_directory is None:
            raise TransportError("Response carries no directory flag")
        super().accept(message)
        self.is_directory = message.is_directory

    def _value(self) -> bool:
        return self.is_directory


class SizeDecoder(ResultDecoder[int]):
    requires_message = True

    def __init__(self) -> None:
        super().__init__()
        self.size = 0

    def accept(self, message: TransportMessage) -> None:
        if message.size is None or message.size < 0:
            raise TransportError(f"Response carries no valid size: {message.size!r}")
        super().accept(message)
        self.size = message.size

    def _value(self) -> int:
        return self.size


_DECODERS: Dict[Action, Type[ResultDecoder]] = {
    Action.GET: StreamDecoder,
    Action.LIST: ListDecoder,
    Action.ISDIR: BooleanDecoder,
    Action.SIZE: SizeDecoder,
}


def decoder_for(action: Action) -> ResultDecoder:
    return _DECODERS.get(action, VoidDecoder)()


class ClientListener(ConnectorListener):
    """Feeds connector callbacks for one operation into its CompletionSlot."""

    def __init__(self, slot: CompletionSlot, decoder: Optional[ResultDecoder] = None) -> None:
        self.slot = slot
        self.decoder = decoder if decoder is not None else decoder_for(slot.action)
        self._lock = threading.Lock()

    def on_message(self, message: TransportMessage) -> None:
        with self._lock:
            try:
                self.decoder.accept(message)
            except TransportError as e:
                self.slot.fail(as_transport_error(e, self.slot.action))
                return
            if self.slot.done():
                # Cancelled or failed while the transfer was running
                self.decoder.discard()

    def on_complete(self) -> None:
        with self._lock:
            try:
                value = self.decoder.value()
            except TransportError as e:
                self.slot.fail(as_transport_error(e, self.slot.action))
                return
            if not self.slot.resolve(value):
                self.decoder.discard()

    def on_error(self, error: BaseException) -> None:
        self.slot.fail(as_transport_error(error, self.slot.action))
