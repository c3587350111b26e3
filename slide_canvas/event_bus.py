"""In-process publish/subscribe bus plus the link that carries it across processes."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from slide_canvas.bus_messages import (
    BusMessage,
    JsonDict,
    MESSAGE_TYPES,
    MessageValidationError,
    decode_message,
    encode_message,
)

Handler = Callable[[Any], None]
SendFn = Callable[[JsonDict], bool]

ORIGIN_LOCAL = "local"
ORIGIN_REMOTE = "remote"

_LOGGER = logging.getLogger("SlideEditor.Bus")


@dataclass
class _Subscriber:
    handler: Handler
    local_only: bool
    active: bool = True


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`; call ``close`` to detach."""

    def __init__(self, bus: "EventBus", topic: str, subscriber: _Subscriber) -> None:
        self._bus = bus
        self._topic = topic
        self._subscriber = subscriber

    @property
    def active(self) -> bool:
        return self._subscriber.active

    def close(self) -> None:
        if not self._subscriber.active:
            return
        self._subscriber.active = False
        self._bus._detach(self._topic, self._subscriber)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EventBus:
    """Synchronous bus; delivery order always follows publish order.

    A publish issued from inside a handler is queued and delivered after the
    message currently being dispatched has reached every subscriber.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or _LOGGER
        self._subscribers: Dict[str, List[_Subscriber]] = {}
        self._queue: Deque[Tuple[BusMessage, str]] = deque()
        self._dispatching = False

    def subscribe(self, message_type: Type[Any], handler: Handler, *, local_only: bool = False) -> Subscription:
        topic = getattr(message_type, "topic", None)
        if topic not in MESSAGE_TYPES:
            raise ValueError(f"{message_type!r} is not a bus message type")
        subscriber = _Subscriber(handler=handler, local_only=local_only)
        self._subscribers.setdefault(topic, []).append(subscriber)
        return Subscription(self, topic, subscriber)

    def publish(self, message: BusMessage, *, origin: str = ORIGIN_LOCAL) -> None:
        if MESSAGE_TYPES.get(getattr(message, "topic", None)) is not type(message):
            raise TypeError(f"cannot publish {message!r}; not a bus message")
        self._queue.append((message, origin))
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                current, current_origin = self._queue.popleft()
                self._deliver(current, current_origin)
        finally:
            self._dispatching = False

    def subscriber_count(self, message_type: Type[Any]) -> int:
        return sum(1 for sub in self._subscribers.get(message_type.topic, []) if sub.active)

    def _deliver(self, message: BusMessage, origin: str) -> None:
        for subscriber in list(self._subscribers.get(message.topic, [])):
            if not subscriber.active:
                continue
            if subscriber.local_only and origin != ORIGIN_LOCAL:
                continue
            try:
                subscriber.handler(message)
            except Exception:
                self._logger.exception("Error handling event '%s'", message.topic)

    def _detach(self, topic: str, subscriber: _Subscriber) -> None:
        subscribers = self._subscribers.get(topic)
        if not subscribers:
            return
        try:
            subscribers.remove(subscriber)
        except ValueError:
            pass


class BoundaryLink:
    """Bridges a local bus and a transport to another process.

    Locally published messages whose type is listed in ``outbound`` are
    encoded and handed to ``send``. Payloads arriving from the transport are
    validated and published locally as remote-origin messages, which the
    outbound forwarders ignore so nothing is echoed back.
    """

    def __init__(
        self,
        bus: EventBus,
        send: SendFn,
        outbound: Iterable[Type[Any]],
        *,
        inbound: Optional[Iterable[Type[Any]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._bus = bus
        self._send = send
        self._logger = logger or _LOGGER
        self._inbound_topics = None if inbound is None else {cls.topic for cls in inbound}
        self._subscriptions = [
            bus.subscribe(message_type, self._forward, local_only=True) for message_type in outbound
        ]

    def receive(self, payload: Mapping[str, Any]) -> Optional[BusMessage]:
        try:
            message = decode_message(payload)
        except MessageValidationError as exc:
            self._logger.warning("Dropped invalid bus payload: %s", exc)
            return None
        if self._inbound_topics is not None and message.topic not in self._inbound_topics:
            self._logger.debug("Ignored bus event '%s' (not accepted by this context)", message.topic)
            return None
        self._bus.publish(message, origin=ORIGIN_REMOTE)
        return message

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []

    def _forward(self, message: BusMessage) -> None:
        try:
            payload = encode_message(message)
        except (TypeError, ValueError) as exc:
            self._logger.warning("Failed to encode bus event '%s': %s", message.topic, exc)
            return
        if not self._send(payload):
            self._logger.debug("Transport refused bus event '%s'", message.topic)
