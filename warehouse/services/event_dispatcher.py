"""Warehouse event fan-out.

Responsibilities:
- Wrap emitted events in a WarehouseNotification envelope
- Deliver them to in-process subscribers
- Optionally forward them to a Google Cloud Pub/Sub topic
"""

from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from google.cloud import pubsub_v1

from warehouse.logging_config import get_logger
from warehouse.models import PubSubSettings, WarehouseEvent, WarehouseNotification
from warehouse.utils import millis_now

logger = get_logger(__name__)

EventHandler = Callable[[WarehouseNotification], None]


class EventSink(Protocol):
    """Capability accepting a named event with an optional payload."""

    def emit(self, event: WarehouseEvent, payload: Any = None) -> Any:
        ...


class NotificationForwarder(Protocol):
    def forward(self, notification: WarehouseNotification) -> bool:
        ...

    def shutdown(self) -> None:
        ...


def build_notification(event: WarehouseEvent, payload: Any = None) -> WarehouseNotification:
    """Build the envelope for an event.

    Payloads may be a product id, a sequence of products (objects with an
    ``id``) or product ids, an exception, or a dict with ``product_id`` and
    ``error`` keys.
    """
    product_id: Optional[str] = None
    product_ids: List[str] = []
    error: Optional[BaseException] = None

    if isinstance(payload, str):
        product_id = payload
    elif isinstance(payload, BaseException):
        error = payload
    elif isinstance(payload, dict):
        product_id = payload.get("product_id")
        error = payload.get("error")
    # Product lists come from retrieve_products
    elif isinstance(payload, (list, tuple)):
        product_ids = [item if isinstance(item, str) else getattr(item, "id", str(item)) for item in payload]

    return WarehouseNotification(
        event=event,
        event_time_millis=millis_now(),
        product_id=product_id,
        product_ids=product_ids,
        error_code=getattr(error, "code", None) if error is not None else None,
        error_message=str(error) if error is not None else None,
        payload=payload,
    )


class EventDispatcher:
    """In-process publish/subscribe channel for warehouse events.

    Handlers subscribe to one event or to all events. A failing handler is
    logged and never stops delivery to the others.

    Thread-safe.
    """

    def __init__(self, forwarders: Optional[Sequence[NotificationForwarder]] = None):
        self._lock = RLock()
        self._handlers: Dict[Optional[WarehouseEvent], List[EventHandler]] = {}
        self._forwarders: List[NotificationForwarder] = list(forwarders or [])

    def subscribe(
        self, handler: EventHandler, event: Optional[WarehouseEvent] = None
    ) -> Callable[[], None]:
        """Subscribe a handler.

        Args:
            handler: Called with each matching WarehouseNotification
            event: Event to listen for, or None for every event

        Returns:
            Callable that removes the subscription
        """
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def emit(self, event: WarehouseEvent, payload: Any = None) -> WarehouseNotification:
        """Emit an event to subscribers and forwarders.

        Args:
            event: Event name
            payload: Optional product id, product list or error

        Returns:
            The delivered notification
        """
        notification = build_notification(event, payload)

        # Snapshot so handlers can (un)subscribe while being called
        with self._lock:
            handlers = list(self._handlers.get(event, [])) + list(self._handlers.get(None, []))
            forwarders = list(self._forwarders)

        logger.info(
            "event_emitted",
            event_name=event.name,
            product_id=notification.product_id,
            error_code=notification.error_code,
            subscribers=len(handlers),
        )

        for handler in handlers:
            try:
                handler(notification)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_name=event.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

        # Forwarders log their own failures and never raise
        for forwarder in forwarders:
            forwarder.forward(notification)

        return notification

    def shutdown(self) -> None:
        """Drop subscribers and shut down forwarders."""
        with self._lock:
            forwarders = list(self._forwarders)
            self._forwarders.clear()
            self._handlers.clear()
        for forwarder in forwarders:
            forwarder.shutdown()


class PubSubForwarder:
    """Publishes warehouse notifications to a Google Cloud Pub/Sub topic."""

    def __init__(self, settings: PubSubSettings):
        """Init pub/sub publisher from settings.

        Initialization failures are logged and leave the forwarder disabled.
        """
        self._lock = RLock()
        self._publisher: Optional[pubsub_v1.PublisherClient] = None
        self._topic_path: Optional[str] = None
        self._enabled = settings.enabled

        if not self._enabled:
            logger.info("pubsub_forwarder_disabled", message="Event forwarding is disabled in config")
            return

        try:
            self._publisher = pubsub_v1.PublisherClient()
            self._topic_path = self._publisher.topic_path(settings.project_id, settings.topic)
            self._ensure_topic_exists()
            logger.info(
                "pubsub_forwarder_initialized",
                project_id=settings.project_id,
                topic=settings.topic,
                topic_path=self._topic_path,
            )
        except Exception as e:
            logger.error(
                "pubsub_forwarder_init_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self._enabled = False

    def _ensure_topic_exists(self) -> None:
        """Create the topic if it does not exist yet."""
        try:
            self._publisher.get_topic(request={"topic": self._topic_path})
            logger.info("pubsub_topic_exists", topic_path=self._topic_path)
        except Exception:
            topic = self._publisher.create_topic(request={"name": self._topic_path})
            logger.info("pubsub_topic_created", topic_path=topic.name)

    def is_enabled(self) -> bool:
        return self._enabled and self._publisher is not None

    def forward(self, notification: WarehouseNotification) -> bool:
        """Publish a notification without waiting for the server ack.

        The publish outcome is logged from the future's done callback, so
        callers on the event loop never block on delivery.

        Returns:
            True if the message was handed to the publisher, False otherwise
        """
        if not self.is_enabled():
            logger.debug("pubsub_forwarder_disabled", message="Skipping event publication")
            return False

        with self._lock:
            try:
                future = self._publisher.publish(
                    self._topic_path,
                    notification.model_dump_json().encode("utf-8"),
                    event=notification.event.value,
                )
            except Exception as e:
                logger.error(
                    "pubsub_publish_failed",
                    event_name=notification.event.name,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return False

        future.add_done_callback(lambda f: self._log_publish_result(f, notification.event))
        return True

    @staticmethod
    def _log_publish_result(future, event: WarehouseEvent) -> None:
        """Runs on the publisher's thread once the publish settles."""
        try:
            message_id = future.result()
        except Exception as e:
            logger.error(
                "pubsub_publish_failed",
                event_name=event.name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return
        logger.debug("pubsub_message_published", message_id=message_id, event_name=event.name)

    def shutdown(self) -> None:
        with self._lock:
            if self._publisher:
                logger.info("pubsub_forwarder_shutting_down")
                self._publisher = None
                self._topic_path = None


def create_event_dispatcher(pubsub: Optional[PubSubSettings] = None) -> EventDispatcher:
    """Create a dispatcher, forwarding to Pub/Sub when enabled."""
    forwarders: List[NotificationForwarder] = []
    if pubsub is not None and pubsub.enabled:
        forwarders.append(PubSubForwarder(pubsub))
    return EventDispatcher(forwarders=forwarders)
