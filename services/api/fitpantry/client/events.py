import logging
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger("fitpantry.client")

T = TypeVar("T")


class Observable(Generic[T]):
    """A value that tells its subscribers when it changes.

    Used instead of shared mutable flags: the pantry view and the chat view
    each subscribe to what they care about and refresh themselves.
    """

    def __init__(self, value: Optional[T] = None):
        self._value = value
        self._subscribers: list[Callable[[Optional[T]], Any]] = []

    @property
    def value(self) -> Optional[T]:
        return self._value

    def subscribe(self, callback: Callable[[Optional[T]], Any]) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: Optional[T] = None) -> None:
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                # One broken subscriber must not starve the rest.
                logger.error(f"Subscriber {callback!r} failed: {e.__class__.__name__}: {e}")
