from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, List, TypeVar

T = TypeVar("T")

Unsubscribe = Callable[[], None]


@dataclass
class Subscription(Generic[T]):
    callback: Callable[[T], None]
    active: bool = True

    def deliver(self, event: T) -> None:
        if self.active:
            self.callback(event)


class EventChannel(Generic[T]):
    """Typed publish/subscribe channel.

    ``subscribe`` returns a disposer; calling it detaches the callback and is
    idempotent. Each published event reaches every subscriber registered at
    publish time at most once.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._subscriptions: List[Subscription[T]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        subscription: Subscription[T] = Subscription(callback=callback)
        self._subscriptions.append(subscription)

        def _unsubscribe() -> None:
            subscription.active = False
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                return

        return _unsubscribe

    def publish(self, event: T) -> None:
        for subscription in list(self._subscriptions):
            subscription.deliver(event)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

