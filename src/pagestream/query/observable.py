"""Minimal observable value: current value plus a subscriber list."""

from typing import Callable, Generic, List, TypeVar

T = TypeVar("T")

Subscriber = Callable[[T], None]


class ObservableValue(Generic[T]):
    """Holds a value and pushes every new value to its subscribers.

    ``subscribe`` replays the current value immediately, so a late subscriber
    always starts from the latest state.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: List[Subscriber] = []

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)
        subscriber(self._value)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def set(self, value: T) -> None:
        self.assign(value)
        self.notify()

    def assign(self, value: T) -> None:
        """Change the value without notifying; pair with ``notify``."""
        self._value = value

    def notify(self) -> None:
        for subscriber in list(self._subscribers):
            subscriber(self._value)

    def close(self) -> None:
        """Drop all subscribers."""
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


def publish(*assignments) -> None:
    """
    Assign several observables, then notify them.

    Every subscriber sees all new values, whichever observable it listens to.

    Args:
        *assignments: (ObservableValue, value) pairs
    """
    for observable, value in assignments:
        observable.assign(value)
    for observable, _ in assignments:
        observable.notify()
