"""Abstract repository for Order aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from confectionery.domain.model.order import Order, OrderStatus


class OrderRepository(ABC):

    @abstractmethod
    def reserve_order_number(self, prefix: str, day: date) -> str:
        """Hand out the next ``PREFIX-YYYYMMDD-NNN`` number for *day*.

        A number is never handed out twice, even if the order that
        reserved it is never persisted.
        """

    @abstractmethod
    def get_by_number(self, order_number: str) -> Order | None:
        """Return an order by its number, or None if not found."""

    @abstractmethod
    def list_all(self, status: OrderStatus | None = None) -> list[Order]:
        """Return orders, newest first, optionally filtered by status."""

    @abstractmethod
    def add(self, order: Order) -> None:
        """Persist a new order. Fails if the number already exists."""

    @abstractmethod
    def save(
        self,
        order: Order,
        expected_status: OrderStatus,
        expected_updated_at: datetime | None = None,
    ) -> None:
        """Persist an updated order if its stored status is still *expected_status*.

        When *expected_updated_at* is given the stored ``updated_at`` must
        match it too, so two field edits on the same status cannot overwrite
        each other. Raises ``StaleOrderError`` when another writer got there
        first.
        """


class StaleOrderError(Exception):
    """The stored order changed since the writer read it."""

    def __init__(
        self,
        order_number: str,
        expected: OrderStatus,
        actual: OrderStatus,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"Order {order_number} is {actual.value}, expected {expected.value}"
        )
        self.order_number = order_number
        self.expected = expected
        self.actual = actual
