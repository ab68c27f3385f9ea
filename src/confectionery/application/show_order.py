"""Application service: Show Order use case (query)."""

from __future__ import annotations

from confectionery.application.dto import OrderDTO
from confectionery.domain.exceptions import EntityNotFoundError
from confectionery.domain.model.order import OrderStatus
from confectionery.domain.repository.order_repository import OrderRepository


class ShowOrderHandler:

    def __init__(self, order_repo: OrderRepository, currency: str = "PYG") -> None:
        self._order_repo = order_repo
        self._currency = currency

    def handle(self, order_number: str) -> OrderDTO:
        order = self._order_repo.get_by_number(order_number)
        if order is None:
            raise EntityNotFoundError(f"Order {order_number} not found")
        return OrderDTO.from_order(order, self._currency)

    def list_orders(self, status: OrderStatus | None = None) -> list[OrderDTO]:
        return [
            OrderDTO.from_order(order, self._currency)
            for order in self._order_repo.list_all(status)
        ]
