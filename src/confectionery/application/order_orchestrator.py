"""Application service: Order Orchestrator.

The only place that coordinates the catalog, the stock ledger and the
order repository:

- checkout re-prices the cart on the server, sells every line through the
  ledger and only then persists the order in ``pending_whatsapp``;
- staff actions move the order through the state machine, and
  cancellation hands every sale back to the ledger.

Checkout is a saga, not a transaction: each line is one atomic ledger
write, and a failure part-way through compensates the lines already sold
(``return`` movements) before the error reaches the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from confectionery.application.dto import OrderDTO, OrderPlacedDTO, PlaceOrderRequest
from confectionery.application.whatsapp_link import order_message, whatsapp_url
from confectionery.config import get_logger
from confectionery.domain.events import EventBus, OrderPlaced, OrderStatusChanged
from confectionery.domain.exceptions import (
    ConcurrencyConflict,
    DomainException,
    EntityNotFoundError,
    InsufficientStock,
    InvalidTransition,
    PriceMismatch,
    RollbackIncomplete,
    ValidationError,
)
from confectionery.domain.model.order import (
    MAX_LINE_ITEMS,
    Order,
    OrderItem,
    OrderStatus,
)
from confectionery.domain.model.stock import MovementType, StockMovement
from confectionery.domain.model.value_objects import Quantity
from confectionery.domain.repository.catalog_repository import CatalogRepository
from confectionery.domain.repository.order_repository import (
    OrderRepository,
    StaleOrderError,
)
from confectionery.domain.service.cart_validator import CartValidator, PricedLine
from confectionery.domain.service.order_state_machine import (
    LedgerEffect,
    OrderStateMachine,
    Transition,
)
from confectionery.domain.service.stock_ledger import StockLedger

logger = get_logger(__name__)


class OrderOrchestrator:

    def __init__(
        self,
        order_repo: OrderRepository,
        catalog_repo: CatalogRepository,
        ledger: StockLedger,
        events: EventBus | None = None,
        *,
        order_number_prefix: str = "QUE",
        currency: str = "PYG",
        whatsapp_phone: str = "",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._orders = order_repo
        self._catalog = catalog_repo
        self._ledger = ledger
        self._validator = CartValidator(catalog_repo)
        self._events = events
        self._prefix = order_number_prefix
        self._currency = currency
        self._whatsapp_phone = whatsapp_phone
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # --- Checkout -------------------------------------------------------------

    def create_order(self, request: PlaceOrderRequest) -> OrderPlacedDTO:
        """Place a new order.

        Steps:
        1. Validate the request shape (line count, quantities, duplicates).
        2. Re-price every line on the server; reject with PriceMismatch if
           the client sent prices that disagree or unknown variants.
        3. Check availability of every line before touching the ledger.
        4. Sell each line, in ascending variant order. On any failure every
           sale the ledger holds for the order number is returned.
        5. Snapshot the server prices into the order and persist it.
        """
        self._check_request(request)
        now = self._clock()
        priced = self._authoritative_prices(request, now)

        sell_order = sorted(priced, key=lambda line: line.variant_id)
        for line in sell_order:
            available = self._ledger.current_stock(line.variant_id)
            if available < line.quantity:
                raise InsufficientStock(line.variant_id, line.quantity, available)

        order_number = self._orders.reserve_order_number(self._prefix, now.date())
        try:
            for line in sell_order:
                self._ledger.decrement(
                    line.variant_id, line.quantity, order_number, actor=request.actor
                )

            order = Order.place(
                order_number=order_number,
                customer=request.customer,
                items=[self._snapshot(line) for line in priced],
                delivery_method=request.delivery_method,
                payment_method=request.payment_method,
                delivery_notes=request.delivery_notes,
                customer_notes=request.customer_notes,
                created_by=request.actor,
                created_at=now,
            )
            self._orders.add(order)
        except Exception as exc:
            self._compensate(order_number, request.actor, exc)
            raise

        logger.info(
            "order_created",
            order_number=order.order_number,
            items=len(order.items),
            total=order.total,
        )
        self._publish(
            OrderPlaced(
                order_number=order.order_number,
                total=order.total,
                item_count=len(order.items),
            )
        )

        message = order_message(order, self._currency)
        return OrderPlacedDTO(
            order=OrderDTO.from_order(order, self._currency),
            whatsapp_url=whatsapp_url(self._whatsapp_phone, message),
            whatsapp_message=message,
        )

    # --- Staff actions --------------------------------------------------------

    def confirm_order(
        self,
        order_number: str,
        shipping_cost: int = 0,
        admin_notes: str | None = None,
        actor: str | None = None,
    ) -> OrderDTO:
        """``pending_whatsapp -> confirmed``, fixing the shipping cost."""
        order = self._load(order_number)
        if order.status is not OrderStatus.PENDING_WHATSAPP:
            raise InvalidTransition(order.status, OrderStatus.CONFIRMED)
        order.set_shipping_cost(shipping_cost)
        self._transition(order, OrderStatus.CONFIRMED, actor=actor, admin_notes=admin_notes)
        return OrderDTO.from_order(order, self._currency)

    def update_status(
        self,
        order_number: str,
        status: OrderStatus,
        admin_notes: str | None = None,
        actor: str | None = None,
        reason: str | None = None,
    ) -> OrderDTO:
        """Generic transition; cancellation is delegated to cancel_order()."""
        if status is OrderStatus.CANCELLED:
            return self.cancel_order(order_number, reason or "", actor=actor)
        order = self._load(order_number)
        self._transition(order, status, actor=actor, admin_notes=admin_notes)
        return OrderDTO.from_order(order, self._currency)

    def cancel_order(
        self, order_number: str, reason: str, actor: str | None = None
    ) -> OrderDTO:
        """Cancel an order and return every sold unit to stock."""
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")
        order = self._load(order_number)
        self._transition(order, OrderStatus.CANCELLED, actor=actor, reason=reason.strip())
        return OrderDTO.from_order(order, self._currency)

    def resume_cancellation(
        self, order_number: str, actor: str | None = None
    ) -> list[StockMovement]:
        """Finish the stock returns of a cancelled order.

        Reversals are idempotent, so lines already returned are left alone.
        """
        order = self._load(order_number)
        if order.status is not OrderStatus.CANCELLED:
            raise ValidationError(
                f"Order {order_number} is {order.status.value}, not cancelled"
            )
        return self._reverse_sales(order, actor)

    def mark_whatsapp_sent(
        self, order_number: str, message_id: str | None = None
    ) -> OrderDTO:
        order = self._load(order_number)
        seen = order.updated_at
        order.whatsapp_sent = True
        order.whatsapp_sent_at = self._clock()
        order.updated_at = order.whatsapp_sent_at
        if message_id:
            order.whatsapp_message_id = message_id
        self._save(order, order.status, seen)
        return OrderDTO.from_order(order, self._currency)

    def update_shipping_cost(
        self, order_number: str, shipping_cost: int, actor: str | None = None
    ) -> OrderDTO:
        order = self._load(order_number)
        if order.is_terminal:
            raise ValidationError(
                f"Cannot change shipping cost of a {order.status.value} order"
            )
        seen = order.updated_at
        order.set_shipping_cost(shipping_cost)
        order.updated_at = self._clock()
        order.updated_by = actor
        self._save(order, order.status, seen)
        return OrderDTO.from_order(order, self._currency)

    def release_unplaced_order(
        self, order_number: str, actor: str | None = None
    ) -> list[StockMovement]:
        """Return the stock of a checkout that sold units but never saved its order.

        Only for order numbers with no order record; placed orders are
        cancelled instead. Idempotent.
        """
        if self._orders.get_by_number(order_number) is not None:
            raise ValidationError(
                f"Order {order_number} exists; cancel it to return its stock"
            )
        variants = self._sold_variants(order_number)
        if not variants:
            raise EntityNotFoundError(f"No stock was sold under {order_number}")

        logger.warning("order_stock_released", order_number=order_number, variants=variants)
        return [
            self._ledger.reverse_sale(
                order_number,
                variant_id,
                actor=actor,
                reason=f"Rollback - order {order_number} not created",
            )
            for variant_id in variants
        ]

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _check_request(request: PlaceOrderRequest) -> None:
        if not request.items:
            raise ValidationError("Order must contain at least one item")
        if len(request.items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
        seen: set[str] = set()
        for item in request.items:
            Quantity(item.quantity)
            if item.variant_id in seen:
                raise ValidationError(
                    f"Variant '{item.variant_id}' appears more than once in the cart"
                )
            seen.add(item.variant_id)

    def _authoritative_prices(
        self, request: PlaceOrderRequest, now: datetime
    ) -> list[PricedLine]:
        client_priced = any(
            item.client_final_price is not None or item.client_subtotal is not None
            for item in request.items
        )
        if not client_priced:
            return self._validator.price_cart(
                [(item.variant_id, item.quantity) for item in request.items], now=now
            )

        result = self._validator.validate(request.items, now=now)
        if not result.valid:
            logger.warning(
                "order_price_mismatch",
                discrepancies=[d.variant_id for d in result.discrepancies],
            )
            raise PriceMismatch(
                "Cart prices do not match the server",
                discrepancies=result.discrepancies,
                server_prices=result.server_prices,
            )
        return result.server_prices

    def _snapshot(self, line: PricedLine) -> OrderItem:
        variant = self._catalog.get_variant(line.variant_id)
        if variant is None:
            raise EntityNotFoundError(f"Variant '{line.variant_id}' not found")
        return OrderItem(
            variant_id=line.variant_id,
            sku=variant.sku,
            name=variant.name,
            quantity=line.quantity,
            original_price=line.original_price,
            unit_price=line.unit_price,
            discount=line.total_discount,
            subtotal=line.subtotal,
            applied_discount=line.applied_discount,
        )

    def _compensate(
        self, order_number: str, actor: str | None, error: Exception
    ) -> None:
        """Return every sale the ledger holds for a checkout that failed.

        The ledger is asked rather than the loop's own bookkeeping, so a sale
        that committed but whose call still raised is returned as well.
        Raises RollbackIncomplete, chained to *error*, if any sale stays.
        """
        variants = self._sold_variants(order_number)
        if not variants:
            return
        logger.warning("order_rollback", order_number=order_number, variants=variants)

        leaked: list[str] = []
        for variant_id in reversed(variants):
            try:
                self._ledger.reverse_sale(
                    order_number,
                    variant_id,
                    actor=actor,
                    reason=f"Rollback - order {order_number} not created",
                )
            except DomainException as exc:
                logger.error(
                    "order_rollback_incomplete",
                    order_number=order_number,
                    variant_id=variant_id,
                    error=exc.to_dict(),
                )
                leaked.append(variant_id)

        if leaked:
            raise RollbackIncomplete(order_number, sorted(leaked)) from error

    def _sold_variants(self, order_number: str) -> list[str]:
        return sorted(
            m.variant_id
            for m in self._ledger.movements_for_order(order_number)
            if m.type is MovementType.SALE
        )

    def _transition(
        self,
        order: Order,
        target: OrderStatus,
        *,
        actor: str | None = None,
        admin_notes: str | None = None,
        reason: str | None = None,
    ) -> Transition:
        transition = OrderStateMachine.plan(order.status, target)
        previous = order.status

        order.apply(transition, self._clock(), actor)
        if admin_notes:
            order.admin_notes = admin_notes
        if transition.effect is LedgerEffect.REVERSE_SALES:
            order.cancellation_reason = reason

        try:
            self._orders.save(order, expected_status=previous)
        except StaleOrderError as exc:
            raise InvalidTransition(exc.actual, target) from exc

        if transition.effect is LedgerEffect.REVERSE_SALES:
            self._reverse_sales(order, actor, reason)
        elif transition.effect is LedgerEffect.DECREMENT:
            raise RuntimeError("Stock is only sold through create_order()")

        logger.info(
            "order_status_changed",
            order_number=order.order_number,
            previous_status=previous.value,
            new_status=target.value,
            actor=actor,
        )
        self._publish(
            OrderStatusChanged(
                order_number=order.order_number,
                previous_status=previous.value,
                new_status=target.value,
                actor=actor,
                reason=reason,
            )
        )
        return transition

    def _reverse_sales(
        self, order: Order, actor: str | None, reason: str | None = None
    ) -> list[StockMovement]:
        note = f"Cancellation - order {order.order_number}"
        if reason:
            note = f"{note}: {reason}"
        return [
            self._ledger.reverse_sale(
                order.order_number, item.variant_id, actor=actor, reason=note
            )
            for item in sorted(order.items, key=lambda i: i.variant_id)
        ]

    def _load(self, order_number: str) -> Order:
        order = self._orders.get_by_number(order_number)
        if order is None:
            raise EntityNotFoundError(f"Order {order_number} not found")
        return order

    def _save(
        self,
        order: Order,
        expected_status: OrderStatus,
        expected_updated_at: datetime | None = None,
    ) -> None:
        try:
            self._orders.save(
                order,
                expected_status=expected_status,
                expected_updated_at=expected_updated_at,
            )
        except StaleOrderError as exc:
            raise ConcurrencyConflict(order.order_number, 1) from exc

    def _publish(self, event) -> None:
        """Publish after the order is persisted. A failing handler is logged, not raised."""
        if self._events is None:
            return
        try:
            self._events.publish(event)
        except Exception:
            logger.exception(
                "order_event_handler_failed",
                event=type(event).__name__,
                order_number=event.order_number,
            )
