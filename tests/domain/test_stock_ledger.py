"""Unit tests for the StockLedger: movements, idempotency and concurrency."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from confectionery.domain.events import StockMovementRecorded
from confectionery.domain.exceptions import (
    ConcurrencyConflict,
    InsufficientStock,
    MovementNotFound,
    ValidationError,
)
from confectionery.domain.model.stock import MovementType
from confectionery.domain.service.stock_ledger import StockLedger
from tests.fakes import (
    FakeStockMovementRepository,
    RecordingEventBus,
    StaleOnceStockMovementRepository,
)


def _ledger(initial: int = 10, repo=None, **kwargs) -> tuple[StockLedger, FakeStockMovementRepository]:
    repo = repo or FakeStockMovementRepository()
    ledger = StockLedger(repo, backoff_base=0, **kwargs)
    if initial:
        ledger.increment("v1", initial, MovementType.RESTOCK)
    return ledger, repo


class TestDecrement:

    def test_sale_records_movement(self):
        ledger, _ = _ledger(10)
        movement = ledger.decrement("v1", 3, "QUE-20260314-001", actor="web")
        assert movement.type is MovementType.SALE
        assert movement.quantity_delta == -3
        assert (movement.previous_stock, movement.new_stock) == (10, 7)
        assert movement.order_id == "QUE-20260314-001"
        assert ledger.current_stock("v1") == 7

    def test_insufficient_stock_leaves_no_trace(self):
        ledger, repo = _ledger(2)
        with pytest.raises(InsufficientStock) as exc_info:
            ledger.decrement("v1", 3, "QUE-20260314-001")
        assert exc_info.value.available == 2
        assert ledger.current_stock("v1") == 2
        assert repo.list_all(MovementType.SALE) == []

    def test_selling_the_last_unit(self):
        ledger, _ = _ledger(3)
        ledger.decrement("v1", 3, "QUE-20260314-001")
        assert ledger.current_stock("v1") == 0

    def test_repeated_sale_for_same_order_is_idempotent(self):
        ledger, repo = _ledger(10)
        first = ledger.decrement("v1", 3, "QUE-20260314-001")
        again = ledger.decrement("v1", 3, "QUE-20260314-001")
        assert again == first
        assert len(repo.list_all(MovementType.SALE)) == 1
        assert ledger.current_stock("v1") == 7

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_rejected(self, quantity):
        ledger, _ = _ledger(10)
        with pytest.raises(ValidationError):
            ledger.decrement("v1", quantity, "QUE-20260314-001")

    def test_sale_needs_order(self):
        ledger, _ = _ledger(10)
        with pytest.raises(ValidationError):
            ledger.decrement("v1", 1, "")


class TestIncrement:

    def test_restock_adds(self):
        ledger, _ = _ledger(0)
        movement = ledger.increment("v1", 12, MovementType.RESTOCK, metadata={"supplier": "Acme"})
        assert movement.new_stock == 12
        assert movement.metadata == {"supplier": "Acme"}

    def test_damage_must_be_negative(self):
        ledger, _ = _ledger(10)
        with pytest.raises(ValidationError):
            ledger.increment("v1", 2, MovementType.DAMAGE)
        assert ledger.increment("v1", -2, MovementType.DAMAGE).new_stock == 8

    def test_negative_adjustment_cannot_go_below_zero(self):
        ledger, _ = _ledger(4)
        with pytest.raises(InsufficientStock):
            ledger.increment("v1", -5, MovementType.ADJUSTMENT)

    def test_sale_type_rejected(self):
        ledger, _ = _ledger(10)
        with pytest.raises(ValidationError):
            ledger.increment("v1", -1, MovementType.SALE)

    def test_restock_must_be_positive(self):
        ledger, _ = _ledger(0)
        with pytest.raises(ValidationError):
            ledger.increment("v1", -1, MovementType.RESTOCK)


class TestAdjustTo:

    def test_sets_absolute_count(self):
        ledger, _ = _ledger(10)
        movement = ledger.adjust_to("v1", 6, "Inventory count")
        assert movement.quantity_delta == -4
        assert ledger.current_stock("v1") == 6

    def test_same_count_rejected(self):
        ledger, _ = _ledger(10)
        with pytest.raises(ValidationError):
            ledger.adjust_to("v1", 10, "Inventory count")

    def test_reason_required(self):
        ledger, _ = _ledger(10)
        with pytest.raises(ValidationError):
            ledger.adjust_to("v1", 3, " ")


class TestReverseSale:

    def test_return_restores_stock(self):
        ledger, _ = _ledger(10)
        sale = ledger.decrement("v1", 4, "QUE-20260314-001")
        ret = ledger.reverse_sale("QUE-20260314-001", "v1")
        assert ret.type is MovementType.RETURN
        assert ret.quantity_delta == 4
        assert ret.metadata["reverses"] == sale.id
        assert ledger.current_stock("v1") == 10

    def test_second_reversal_is_a_no_op(self):
        ledger, repo = _ledger(10)
        ledger.decrement("v1", 4, "QUE-20260314-001")
        first = ledger.reverse_sale("QUE-20260314-001", "v1")
        second = ledger.reverse_sale("QUE-20260314-001", "v1")
        assert second == first
        assert len(repo.list_all(MovementType.RETURN)) == 1
        assert ledger.current_stock("v1") == 10

    def test_missing_sale_raises(self):
        ledger, _ = _ledger(10)
        with pytest.raises(MovementNotFound):
            ledger.reverse_sale("QUE-20260314-999", "v1")


class TestRetries:

    def test_retries_after_lost_race(self):
        sleeps: list[float] = []
        repo = StaleOnceStockMovementRepository(conflicts=2)
        ledger = StockLedger(repo, max_attempts=5, backoff_base=0.01, sleep=sleeps.append)
        ledger.increment("v1", 5, MovementType.RESTOCK)
        assert repo.append_calls == 3
        assert len(sleeps) == 2
        assert ledger.current_stock("v1") == 5

    def test_gives_up_after_budget(self):
        repo = StaleOnceStockMovementRepository(conflicts=100)
        ledger = StockLedger(repo, max_attempts=3, backoff_base=0)
        with pytest.raises(ConcurrencyConflict) as exc_info:
            ledger.increment("v1", 5, MovementType.RESTOCK)
        assert exc_info.value.retryable
        assert exc_info.value.attempts == 3
        assert repo.append_calls == 3
        assert repo.list_all() == []


class TestConcurrency:

    def test_concurrent_sales_never_oversell(self):
        repo = FakeStockMovementRepository()
        ledger = StockLedger(repo, max_attempts=200, backoff_base=0.0005)
        ledger.increment("v1", 10, MovementType.RESTOCK)
        barrier = threading.Barrier(25)

        def buy(i: int) -> bool:
            barrier.wait()
            try:
                ledger.decrement("v1", 1, f"QUE-20260314-{i:03d}")
            except InsufficientStock:
                return False
            return True

        with ThreadPoolExecutor(max_workers=25) as pool:
            results = list(pool.map(buy, range(25)))

        assert sum(results) == 10
        assert ledger.current_stock("v1") == 0
        movements = repo.list_by_variant("v1")
        assert sum(m.quantity_delta for m in movements) == 0
        assert all(m.new_stock >= 0 for m in movements)

    def test_chain_of_movements_is_consistent(self):
        repo = FakeStockMovementRepository()
        ledger = StockLedger(repo, max_attempts=200, backoff_base=0.0005)

        def restock(_: int) -> None:
            ledger.increment("v1", 2, MovementType.RESTOCK)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(restock, range(40)))

        movements = repo.list_by_variant("v1")
        assert ledger.current_stock("v1") == 80
        for before, after in zip(movements, movements[1:]):
            assert after.previous_stock == before.new_stock


class TestReadsAndEvents:

    def test_history_is_newest_first(self):
        ledger, _ = _ledger(10)
        ledger.decrement("v1", 1, "QUE-20260314-001")
        ledger.decrement("v1", 2, "QUE-20260314-002")
        assert [m.quantity_delta for m in ledger.history("v1")] == [-2, -1, 10]
        assert len(ledger.history("v1", limit=1)) == 1

    def test_pagination(self):
        ledger, _ = _ledger(10)
        for i in range(4):
            ledger.decrement("v1", 1, f"QUE-20260314-{i:03d}")
        page = ledger.list_movements(MovementType.SALE, page=2, limit=3)
        assert page.total == 4
        assert page.total_pages == 2
        assert len(page.items) == 1

    def test_publishes_recorded_movements(self):
        events = RecordingEventBus()
        ledger = StockLedger(FakeStockMovementRepository(), events, backoff_base=0)
        ledger.increment("v1", 3, MovementType.RESTOCK)
        recorded = events.of_type(StockMovementRecorded)
        assert len(recorded) == 1
        assert recorded[0].movement.new_stock == 3

    def test_failing_subscriber_does_not_undo_the_commit(self):
        events = RecordingEventBus()

        def broken_handler(event):
            raise RuntimeError("mailer down")

        events.subscribe(StockMovementRecorded, broken_handler)
        repo = FakeStockMovementRepository()
        ledger = StockLedger(repo, events, backoff_base=0)
        ledger.increment("v1", 5, MovementType.RESTOCK)
        movement = ledger.decrement("v1", 2, "QUE-20260314-001")
        assert movement.new_stock == 3
        assert ledger.current_stock("v1") == 3
        assert len(events.of_type(StockMovementRecorded)) == 2
