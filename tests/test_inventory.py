"""Tests for stock reservation and manual adjustments."""

import pytest

from minimarket.errors import InsufficientStockError, ProductUnavailableError, ValidationError
from minimarket.model import InventoryLog, Product
from minimarket.services import InventoryService, atomic


def _stock(session, product_id):
    session.expire_all()
    return session.get(Product, product_id).quantity


class TestReserve:
    def test_decrements_tracked_products(self, session, make_product):
        a = make_product(quantity=10)
        b = make_product(quantity=3)

        with atomic(session):
            reservations = InventoryService(session).reserve([(a.id, 4), (b.id, 3)])

        assert [(r.product_id, r.reserved, r.previous_quantity, r.new_quantity) for r in reservations] == [
            (a.id, True, 10, 6),
            (b.id, True, 3, 0),
        ]
        assert _stock(session, a.id) == 6
        assert _stock(session, b.id) == 0

    def test_accepts_dict_items(self, session, make_product):
        product = make_product(quantity=5)
        with atomic(session):
            InventoryService(session).reserve([{"product_id": product.id, "quantity": 2}])
        assert _stock(session, product.id) == 3

    def test_untracked_products_are_left_alone(self, session, make_product):
        product = make_product(quantity=0, track_inventory=False)
        with atomic(session):
            (reservation,) = InventoryService(session).reserve([(product.id, 7)])

        assert reservation.reserved is False
        assert _stock(session, product.id) == 0
        assert session.query(InventoryLog).count() == 0

    def test_writes_one_log_entry_per_product(self, session, make_product):
        a = make_product(quantity=10)
        b = make_product(quantity=10)
        with atomic(session):
            InventoryService(session).reserve([(a.id, 1), (b.id, 2)], order_id=77, user_id="u-1")

        logs = session.query(InventoryLog).order_by(InventoryLog.product_id).all()
        assert [(e.product_id, e.type, e.quantity, e.previous_quantity, e.new_quantity) for e in logs] == [
            (a.id, "reserved", -1, 10, 9),
            (b.id, "reserved", -2, 10, 8),
        ]
        assert {e.order_id for e in logs} == {77}

    def test_duplicate_lines_are_combined(self, session, make_product):
        product = make_product(quantity=5)
        with atomic(session):
            InventoryService(session).reserve([(product.id, 2), (product.id, 3)])
        assert _stock(session, product.id) == 0


class TestAllOrNothing:
    def test_one_short_line_reserves_nothing(self, session, make_product):
        a = make_product(quantity=10)
        b = make_product(quantity=1)

        with pytest.raises(InsufficientStockError) as exc:
            with atomic(session):
                InventoryService(session).reserve([(a.id, 2), (b.id, 2)])

        assert exc.value.product_id == b.id
        assert _stock(session, a.id) == 10
        assert _stock(session, b.id) == 1
        assert session.query(InventoryLog).count() == 0

    def test_stale_read_still_refused_by_guarded_update(self, session, make_product):
        product = make_product(quantity=2)
        service = InventoryService(session)

        # another writer takes the stock after our catalog read
        original = service.catalog.get_products

        def stale_read(ids, for_update=False):
            rows = original(ids, for_update=for_update)
            session.execute(
                Product.__table__.update().where(Product.__table__.c.id == product.id).values(quantity=0)
            )
            return rows

        service.catalog.get_products = stale_read
        with pytest.raises(InsufficientStockError):
            with atomic(session):
                service.reserve([(product.id, 2)])

        # the rollback also undid the simulated writer, stock is as before
        assert _stock(session, product.id) == 2

    def test_inactive_product_refused(self, session, make_product):
        product = make_product(is_active=False)
        with pytest.raises(ProductUnavailableError):
            with atomic(session):
                InventoryService(session).reserve([(product.id, 1)])

    def test_non_positive_quantity_refused(self, session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            InventoryService(session).reserve([(product.id, 0)])


class TestAdjust:
    @pytest.mark.parametrize(
        "type_,quantity,expected",
        [("stock_in", 5, 15), ("stock_out", 4, 6), ("stock_out", 50, 0), ("adjustment", 3, 3)],
    )
    def test_adjust_types(self, session, make_product, type_, quantity, expected):
        product = make_product(quantity=10)
        with atomic(session):
            entry = InventoryService(session).adjust(product.id, quantity, type_, reason="recount")

        assert entry.previous_quantity == 10
        assert entry.new_quantity == expected
        assert entry.quantity == expected - 10
        assert _stock(session, product.id) == expected

    def test_unknown_type(self, session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            InventoryService(session).adjust(product.id, 1, "reserved")

    def test_unknown_product(self, session):
        with pytest.raises(ProductUnavailableError):
            InventoryService(session).adjust(4040, 1, "stock_in")

    def test_stock_out_below_threshold_flags_low_stock(self, session, make_product):
        product = make_product(quantity=10, low_stock_threshold=5)
        assert product.as_api()["inventory"]["low_stock"] is False

        with atomic(session):
            InventoryService(session).adjust(product.id, 6, "stock_out")

        session.refresh(product)
        assert product.is_low_stock is True
        assert product.as_api()["inventory"]["low_stock"] is True
