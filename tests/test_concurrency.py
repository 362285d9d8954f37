"""Checkouts racing each other against a shared database file."""

import threading

import pytest
from sqlalchemy.orm import sessionmaker

from minimarket import create_app
from minimarket.config import TestConfig
from minimarket.errors import CartEmptyError, InsufficientStockError, StorageError
from minimarket.extensions import db
from minimarket.identity import User
from minimarket.model import InventoryLog, Order, Product
from minimarket.services import CartStore, CheckoutService

pytestmark = pytest.mark.slow


@pytest.fixture()
def file_app(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'race.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 10}}

    app = create_app(FileConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _race(engine, identities, customer, address):
    barrier = threading.Barrier(len(identities))
    outcomes = {}

    def buy(n, identity):
        session = sessionmaker(bind=engine)()
        try:
            barrier.wait()
            outcomes[n] = CheckoutService(session).create_order(
                identity, dict(customer), dict(address), "webpay"
            )
        except (CartEmptyError, InsufficientStockError, StorageError) as exc:
            outcomes[n] = exc
        finally:
            session.close()

    threads = [threading.Thread(target=buy, args=(n, i)) for n, i in enumerate(identities)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


class TestLastUnit:
    def test_exactly_one_checkout_wins(self, file_app, customer, address):
        product = Product(name="Ramune", sku="MM-RAM-001", price=1290, quantity=1)
        db.session.add(product)
        db.session.commit()

        racers = [User("racer-a"), User("racer-b")]
        store = CartStore(db.session)
        for racer in racers:
            store.add_item(racer, product.id, 1)
        db.session.commit()

        outcomes = _race(db.engine, racers, customer, address)

        assert len(outcomes) == 2
        winners = [o for o in outcomes.values() if not isinstance(o, Exception)]
        losers = [o for o in outcomes.values() if isinstance(o, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1

        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 0
        assert db.session.query(Order).count() == 1
        assert db.session.query(InventoryLog).count() == 1

        # the loser keeps their cart, the winner's is gone
        counts = sorted(CartStore(db.session).item_count(r) for r in racers)
        assert counts == [0, 1]

    def test_enough_stock_for_both(self, file_app, customer, address):
        product = Product(name="Pocky", sku="MM-POC-001", price=990, quantity=2)
        db.session.add(product)
        db.session.commit()

        racers = [User("racer-c"), User("racer-d")]
        store = CartStore(db.session)
        for racer in racers:
            store.add_item(racer, product.id, 1)
        db.session.commit()

        outcomes = _race(db.engine, racers, customer, address)

        # under SQLite a writer may be told the database is locked; retry it once
        for n, racer in enumerate(racers):
            if isinstance(outcomes[n], StorageError):
                outcomes[n] = CheckoutService(db.session).create_order(
                    racer, customer, address, "webpay"
                )

        assert all(not isinstance(o, Exception) for o in outcomes.values())
        db.session.expire_all()
        assert db.session.get(Product, product.id).quantity == 0
        assert db.session.query(Order).count() == 2


class TestSameCart:
    def test_double_submit_creates_one_order(self, file_app, customer, address):
        product = Product(name="Onigiri", sku="MM-ONI-001", price=1990, quantity=5)
        db.session.add(product)
        db.session.commit()

        buyer = User("double-click")
        CartStore(db.session).add_item(buyer, product.id, 1)
        db.session.commit()

        outcomes = _race(db.engine, [buyer, buyer], customer, address)

        winners = [o for o in outcomes.values() if not isinstance(o, Exception)]
        losers = [o for o in outcomes.values() if isinstance(o, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], (CartEmptyError, StorageError))

        db.session.expire_all()
        assert db.session.query(Order).count() == 1
        assert db.session.get(Product, product.id).quantity == 4
        assert db.session.query(InventoryLog).count() == 1
        assert CartStore(db.session).get_cart(buyer) is None
