"""Pytest fixtures for the bookstore API tests."""

from contextlib import contextmanager
from decimal import Decimal

import pytest

from bookstore import create_app, dispose_app
from models import Author, Book, Category, Order, OrderStatus, Publisher, User, UserRole
from utils.security import create_access_token, hash_password


class Seeder:
    """Writes fixtures straight through DBStorage, one app context per call.

    Returned objects are detached but keep their loaded column values.
    """

    def __init__(self, app):
        self.app = app

    @contextmanager
    def storage(self):
        with self.app.app_context():
            yield self.app.extensions["storage"]

    def add(self, obj):
        with self.storage() as storage:
            storage.new(obj)
            storage.save()
        return obj

    def user(self, email="customer@example.com", role=UserRole.CUSTOMER, name="Test Customer", password="secret123"):
        return self.add(User(name=name, email=email, password_hash=hash_password(password), role=role))

    def category(self, name="Fiction", description=None):
        return self.add(Category(name=name, description=description))

    def author(self, name="Jane Writer"):
        return self.add(Author(name=name))

    def publisher(self, name="Tor Books"):
        return self.add(Publisher(name=name))

    def book(self, title="A Book", price="10.00", stock_qty=10, categories=(), authors=(), **kwargs):
        with self.storage() as storage:
            session = storage.get_session()
            b = Book(title=title, price=Decimal(price), stock_qty=stock_qty, **kwargs)
            b.categories = [session.get(Category, c.id) for c in categories]
            b.authors = [session.get(Author, a.id) for a in authors]
            storage.new(b)
            storage.save()
        return b

    def get(self, cls, id):
        with self.storage() as storage:
            return storage.get(cls, id)

    def count(self, cls):
        with self.storage() as storage:
            return storage.count(cls)

    def stock(self, book_id):
        return self.get(Book, book_id).stock_qty

    def set_status(self, order_id, status: OrderStatus):
        with self.storage() as storage:
            order = storage.get(Order, order_id)
            order.status = status
            storage.save()

    def headers(self, user):
        with self.app.app_context():
            return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def app(tmp_path):
    """Application bound to a throwaway SQLite file."""
    app = create_app("testing", overrides={"DATABASE_URL": f"sqlite:///{tmp_path / 'bookstore.db'}"})
    yield app
    dispose_app(app)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return Seeder(app)


@pytest.fixture
def admin(db):
    return db.user(email="admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def customer(db):
    return db.user()


@pytest.fixture
def admin_headers(db, admin):
    return db.headers(admin)


@pytest.fixture
def customer_headers(db, customer):
    return db.headers(customer)
