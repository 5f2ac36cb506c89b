from models.base_model import Base
from models.user import User, UserRole
from models.publisher import Publisher
from models.author import Author
from models.category import Category
from models.book import Book, book_authors, book_categories
from models.order import Order, OrderItem, OrderStatus
from models.review import Review
from models.db_storage import DBStorage

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Publisher",
    "Author",
    "Category",
    "Book",
    "book_authors",
    "book_categories",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Review",
    "DBStorage",
]
