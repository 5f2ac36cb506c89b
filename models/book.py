"""
Catalogue entry. Stock is the authoritative inventory count and is only
ever moved by the order pipeline or an admin edit; the CHECK constraint
keeps it from going negative even if two writers race.
"""
from sqlalchemy import Column, String, Integer, ForeignKey, Table, Date, Numeric, Text, CheckConstraint, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


def _link_table(name: str, other: str, other_table: str) -> Table:
    """Many-to-many join table between books and another entity; rows go with either side."""
    return Table(
        name,
        Base.metadata,
        Column("book_id", String(36), ForeignKey("books.id", ondelete="CASCADE"), primary_key=True),
        Column(other, String(36), ForeignKey(f"{other_table}.id", ondelete="CASCADE"), primary_key=True),
    )


book_authors = _link_table("book_authors", "author_id", "authors")
book_categories = _link_table("book_categories", "category_id", "categories")


class Book(BaseModel, Base):
    __tablename__ = "books"

    isbn = Column(String(20), nullable=True, unique=True, index=True)  # digits only
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    pub_date = Column(Date, nullable=True)

    price = Column(Numeric(10, 2), nullable=False)
    stock_qty = Column(Integer, nullable=False, default=0)

    publisher_id = Column(String(36), ForeignKey("publishers.id", ondelete="RESTRICT"), nullable=True)

    publisher = relationship("Publisher", back_populates="books")
    authors = relationship("Author", secondary=book_authors, back_populates="books", order_by="Author.name")
    categories = relationship(
        "Category", secondary=book_categories, back_populates="books", order_by="Category.name"
    )
    reviews = relationship("Review", back_populates="book", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("stock_qty >= 0", name="ck_books_stock_nonnegative"),
        CheckConstraint("price >= 0", name="ck_books_price_nonnegative"),
        Index("ix_books_title", "title"),
        Index("ix_books_stock_qty", "stock_qty"),
    )
