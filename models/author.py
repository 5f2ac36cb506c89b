from sqlalchemy.orm import relationship
from sqlalchemy import Column, String, Text

from models.base_model import BaseModel, Base
from models.book import book_authors


class Author(BaseModel, Base):
    __tablename__ = "authors"

    name = Column(String(200), nullable=False)  # not unique; two authors may share a name
    bio = Column(Text, nullable=True)

    books = relationship("Book", secondary=book_authors, back_populates="authors")
