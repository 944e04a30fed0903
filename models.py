import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    user = "user"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(150), unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    role = Column(
        Enum(Role, name="user_role", native_enum=False, values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=Role.user,
    )

    borrows = relationship("Borrow", back_populates="user", cascade="all, delete")


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    description = Column(String, nullable=False)
    stock = Column(Integer, nullable=False, default=0)

    # The database refuses to drop a book that still has borrow rows; returned
    # history is cleared explicitly by the catalog before the book goes.
    borrows = relationship("Borrow", back_populates="book", passive_deletes="all")


class Borrow(Base):
    __tablename__ = "borrows"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="RESTRICT"), nullable=False, index=True)
    borrow_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    return_date = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="borrows")
    book = relationship("Book", back_populates="borrows")

    @property
    def is_active(self) -> bool:
        return self.return_date is None


# At most one active borrow per book, and per (user, book). The storage layer
# enforces these so concurrent requests cannot both win the availability check.
Index(
    "uq_borrows_active_book",
    Borrow.book_id,
    unique=True,
    sqlite_where=Borrow.return_date.is_(None),
    postgresql_where=Borrow.return_date.is_(None),
)
Index(
    "uq_borrows_active_user_book",
    Borrow.user_id,
    Borrow.book_id,
    unique=True,
    sqlite_where=Borrow.return_date.is_(None),
    postgresql_where=Borrow.return_date.is_(None),
)
