from datetime import datetime
from typing import Annotated, Literal

from fastapi import Path
from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from models import Role

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=150)]
Password = Annotated[str, Field(min_length=6, max_length=128)]

# Largest value a 64-bit integer primary key can hold.
MAX_ID = 2**63 - 1
ResourceId = Annotated[int, Path(le=MAX_ID)]


class CamelModel(BaseModel):
    """JSON uses camelCase keys; Python code uses the snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Users
class UserCreate(CamelModel):
    username: Username
    password: Password
    role: Role | None = None


class UserLogin(CamelModel):
    username: Username
    password: str


class UserUpdate(CamelModel):
    username: Username | None = None
    password: Password | None = None


class TokenResponse(CamelModel):
    token: str


class UserPublic(CamelModel):
    id: int
    username: str
    role: Role


class DeleteAllUsersRequest(CamelModel):
    confirm: str | None = None


class DeleteAllUsersResult(CamelModel):
    message: str
    count: int


class MessageResponse(CamelModel):
    message: str


# Books
class BookBase(CamelModel):
    title: NonBlank = Field(max_length=255)
    author: NonBlank = Field(max_length=255)
    description: NonBlank
    stock: int = Field(ge=0, strict=True)


class BookCreate(BookBase):
    pass


class BookUpdate(BookBase):
    pass


class BookOut(CamelModel):
    id: int
    title: str
    author: str
    description: str
    stock: int


# Borrows
class BorrowCreate(CamelModel):
    book_id: int = Field(gt=0, le=MAX_ID)


class BorrowOut(CamelModel):
    id: int
    user_id: int
    book_id: int
    borrow_date: datetime
    return_date: datetime | None


class BorrowWithBook(BorrowOut):
    book: BookOut | None


class BorrowWithUser(BorrowOut):
    user: UserPublic | None


class BorrowDetail(BorrowOut):
    book: BookOut | None
    user: UserPublic | None


class BookStatus(CamelModel):
    status: Literal["borrowed", "available"]


class BookBorrowCount(CamelModel):
    book_id: int
    total_borrowed: int


# Pagination
class PageMeta(CamelModel):
    current_page: int
    total_pages: int
    total_count: int


class BookPage(PageMeta):
    items: list[BookOut]


class BorrowWithBookPage(PageMeta):
    items: list[BorrowWithBook]


class BorrowWithUserPage(PageMeta):
    items: list[BorrowWithUser]


class BorrowDetailPage(PageMeta):
    items: list[BorrowDetail]
