import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

import models, schemas
from errors import Conflict, NotFound
from pagination import Page, PageParams, paginate

logger = logging.getLogger(__name__)


def lock_book(db: Session, book_id: int) -> models.Book | None:
    # FOR UPDATE serialises the borrow-create / delete decisions for one book.
    return db.query(models.Book).filter(models.Book.id == book_id).with_for_update().first()


def list_books(db: Session, params: PageParams, search: str | None = None) -> Page:
    query = db.query(models.Book)
    if search:
        query = query.filter(models.Book.title.icontains(search, autoescape=True))
    return paginate(query.order_by(models.Book.id), params)


def get_book(db: Session, book_id: int) -> models.Book:
    book = db.get(models.Book, book_id)
    if not book:
        raise NotFound("Book not found")
    return book


def create_book(db: Session, data: schemas.BookCreate) -> models.Book:
    book = models.Book(
        title=data.title,
        author=data.author,
        description=data.description,
        stock=data.stock,
    )
    db.add(book)
    db.commit()
    db.refresh(book)

    logger.info("Created book id=%s", book.id)
    return book


def update_book(db: Session, book_id: int, data: schemas.BookUpdate) -> models.Book:
    book = get_book(db, book_id)

    book.title = data.title
    book.author = data.author
    book.description = data.description
    book.stock = data.stock

    db.commit()
    db.refresh(book)
    logger.info("Updated book id=%s", book.id)
    return book


def has_active_borrow(db: Session, book_id: int) -> bool:
    active = (
        db.query(models.Borrow.id)
        .filter(models.Borrow.book_id == book_id, models.Borrow.return_date.is_(None))
        .first()
    )
    return active is not None


def delete_book(db: Session, book_id: int) -> None:
    book = lock_book(db, book_id)
    if not book:
        raise NotFound("Book not found")

    if has_active_borrow(db, book_id):
        db.rollback()
        logger.warning("Refused to delete borrowed book id=%s", book_id)
        raise Conflict("Cannot delete book. Book is currently borrowed.")

    # Only returned records are cleared; an active one that slipped in after the
    # check above keeps the foreign key alive and the delete fails.
    db.query(models.Borrow).filter(
        models.Borrow.book_id == book_id,
        models.Borrow.return_date.isnot(None),
    ).delete(synchronize_session=False)
    db.delete(book)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Book id=%s was borrowed while being deleted", book_id)
        raise Conflict("Cannot delete book. Book is currently borrowed.") from exc
    logger.info("Deleted book id=%s", book_id)


def list_borrows_for_book(db: Session, book_id: int) -> list[models.Borrow]:
    return (
        db.query(models.Borrow)
        .options(selectinload(models.Borrow.user))
        .filter(models.Borrow.book_id == book_id)
        .order_by(models.Borrow.id)
        .all()
    )
