"""Borrow ledger.

A borrow record moves one way only: active (no return date) -> returned ->
deleted. Return and delete answer "not found" both for missing records and
for records owned by someone else, so callers cannot discover which ids exist.
"""
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

import models
from errors import Conflict, NotFound
from pagination import Page, PageParams, paginate
from services.catalog import lock_book

logger = logging.getLogger(__name__)

BORROWED = "borrowed"
AVAILABLE = "available"


def _active_for_book(db: Session, book_id: int) -> models.Borrow | None:
    return (
        db.query(models.Borrow)
        .filter(models.Borrow.book_id == book_id, models.Borrow.return_date.is_(None))
        .first()
    )


def _active_for_user_and_book(db: Session, user_id: int, book_id: int) -> models.Borrow | None:
    return (
        db.query(models.Borrow)
        .filter(
            models.Borrow.user_id == user_id,
            models.Borrow.book_id == book_id,
            models.Borrow.return_date.is_(None),
        )
        .first()
    )


def _owned_borrow(db: Session, borrow_id: int, requester_id: int) -> models.Borrow:
    borrow = db.get(models.Borrow, borrow_id)
    if not borrow or borrow.user_id != requester_id:
        raise NotFound("Borrow record not found or not yours")
    return borrow


def create_borrow(db: Session, user_id: int, book_id: int) -> models.Borrow:
    if not db.get(models.User, user_id):
        raise NotFound("User not found")
    if not lock_book(db, book_id):
        raise NotFound("Book not found")

    if _active_for_book(db, book_id):
        db.rollback()
        raise Conflict("Book is currently borrowed")
    # Implied by the check above while a book has a single copy.
    if _active_for_user_and_book(db, user_id, book_id):
        db.rollback()
        raise Conflict("You have already borrowed this book")

    borrow = models.Borrow(user_id=user_id, book_id=book_id, borrow_date=models.utcnow())
    db.add(borrow)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Concurrent borrow of book id=%s lost the race", book_id)
        raise Conflict("Book is currently borrowed") from exc
    db.refresh(borrow)

    logger.info("User id=%s borrowed book id=%s (borrow id=%s)", user_id, book_id, borrow.id)
    return borrow


def return_borrow(db: Session, borrow_id: int, requester_id: int) -> models.Borrow:
    borrow = _owned_borrow(db, borrow_id, requester_id)
    if not borrow.is_active:
        raise Conflict("Book already returned")

    borrow.return_date = models.utcnow()
    db.commit()
    db.refresh(borrow)

    logger.info("Borrow id=%s returned", borrow.id)
    return borrow


def delete_borrow(db: Session, borrow_id: int, requester_id: int) -> None:
    borrow = _owned_borrow(db, borrow_id, requester_id)
    if borrow.is_active:
        raise Conflict("Cannot delete active borrow record. Return the book first.")

    db.delete(borrow)
    db.commit()
    logger.info("Borrow id=%s deleted", borrow_id)


def list_for_user(db: Session, user_id: int, params: PageParams) -> Page:
    query = (
        db.query(models.Borrow)
        .options(selectinload(models.Borrow.book))
        .filter(models.Borrow.user_id == user_id)
        .order_by(models.Borrow.id)
    )
    return paginate(query, params)


def list_all(db: Session, params: PageParams, search: str | None = None) -> Page:
    query = db.query(models.Borrow).options(
        selectinload(models.Borrow.book),
        selectinload(models.Borrow.user),
    )
    if search:
        query = (
            query.join(models.Borrow.book)
            .join(models.Borrow.user)
            .filter(
                or_(
                    models.Book.title.icontains(search, autoescape=True),
                    models.User.username.icontains(search, autoescape=True),
                )
            )
        )
    return paginate(query.order_by(models.Borrow.id), params)


def status_of(db: Session, book_id: int) -> str:
    return BORROWED if _active_for_book(db, book_id) else AVAILABLE


def count_for(db: Session, book_id: int) -> int:
    return db.query(models.Borrow).filter(models.Borrow.book_id == book_id).count()


def history_of(db: Session, book_id: int, params: PageParams) -> Page:
    query = (
        db.query(models.Borrow)
        .options(selectinload(models.Borrow.user))
        .filter(models.Borrow.book_id == book_id)
        .order_by(models.Borrow.id)
    )
    return paginate(query, params)
