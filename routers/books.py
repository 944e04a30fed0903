from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import auth, schemas
from database import get_db
from pagination import PageParams, page_params
from services import catalog

router = APIRouter(prefix="/books", tags=["Books"])


@router.get("", response_model=schemas.BookPage)
def list_books(
    search: str | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    return catalog.list_books(db, params, search)


@router.get("/{book_id}", response_model=schemas.BookOut)
def get_book(
    book_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    _user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    return catalog.get_book(db, book_id)


@router.post("", response_model=schemas.BookOut)
def add_book(
    book: schemas.BookCreate,
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    return catalog.create_book(db, book)


@router.put("/{book_id}", response_model=schemas.BookOut)
def update_book(
    book_id: schemas.ResourceId,
    book: schemas.BookUpdate,
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    return catalog.update_book(db, book_id, book)


@router.delete("/{book_id}", response_model=schemas.MessageResponse)
def delete_book(
    book_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    catalog.delete_book(db, book_id)
    return {"message": "Book deleted"}


@router.get("/{book_id}/borrows", response_model=list[schemas.BorrowWithUser])
def list_book_borrows(
    book_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    _user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    return catalog.list_borrows_for_book(db, book_id)
