from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import auth, schemas
from database import get_db
from pagination import PageParams, page_params
from services import borrows as ledger

router = APIRouter(prefix="/borrows", tags=["Borrows"])


@router.post("", response_model=schemas.BorrowOut)
def borrow_book(
    payload: schemas.BorrowCreate,
    db: Session = Depends(get_db),
    user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    return ledger.create_borrow(db, user.id, payload.book_id)


@router.get("", response_model=schemas.BorrowWithBookPage)
def my_borrows(
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    return ledger.list_for_user(db, user.id, params)


@router.patch("/{borrow_id}", response_model=schemas.BorrowOut)
def return_book(
    borrow_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    return ledger.return_borrow(db, borrow_id, user.id)


@router.delete("/{borrow_id}", response_model=schemas.MessageResponse)
def delete_borrow(
    borrow_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    ledger.delete_borrow(db, borrow_id, user.id)
    return {"message": "Borrow record deleted successfully"}


@router.get("/admin/all", response_model=schemas.BorrowDetailPage)
def all_borrows(
    search: str | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    return ledger.list_all(db, params, search)


@router.get("/admin/user/{user_id}", response_model=schemas.BorrowWithBookPage)
def user_borrows(
    user_id: schemas.ResourceId,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    return ledger.list_for_user(db, user_id, params)


@router.get("/book/{book_id}/status", response_model=schemas.BookStatus)
def book_status(
    book_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    _user: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    return {"status": ledger.status_of(db, book_id)}


@router.get("/book/{book_id}/count", response_model=schemas.BookBorrowCount)
def book_borrow_count(
    book_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    return {"book_id": book_id, "total_borrowed": ledger.count_for(db, book_id)}


@router.get("/book/{book_id}/history", response_model=schemas.BorrowWithUserPage)
def book_history(
    book_id: schemas.ResourceId,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    return ledger.history_of(db, book_id, params)
