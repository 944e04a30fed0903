from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import auth, schemas
from config import Settings, get_settings
from database import get_db
from errors import Forbidden
from services import users as user_service

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=schemas.UserPublic)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    return user_service.register(db, user.username, user.password, user.role)


@router.post("/login", response_model=schemas.TokenResponse)
def login(
    user: schemas.UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    token = user_service.login(db, user.username, user.password, settings)
    return {"token": token}


@router.get("/users", response_model=list[schemas.UserPublic])
def list_users(
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    return user_service.list_users(db)


@router.get("/users/{user_id}", response_model=schemas.UserPublic)
def get_user(
    user_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    current: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    auth.ensure_self_or_admin(current, user_id)
    return user_service.get_user(db, user_id)


@router.patch("/users/{user_id}", response_model=schemas.UserPublic)
def update_user(
    user_id: schemas.ResourceId,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    # Admins get no override here: only the account owner may edit it.
    if current.id != user_id:
        raise Forbidden("Cannot update other user")
    return user_service.update_user(db, user_id, payload.username, payload.password)


@router.delete("/users/{user_id}", response_model=schemas.MessageResponse)
def delete_user(
    user_id: schemas.ResourceId,
    db: Session = Depends(get_db),
    current: auth.AuthenticatedUser = Depends(auth.get_current_user),
):
    auth.ensure_self_or_admin(current, user_id, "Cannot delete other user")
    user_service.delete_user(db, user_id)
    return {"message": "User deleted successfully"}


@router.delete("/delete-all-users", response_model=schemas.DeleteAllUsersResult)
def delete_all_users(
    payload: schemas.DeleteAllUsersRequest | None = None,
    db: Session = Depends(get_db),
    _admin: auth.AuthenticatedUser = Depends(auth.require_admin),
):
    count = user_service.delete_all_regular_users(db, payload.confirm if payload else None)
    return {"message": f"Deleted {count} users.", "count": count}
