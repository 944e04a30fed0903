import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import auth, models
from config import Settings
from errors import Conflict, InvalidInput, NotFound, Unauthenticated

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DELETE_ALL_CONFIRMATION = "yes"


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _username_taken(db: Session, username: str, exclude_id: int | None = None) -> bool:
    query = db.query(models.User.id).filter(models.User.username == username)
    if exclude_id is not None:
        query = query.filter(models.User.id != exclude_id)
    return query.first() is not None


def _commit_unique_username(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Username already taken") from exc


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def list_users(db: Session) -> list[models.User]:
    return db.query(models.User).order_by(models.User.id).all()


def register(db: Session, username: str, password: str, role: models.Role | None = None) -> models.User:
    if _username_taken(db, username):
        logger.warning("Registration rejected, username %r taken", username)
        raise Conflict("Username already taken")
    _check_password(password)

    user = models.User(
        username=username,
        password=auth.hash_password(password),
        role=role or models.Role.user,
    )
    db.add(user)
    _commit_unique_username(db)
    db.refresh(user)

    logger.info("Registered user id=%s role=%s", user.id, user.role.value)
    return user


def login(db: Session, username: str, password: str, settings: Settings) -> str:
    user = db.query(models.User).filter(models.User.username == username).first()
    if not user:
        raise NotFound("User not found")
    if not auth.verify_password(password, user.password):
        logger.warning("Failed login for user id=%s", user.id)
        raise Unauthenticated("Invalid password")

    return auth.create_access_token(user.id, user.role, settings)


def update_user(db: Session, user_id: int, username: str | None = None, password: str | None = None) -> models.User:
    user = get_user(db, user_id)

    if username:
        if _username_taken(db, username, exclude_id=user.id):
            raise Conflict("Username already taken")
        user.username = username
    if password:
        _check_password(password)
        user.password = auth.hash_password(password)

    _commit_unique_username(db)
    db.refresh(user)
    logger.info("Updated user id=%s", user.id)
    return user


def delete_user(db: Session, user_id: int) -> None:
    """Refused while the user still holds a book; returned history is removed."""
    user = get_user(db, user_id)

    has_active = (
        db.query(models.Borrow.id)
        .filter(models.Borrow.user_id == user.id, models.Borrow.return_date.is_(None))
        .first()
    )
    if has_active:
        raise Conflict("Cannot delete user with an active borrow. Return the book first.")

    db.delete(user)
    db.commit()
    logger.info("Deleted user id=%s", user_id)


def delete_all_regular_users(db: Session, confirm: str | None) -> int:
    """Remove every account with the ``user`` role, admins are kept.

    Unlike :func:`delete_user`, an active borrow does not block the removal:
    this is the confirmed administrative reset, so all of their borrow records
    go with them, active ones included, and every book they held is available
    again afterwards.
    """
    if confirm != DELETE_ALL_CONFIRMATION:
        raise InvalidInput('Confirmation failed. Send {"confirm": "yes"} to delete all users.')

    users = db.query(models.User).filter(models.User.role == models.Role.user).all()
    for user in users:
        db.delete(user)
    db.commit()

    logger.info("Deleted %d regular users", len(users))
    return len(users)
