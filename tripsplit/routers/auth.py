# tripsplit/routers/auth.py
"""
Роутер входа по PIN.
Успешный вход ставит подписанную сессионную куку; выход её стирает.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from tripsplit.config import SESSION_COOKIE_NAME, SESSION_MAX_AGE
from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.schemas.user import LoginIn, UserBriefOut, UserOut
from tripsplit.services.results import OperationResult, run_query
from tripsplit.utils.auth import authenticate, get_current_user, sign_session
from tripsplit.utils.responses import dump, envelope

log = logging.getLogger(__name__)

router = APIRouter()


def _list_users(db: Session):
    return list(db.scalars(select(User).order_by(User.name.asc(), User.id.asc())).all())


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    result = run_query(db, authenticate, payload.user_id, payload.pin, serialize=dump(UserOut.from_user))
    response = envelope(result)
    if result.success:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            sign_session(payload.user_id),
            max_age=SESSION_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
        log.info("login user=%s", payload.user_id)
    return response


@router.post("/logout")
def logout():
    response = envelope(OperationResult.ok())
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return envelope(OperationResult.ok(UserOut.from_user(user).model_dump(mode="json")))


@router.get("/users")
def users(db: Session = Depends(get_db)):
    """Список для экрана входа (без авторизации)."""
    return envelope(run_query(db, _list_users, serialize=dump(UserBriefOut.model_validate)))
