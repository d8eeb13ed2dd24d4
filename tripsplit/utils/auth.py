# tripsplit/utils/auth.py
"""
Вход по PIN и сессионная кука.
- hash_pin / check_pin: SHA-256 от 4-значного PIN, сравнение за константное время
- sign_session / read_session: кука вида "<user_id>.<hmac-sha256>" на SECRET_KEY
- get_current_user: FastAPI-зависимость, бросает NotAuthenticated
Роль админа берётся из User.role один раз на запрос.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from tripsplit.config import SECRET_KEY, SESSION_COOKIE_NAME
from tripsplit.db import get_db
from tripsplit.models.user import User
from tripsplit.services.errors import NotAuthenticated


def hash_pin(pin: str) -> str:
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def check_pin(user: User, pin: str) -> bool:
    return hmac.compare_digest(user.pin_hash or "", hash_pin(pin or ""))


def _signature(user_id: int) -> str:
    return hmac.new(SECRET_KEY.encode("utf-8"), str(user_id).encode("utf-8"), hashlib.sha256).hexdigest()


def sign_session(user_id: int) -> str:
    return f"{user_id}.{_signature(user_id)}"


def read_session(token: Optional[str]) -> Optional[int]:
    """user_id из куки или None, если кука битая/поддельная."""
    if not token or "." not in token:
        return None
    raw_id, sig = token.split(".", 1)
    if not raw_id.isdigit():
        return None
    user_id = int(raw_id)
    if not hmac.compare_digest(sig, _signature(user_id)):
        return None
    return user_id


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Зависимость для защищённых ручек: читает и проверяет куку, находит пользователя.
    """
    user_id = read_session(request.cookies.get(SESSION_COOKIE_NAME))
    if user_id is None:
        raise NotAuthenticated()
    user = db.get(User, user_id)
    if user is None:
        raise NotAuthenticated()
    return user


def authenticate(db: Session, user_id: int, pin: str) -> User:
    """Проверка PIN на входе. Неверный id и неверный PIN неразличимы снаружи."""
    user = db.get(User, user_id)
    if user is None or not check_pin(user, pin):
        raise NotAuthenticated("Invalid user or PIN")
    return user
