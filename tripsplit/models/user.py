# tripsplit/models/user.py

from __future__ import annotations

import enum

from sqlalchemy import Column, Integer, String, Enum, DateTime, func, text

from tripsplit.db import Base


class UserRole(enum.Enum):
    member = "member"
    admin = "admin"


class User(Base):
    """
    Участник поездки. Фиксированный маленький состав, создаётся сидингом.
    Админ (управляет общим «котлом») - явная роль, а не соглашение по имени.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, index=True)  # Отображаемое имя
    pin_hash = Column(String(64), nullable=False, comment="SHA-256 от 4-значного PIN")
    role = Column(
        Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.member,
        server_default=text("'member'"),
        comment="Роль: member|admin",
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name}, role={self.role.value if self.role else None})>"
