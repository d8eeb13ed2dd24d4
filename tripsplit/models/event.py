# tripsplit/models/event.py
from sqlalchemy import Column, Integer, String, DateTime, JSON, func
from sqlalchemy.dialects.postgresql import JSONB

from tripsplit.db import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)

    # кто совершил действие
    actor_id = Column(Integer, nullable=False, index=True)

    # над кем действие (вторая сторона погашения, владелец котла…) - может быть NULL
    target_user_id = Column(Integer, nullable=True, index=True)

    # связь с расходом/погашением, если событие о них
    expense_id = Column(Integer, nullable=True)
    settlement_id = Column(Integer, nullable=True)

    # тип события
    type = Column(String(64), nullable=False)

    # произвольные данные события (JSONB в PostgreSQL, JSON в остальных БД)
    data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return f"<Event id={self.id} type={self.type} actor={self.actor_id}>"
