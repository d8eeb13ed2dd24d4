# tripsplit/schemas/event.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class EventOut(BaseModel):
    id: int
    type: str
    actor_id: int
    target_user_id: Optional[int] = None
    expense_id: Optional[int] = None
    settlement_id: Optional[int] = None
    data: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
