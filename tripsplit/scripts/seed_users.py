"""
Идемпотентный сидинг участников поездки. Запуск:
  $ python -m tripsplit.scripts.seed_users [users.json]

Формат JSON: [{"name": "Alice", "pin": "1234"}, ...]
Без файла - берём TRIPSPLIT_USERS="Alice:1234,Bob:5678,admin:0000".
Участник с именем admin получает роль admin. PIN существующего участника
обновляется, новые участники создаются.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from typing import Dict, List

from dotenv import load_dotenv
from sqlalchemy import select
from sqlalchemy.orm import Session

from tripsplit.db import SessionLocal
from tripsplit.models.user import User, UserRole
from tripsplit.utils.auth import hash_pin

load_dotenv()
log = logging.getLogger(__name__)


def parse_env_users(raw: str) -> List[Dict[str, str]]:
    out = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk or ":" not in chunk:
            continue
        name, pin = chunk.split(":", 1)
        out.append({"name": name.strip(), "pin": pin.strip()})
    return out


def load_users(path: str = None) -> List[Dict[str, str]]:
    if path:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    return parse_env_users(os.getenv("TRIPSPLIT_USERS", ""))


def seed_users(db: Session, users: List[Dict[str, str]]) -> Dict[str, int]:
    created = updated = 0
    for item in users:
        name = (item.get("name") or "").strip()
        pin = str(item.get("pin") or "").strip()
        if not name or len(pin) != 4 or not pin.isdigit():
            log.warning("skip user %r: name and 4-digit pin are required", name)
            continue
        role = UserRole.admin if name.lower() == "admin" else UserRole.member

        user = db.scalar(select(User).where(User.name == name))
        if user is None:
            db.add(User(name=name, pin_hash=hash_pin(pin), role=role))
            created += 1
        else:
            user.pin_hash = hash_pin(pin)
            user.role = role
            updated += 1
    db.commit()
    return {"created": created, "updated": updated}


def main(argv: List[str]) -> None:
    logging.basicConfig(level=logging.INFO)
    users = load_users(argv[1] if len(argv) > 1 else None)
    if not users:
        raise SystemExit("No users: pass a JSON file or set TRIPSPLIT_USERS")
    db = SessionLocal()
    try:
        stats = seed_users(db, users)
    finally:
        db.close()
    log.info("✅ users seeded: created=%s updated=%s", stats["created"], stats["updated"])


if __name__ == "__main__":
    main(sys.argv)
