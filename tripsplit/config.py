# tripsplit/config.py
# Настройки приложения из окружения (.env подхватывается через python-dotenv).

from __future__ import annotations

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tripsplit.db")

# Подпись сессионной куки (HMAC-SHA256). В проде обязательно задать своё значение.
SECRET_KEY = os.getenv("SECRET_KEY", "tripsplit-dev-secret")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "tripsplit_session")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 30)))  # 30 дней

# Валюта учёта и «витринная» валюта (только для отображения, без неттинга)
BASE_CURRENCY = os.getenv("BASE_CURRENCY", "THB")
ALT_CURRENCY = os.getenv("ALT_CURRENCY", "INR")
EXCHANGE_RATE = Decimal(os.getenv("EXCHANGE_RATE", "2.4"))  # 1 THB ≈ 2.4 INR

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
