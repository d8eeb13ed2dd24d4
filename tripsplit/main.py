# tripsplit/main.py
# Главная точка входа FastAPI для Tripsplit: общие расходы поездки, кошельки,
# котёл и погашения. Ошибки отдаются единым конвертом {success, data, error, code}.

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from tripsplit.config import CORS_ORIGINS, LOG_LEVEL
from tripsplit.db import engine  # noqa: F401  инициализация БД/пула соединений
from tripsplit.services.errors import TripsplitError, ValidationError
from tripsplit.utils.responses import error_envelope

from tripsplit.routers.auth import router as auth_router
from tripsplit.routers.wallet import router as wallet_router
from tripsplit.routers.expenses import router as expenses_router
from tripsplit.routers.pot import router as pot_router
from tripsplit.routers.settlements import router as settlements_router
from tripsplit.routers.balances import router as balances_router
from tripsplit.routers.history import router as history_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

app = FastAPI(
    title="Tripsplit Backend",
    description="Backend для Tripsplit: вход по PIN, расходы поездки, кошельки, котёл и погашения.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Ошибки -> конверт ---
@app.exception_handler(TripsplitError)
async def _tripsplit_error(request: Request, exc: TripsplitError):
    # сюда попадают ошибки из зависимостей (например, get_current_user)
    return error_envelope(exc)


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return error_envelope(ValidationError(message))


# --- Подключение роутеров ---
app.include_router(auth_router,        prefix="/api/auth",        tags=["Авторизация"])
app.include_router(wallet_router,      prefix="/api/wallet",      tags=["Кошелёк"])
app.include_router(expenses_router,    prefix="/api/expenses",    tags=["Расходы"])
app.include_router(pot_router,         prefix="/api/pot",         tags=["Котёл"])
app.include_router(settlements_router, prefix="/api/settlements", tags=["Погашения"])
app.include_router(balances_router,    prefix="/api",             tags=["Балансы"])
app.include_router(history_router,     prefix="/api",             tags=["История"])


@app.get("/")
def root():
    """Простой healthcheck."""
    return {"message": "Tripsplit backend работает!", "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tripsplit.main:app", host="0.0.0.0", port=8000, reload=False)
