# tripsplit/services/results.py
# -----------------------------------------------------------------------------
# ГРАНИЦА ОПЕРАЦИИ: одна бизнес-операция = одна транзакция БД
# -----------------------------------------------------------------------------
# run_operation(db, fn, ...):
#   • вызывает fn(db, ...), при успехе делает commit;
#   • при любой ошибке - rollback, ничего не бросает наружу;
#   • возвращает OperationResult {success, data} | {success: false, error, code}.
# Ретраев нет. Если откат сам упал - отдаём ConsistencyWarning: запись могла
# примениться частично, это нужно видеть отдельно от обычного сбоя хранилища.
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripsplit.services.errors import (
    TripsplitError,
    StorageFailure,
    ConsistencyWarning,
)

log = logging.getLogger(__name__)


class OperationResult(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, err: TripsplitError) -> "OperationResult":
        return cls(success=False, error=err.message, code=err.code)


def _safe_rollback(db: Session, op_name: str) -> Optional[ConsistencyWarning]:
    try:
        db.rollback()
        return None
    except SQLAlchemyError:
        log.exception("%s: rollback failed, state may be partially applied", op_name)
        return ConsistencyWarning(
            f"{op_name} failed midway and could not be rolled back; ledger may be inconsistent"
        )


def run_operation(
    db: Session,
    fn: Callable[..., Any],
    *args,
    serialize: Optional[Callable[[Any], Any]] = None,
    **kwargs,
) -> OperationResult:
    """
    Выполняет fn(db, *args, **kwargs) атомарно и упаковывает результат.
    serialize вызывается после commit, пока сессия открыта (ORM -> схемы).
    """
    op_name = getattr(fn, "__name__", "operation")
    try:
        data = fn(db, *args, **kwargs)
        db.commit()
    except TripsplitError as e:
        warning = _safe_rollback(db, op_name)
        if warning is not None:
            return OperationResult.fail(warning)
        log.info("%s rejected: %s (%s)", op_name, e.message, e.code)
        return OperationResult.fail(e)
    except SQLAlchemyError:
        log.exception("%s: storage failure", op_name)
        warning = _safe_rollback(db, op_name)
        if warning is not None:
            return OperationResult.fail(warning)
        return OperationResult.fail(StorageFailure(f"Failed to {op_name.replace('_', ' ')}"))

    if serialize is not None:
        data = serialize(data)
    return OperationResult.ok(data)


def run_query(
    db: Session,
    fn: Callable[..., Any],
    *args,
    serialize: Optional[Callable[[Any], Any]] = None,
    **kwargs,
) -> OperationResult:
    """Как run_operation, но только чтение: без commit."""
    op_name = getattr(fn, "__name__", "query")
    try:
        data = fn(db, *args, **kwargs)
        if serialize is not None:
            data = serialize(data)
        return OperationResult.ok(data)
    except TripsplitError as e:
        log.info("%s rejected: %s (%s)", op_name, e.message, e.code)
        return OperationResult.fail(e)
    except SQLAlchemyError:
        log.exception("%s: storage failure", op_name)
        _safe_rollback(db, op_name)
        return OperationResult.fail(StorageFailure(f"Failed to {op_name.replace('_', ' ')}"))
