# tripsplit/utils/responses.py
# OperationResult -> JSON-конверт {success, data, error, code} с HTTP-статусом по коду ошибки.

from __future__ import annotations

from typing import Any, Callable

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status

from tripsplit.services.errors import TripsplitError
from tripsplit.services.results import OperationResult

STATUS_BY_CODE = {
    "not_authenticated": status.HTTP_401_UNAUTHORIZED,
    "not_authorized": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_state": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "storage_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "consistency_warning": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def envelope(result: OperationResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    if result.success:
        code = success_status
    else:
        code = STATUS_BY_CODE.get(result.code or "", status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content=jsonable_encoder(result.model_dump()))


def error_envelope(err: TripsplitError) -> JSONResponse:
    return envelope(OperationResult.fail(err))


def dump(schema_factory: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """serialize-колбэк для run_operation: ORM -> pydantic -> JSON-совместимый dict."""
    def _serialize(value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, list):
            return [schema_factory(v).model_dump(mode="json") for v in value]
        return schema_factory(value).model_dump(mode="json")
    return _serialize


def dump_as(model) -> Callable[[Any], Any]:
    """То же для словарей из сервисов: model(**value)."""
    return dump(lambda v: model(**v) if isinstance(v, dict) else model.model_validate(v))
