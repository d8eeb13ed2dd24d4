# tripsplit/services/errors.py
# Таксономия ошибок бизнес-операций. Сервисы бросают их, граница операции
# (services/results.py) превращает в OperationResult, роутеры - в HTTP-конверт.

from __future__ import annotations


class TripsplitError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticated(TripsplitError):
    code = "not_authenticated"
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class NotAuthorized(TripsplitError):
    code = "not_authorized"
    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotFound(TripsplitError):
    code = "not_found"
    status_code = 404


class InvalidState(TripsplitError):
    code = "invalid_state"
    status_code = 409


class ValidationError(TripsplitError):
    code = "validation_error"
    status_code = 422


class StorageFailure(TripsplitError):
    code = "storage_failure"
    status_code = 500


class ConsistencyWarning(TripsplitError):
    """Многошаговая запись могла примениться частично (откат не удался)."""
    code = "consistency_warning"
    status_code = 500
