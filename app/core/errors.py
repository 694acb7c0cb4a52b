"""Ошибки движка турнира и их HTTP-статусы."""


class EngineError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EngineError):
    # Некорректный или вне диапазона ввод, состояние не меняется.
    status_code = 400


class NotFoundError(EngineError):
    status_code = 404


class ConflictError(EngineError):
    # Действие противоречит текущему состоянию турнира.
    status_code = 409


class TransactionFailure(EngineError):
    status_code = 503
