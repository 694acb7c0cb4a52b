import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.errors import EngineError, TransactionFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Ошибки хранилища, после которых действие можно безопасно повторить целиком.
RETRYABLE_ERRORS = (IntegrityError, OperationalError, StaleDataError)


async def run_action(
    db: AsyncSession,
    action: Callable[..., Awaitable[T]],
    *args: Any,
    retries: int | None = None,
    **kwargs: Any,
) -> T:
    """Выполняет действие движка как одну транзакцию; при конфликте записи повторяет его с нуля."""
    attempts = (settings.transaction_retries if retries is None else retries) + 1
    for attempt in range(1, attempts + 1):
        try:
            return await action(db, *args, **kwargs)
        except RETRYABLE_ERRORS as exc:
            await db.rollback()
            logger.warning("%s failed on attempt %s/%s: %s", action.__name__, attempt, attempts, exc)
            if attempt == attempts:
                raise TransactionFailure("Concurrent update detected, please retry") from exc
        except EngineError:
            await db.rollback()
            raise
    raise TransactionFailure("Action was not executed")
