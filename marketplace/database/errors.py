import functools
import logging

from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    OperationFailure,
    ServerSelectionTimeoutError,
    WTimeoutError,
)

from marketplace.core.errors import PermissionDenied, StoreUnavailable

logger = logging.getLogger(__name__)

_TRANSIENT = (
    AutoReconnect,
    ConnectionFailure,
    ExecutionTimeout,
    NetworkTimeout,
    ServerSelectionTimeoutError,
    WTimeoutError,
)

# Mongo server codes for auth failures
UNAUTHORIZED_CODES = {13, 18}


def translate_store_errors(func):
    """Map driver exceptions raised inside a repository coroutine onto the core taxonomy."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except _TRANSIENT as exc:
            logger.warning("Store unavailable in %s: %s", func.__qualname__, exc)
            raise StoreUnavailable(str(exc)) from exc
        except OperationFailure as exc:
            if exc.code in UNAUTHORIZED_CODES:
                raise PermissionDenied(str(exc)) from exc
            raise

    return wrapper
