import functools
import logging

logger = logging.getLogger(__name__)


def log_async_call(fn):
    """Log each call of a coroutine function with its arguments at debug level."""
    @functools.wraps(fn)
    async def __wrapped(*args, **kwargs):
        logger.debug(f"Calling {fn.__name__} {args} {kwargs}")
        return await fn(*args, **kwargs)
    return __wrapped
