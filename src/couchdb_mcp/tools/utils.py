"""Shared utilities for CouchDB MCP tools.

- handle_couchdb_errors: converts operational failures into error envelopes
- error_message: the human readable part of any exception
"""

import logging
from collections.abc import Callable
from functools import wraps

from ..exceptions import CouchMCPError, ProtocolError
from .models import ResponseEnvelope

logger = logging.getLogger(__name__)


def error_message(error: Exception) -> str:
    if isinstance(error, CouchMCPError):
        return error.message
    return str(error) or error.__class__.__name__


def handle_couchdb_errors(func: Callable) -> Callable:
    """Decorator turning operational failures of a tool into ResponseEnvelope.failure.

    Protocol faults (bad arguments, unknown tool, unsupported tier) are caller
    errors and are re-raised untouched.

    Example:
        @handle_couchdb_errors
        async def get_document(self, args):
            return self.respond(await self.client.get_document(...))
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except ProtocolError:
            raise
        except CouchMCPError as e:
            logger.error(f"CouchDB error in {func.__name__}: [{e.error_code}] {e.message}")
            return ResponseEnvelope.failure(e.message)
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            return ResponseEnvelope.failure(error_message(e))

    return wrapper
