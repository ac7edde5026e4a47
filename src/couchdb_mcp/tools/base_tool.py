"""Base class for CouchDB tool groups.

Each tool group receives the shared CouchDBClient at construction; there is no
global connection state.

Example:
    >>> class MyTools(BaseTool):
    ...     @handle_couchdb_errors
    ...     async def list_things(self, args):
    ...         return self.respond(await self.client.list_databases())
"""

import json
import logging
from typing import Any

from ..database.client import CouchDBClient
from .models import ResponseEnvelope

logger = logging.getLogger(__name__)


class BaseTool:
    """Shared plumbing for tool groups: client access and response rendering."""

    def __init__(self, client: CouchDBClient) -> None:
        self.client = client
        logger.debug(f"Initialized {self.__class__.__name__}")

    @staticmethod
    def respond(result: Any) -> ResponseEnvelope:
        """Success envelope with ``result`` rendered as JSON indented by 2."""
        return ResponseEnvelope.success(json.dumps(result, indent=2))

    @staticmethod
    def respond_compact(result: Any) -> ResponseEnvelope:
        return ResponseEnvelope.success(json.dumps(result))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(client={self.client!r})"
