import hmac
import logging
from typing import Optional

from fastapi import Header, Request

from arcade_index.config import API_KEY_HEADER
from arcade_index.db.db_interface import ArcadeStore
from arcade_index.errors import UnauthorizedError
from arcade_index.services.aggregation import AggregationEngine
from arcade_index.services.player_directory import PlayerDirectory
from arcade_index.services.score_ledger import ScoreLedger
from arcade_index.services.sync_gateway import SyncGateway

logger = logging.getLogger(__name__)


# Services are built once in create_app and kept on app.state.

def get_store(request: Request) -> ArcadeStore:
    return request.app.state.store


def get_gateway(request: Request) -> SyncGateway:
    return request.app.state.gateway


def get_aggregation(request: Request) -> AggregationEngine:
    return request.app.state.engine


def get_directory(request: Request) -> PlayerDirectory:
    return request.app.state.directory


def get_ledger(request: Request) -> ScoreLedger:
    return request.app.state.ledger


def require_api_key(request: Request, api_key: Optional[str] = Header(None, alias=API_KEY_HEADER)) -> None:
    """
    Guard for the write endpoints.

    The header is compared in constant time against the configured secret.
    With no secret configured every write is refused.
    """
    expected = request.app.state.api_key
    if not expected:
        logger.warning(f"Write refused on {request.url.path}: no API secret configured")
        raise UnauthorizedError("Writes are disabled: no API secret configured")
    if not api_key or not hmac.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(f"Write refused on {request.url.path}: missing or invalid API key")
        raise UnauthorizedError("Missing or invalid API key")
