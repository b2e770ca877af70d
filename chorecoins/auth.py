from fastapi import Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader
from typing import Optional

from chorecoins.constants import API_KEY, ActorType
from chorecoins.schemas import Actor

# Keep the key in CHORES_API_KEY in production
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Security(api_key_header)):
    """Verify API key for authentication"""
    if not api_key or api_key != API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key"
        )
    return api_key


async def get_actor(
    x_actor_type: Optional[str] = Header(None),
    x_actor_id: Optional[str] = Header(None)
) -> Actor:
    """
    Identify the caller from the X-Actor-Type / X-Actor-Id headers.

    The headers are set by the trusted gateway in front of this service
    after it has authenticated the user. The system actor is reserved for
    the scheduler and cannot be claimed over HTTP.
    """
    try:
        actor_type = ActorType((x_actor_type or "").lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or unknown X-Actor-Type"
        )
    if actor_type == ActorType.SYSTEM or not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid actor"
        )
    return Actor(type=actor_type, id=x_actor_id)
