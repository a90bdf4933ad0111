"""
Authentication and device registration routes.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Header

from lider_gateway.api.auth import credentials_from_header
from lider_gateway.api.dependencies import AuthBackendDep, RelayDep
from lider_gateway.exceptions import AuthenticationError
from lider_gateway.types.api import RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


@router.get(
    "/login",
    summary="Verify credentials",
    description="Check Basic Auth credentials against the directory.",
)
async def login(
    backend: AuthBackendDep,
    authorization: Annotated[str | None, Header()] = None,
) -> bool:
    """
    Verify the caller's credentials.

    Returns:
        True when the directory accepts the credentials.

    Raises:
        AuthenticationError: If the header is missing or malformed, or the
            credentials are rejected.
    """
    username, password = credentials_from_header(authorization)

    if not await backend.basic_auth(username, password):
        logger.warning("Login rejected", extra={"username": username})
        raise AuthenticationError("Authentication failed")

    return True


@router.post(
    "/register",
    summary="Register a device",
    description="Relay a device registration record to LIDER.",
)
async def register(request: RegisterRequest, relay: RelayDep) -> Any:
    """
    Forward a registration record and return LIDER's response.

    Raises:
        RemoteOperationError: If LIDER cannot be reached or rejects the record.
    """
    body = request.model_dump(by_alias=True, exclude_none=True)
    return await relay.register(body)
