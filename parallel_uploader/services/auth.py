"""Bearer token acquisition."""
import logging

import httpx

from ..errors import ProtocolError
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

AUTHENTICATE_ENDPOINT = "/authenticate"


async def authenticate(api: IAPIClient, username: str, password: str) -> str:
    """
    Exchange Basic credentials for a bearer token.

    Raises:
        TransportError: request failed or returned a non-success status
        ProtocolError: the server answered with an empty token
    """
    response = await api.post_form(
        AUTHENTICATE_ENDPOINT,
        data={},
        auth=httpx.BasicAuth(username, password),
    )
    token = response.text.strip()
    if not token:
        raise ProtocolError("authenticate returned an empty token")
    logger.debug("Authenticated as %s", username)
    return token
