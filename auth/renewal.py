from __future__ import annotations

import httpx

from auth.models import CredentialPair
from shopclient.constants import AUTH_REFRESH
from shopclient.errors import RenewalFailedError


async def refresh_credentials(
    refresh_token: str,
    *,
    client: httpx.AsyncClient | None = None,
    url: str = AUTH_REFRESH,
) -> CredentialPair:
    """Exchange a refresh token for a new credential pair.

    Sent straight through ``client`` so it never carries the access token
    and is never intercepted for renewal itself.
    """
    own_client = client is None
    http_client = client or httpx.AsyncClient()

    try:
        response = await http_client.post(url, json={"refreshToken": refresh_token})
        response.raise_for_status()
    except httpx.HTTPStatusError as error:
        detail = error.response.text
        raise RenewalFailedError(
            f"Refresh request failed with status {error.response.status_code}: {detail}"
        ) from error
    finally:
        if own_client:
            await http_client.aclose()

    try:
        payload = response.json()
    except ValueError as error:
        raise RenewalFailedError("Refresh response is not valid JSON.") from error

    try:
        return CredentialPair.from_payload(payload)
    except RuntimeError as error:
        raise RenewalFailedError(f"Refresh response is invalid: {error}") from error
