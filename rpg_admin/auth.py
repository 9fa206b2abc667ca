"""Bearer-token authentication against the identity provider's key set.

The JWKS document is fetched once at startup and kept for the life of the
process. A token whose `kid` is not in that set is rejected; there is no
refetch. Every failure folds into a single reject (None / HTTP 401).
"""

import logging

import httpx
import jwt
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

_keyset: jwt.PyJWKSet | None = None
_issuer: str | None = None
_client_id: str = ""


async def fetch_keyset(url: str) -> jwt.PyJWKSet:
    """Download and parse the JWKS document at `url`."""
    async with httpx.AsyncClient(timeout=10) as client:
        resp = await client.get(url)
        resp.raise_for_status()
    keyset = jwt.PyJWKSet.from_dict(resp.json())
    logger.info(f"Loaded {len(keyset.keys)} signing keys from {url}")
    return keyset


def init_auth(keyset: jwt.PyJWKSet | None, issuer: str | None = None, client_id: str = "") -> None:
    global _keyset, _issuer, _client_id
    _keyset = keyset
    _issuer = issuer
    _client_id = client_id


def verify_token(token: str) -> str | None:
    """Return the principal (username) for a valid access token, else None."""
    if _keyset is None:
        logger.warning("Token rejected: key set not loaded")
        return None

    try:
        header = jwt.get_unverified_header(token)
        signing_key = _keyset[header.get("kid", "")]
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            issuer=_issuer,
            options={"verify_aud": False},
        )
    except (jwt.PyJWTError, KeyError) as e:
        logger.warning(f"Token rejected: {e}")
        return None

    if claims.get("token_use") != "access":
        logger.warning(f"Token rejected: token_use={claims.get('token_use')}")
        return None
    if _client_id and claims.get("client_id") != _client_id:
        logger.warning(f"Token rejected: client_id={claims.get('client_id')}")
        return None

    return claims.get("username") or claims.get("sub")


def bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token:
        return ""
    return token.strip()


def authenticate(request: Request) -> str | None:
    """Principal for the request's bearer token, or None."""
    token = bearer_token(request)
    if not token:
        return None
    return verify_token(token)


async def require_user(request: Request) -> str:
    """FastAPI dependency guarding every /api endpoint."""
    principal = authenticate(request)
    if principal is None:
        raise HTTPException(401)
    request.state.user = principal
    return principal
