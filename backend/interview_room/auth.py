from jose import JWTError, jwt
import os
import logging

from interview_room.room.context import CandidateIdentity
from interview_room.storage.context_adapter import load_stored_user, read_auth_token
from interview_room.storage.durable_store import DurableStore

logger = logging.getLogger("interview_room.auth")

AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
ENVIRONMENT = os.getenv("ENV", "development").lower()
ALLOW_UNVERIFIED_JWT_DEV = str(os.getenv("ALLOW_UNVERIFIED_JWT_DEV", "false")).strip().lower() in {"1", "true", "yes", "on"}


def decode_token_claims(token: str) -> dict | None:
    if not token:
        return None
    if AUTH_JWT_SECRET:
        try:
            return jwt.decode(token, AUTH_JWT_SECRET, algorithms=["HS256"])
        except JWTError:
            logger.warning("Rejected candidate token with invalid signature")
            return None

    if ENVIRONMENT == "production" or not ALLOW_UNVERIFIED_JWT_DEV:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
        logger.warning("ALLOW_UNVERIFIED_JWT_DEV enabled; using unverified token claims in non-production mode")
        return claims
    except JWTError:
        return None


async def resolve_candidate(store: DurableStore) -> CandidateIdentity | None:
    """Authenticated candidate for this browser, or ``None`` for guests.

    Never raises: an unreadable identity just means the room takes the guest
    or fallback path at the end.
    """
    try:
        token = await read_auth_token(store)
        stored_user = await load_stored_user(store)
    except Exception as exc:
        logger.warning("Could not read stored identity | err=%s", exc)
        return None

    if not token:
        return None

    claims = decode_token_claims(token)
    if claims:
        subject = str(claims.get("sub") or "").strip()
        if not subject:
            return None
        return CandidateIdentity(
            id=subject,
            full_name=str(claims.get("full_name") or (stored_user.full_name if stored_user else "")),
            email=str(claims.get("email") or (stored_user.email if stored_user else "")),
            role=str(claims.get("role") or (stored_user.role if stored_user else "candidate")),
        )

    if AUTH_JWT_SECRET:
        return None
    # without a verification secret the backend is the authority; trust the stored profile
    return stored_user
