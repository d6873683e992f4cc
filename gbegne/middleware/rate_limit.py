"""Rate limiting middleware using SlowAPI."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from gbegne.config import get_settings

settings = get_settings()


def get_owner_or_ip(request: Request) -> str:
    """
    Get rate limit key from the caller's identity headers or IP address.

    Uses the session token or guest id when present, falls back to IP address.
    """
    authorization = request.headers.get("authorization")
    if authorization and authorization.startswith("Bearer "):
        # Prefix only; the full token never lands in limiter storage
        return f"session:{authorization[7:19]}"

    guest_id = request.headers.get("x-guest-id")
    if guest_id:
        return f"guest:{guest_id}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_owner_or_ip,
    storage_uri=settings.rate_limit_storage_uri,
    strategy="fixed-window",
)


def rate_limit_accounts():
    """Rate limit for registration, login and guest creation."""
    return limiter.limit(
        f"{max(settings.rate_limit_per_minute // 6, 1)}/minute",
        key_func=get_remote_address,
    )


def rate_limit_saves():
    """Rate limit for artifact uploads and saves."""
    return limiter.limit(
        f"{settings.rate_limit_per_minute}/minute",
        key_func=get_owner_or_ip,
    )
