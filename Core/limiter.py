from fastapi import Request
from slowapi import Limiter

REVIEW_LIMIT = "5/hour"
CONTACT_LIMIT = "3/hour"
AUTH_LIMIT = "20 per 15 minutes"


def client_ip(request: Request) -> str:
    """
    Peer address of the request. X-Forwarded-For is only believed when the
    direct peer is a configured trusted proxy.
    """
    peer = request.client.host if request.client else "unknown"
    settings = getattr(request.app.state, "settings", None)
    trusted = settings.trusted_proxies if settings else ()
    if peer in trusted:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return peer


limiter = Limiter(key_func=client_ip)
