from fastapi import Request


def get_client_id(request: Request) -> str:
    """
    Identify the client for rate limiting and logs.

    Uses the first hop of X-Forwarded-For (the original client behind a proxy),
    then the peer address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"
