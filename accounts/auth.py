from typing import Optional


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """
    Return the token from an 'Authorization: Bearer <token>' header.

    Missing headers, other schemes and malformed values (no space, empty
    token) all yield None.
    """
    if not auth_header:
        return None

    try:
        prefix, token = auth_header.strip().split(" ", 1)
    except ValueError:
        return None

    if prefix.lower() != "bearer":
        return None

    token = token.strip()
    return token or None
