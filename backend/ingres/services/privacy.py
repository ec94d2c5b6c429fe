import hashlib


def hash_identifier(value: str) -> str:
    """Stable, non-reversible short id for client identifiers (IPs etc.)."""
    return hashlib.sha256((value or "").encode("utf-8")).hexdigest()[:32]
