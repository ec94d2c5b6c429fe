def backoff_delay(attempt: int, base: float = 0.25) -> float:
    """Exponential backoff for a 0-based attempt: base, 2*base, 4*base, ..."""
    return base * (2 ** attempt)
