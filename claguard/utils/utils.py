"""
claguard Utilities
"""

import hashlib
from typing import Optional


def mask_secret(secret: Optional[str], length: int = 5) -> str:
    """Return a short SHA-256 hash of a secret for logging."""
    if not secret:
        return "<none>"
    h = hashlib.sha256(str(secret).encode("utf-8")).hexdigest()
    return f"<masked:{h[:length]}>"
