"""
Endpoint identity helpers.

The local identifier is random per process and never persisted; it is what
gets rendered as a QR code or copied for out-of-band sharing.
"""

import random
from typing import Optional

ID_SPACE = 100000


def generate_peer_id(prefix: str = "eind-", rng: Optional[random.Random] = None) -> str:
    """Generate a fresh local endpoint identifier, e.g. ``eind-48213``."""
    rng = rng or random.Random()
    return f"{prefix}{rng.randrange(ID_SPACE)}"


def display_name(peer_id: str) -> str:
    """Derive a stable display name from a remote identifier.

    ``eind-48213`` becomes ``User 48213``; identifiers without a dash are
    used whole.
    """
    _, sep, suffix = peer_id.partition("-")
    return f"User {suffix if sep and suffix else peer_id}"
