"""Identifier generation for steps and registered graphs."""

from __future__ import annotations

import secrets
import string
import time

ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits


def generate_step_id() -> str:
    """Generate a collision-resistant opaque step identifier.

    Format: 16 characters from [A-Za-z0-9]
    - 8 characters from a cryptographically secure random source
    - 8 characters mixed from the current millisecond timestamp

    Returns:
        Identifier string like "x7kQ2mZaBcDeFgHi"
    """
    timestamp = int(time.time() * 1000)
    time_part = [((timestamp >> (i * 4)) ^ (timestamp >> (i * 2))) & 0x3F for i in range(8)]
    random_part = [secrets.randbelow(256) for _ in range(8)]
    return "".join(ALPHABET[byte % len(ALPHABET)] for byte in random_part + time_part)


def generate_graph_id() -> str:
    """Generate an identifier for a graph registered with a state store.

    Format: graph-<epoch ms>-xxxx

    Returns:
        Graph ID string like "graph-1767225600000-a9f3"
    """
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(4))
    return f"graph-{int(time.time() * 1000)}-{suffix}"
