"""
Time-ordered identifiers (UUIDv7 layout).

Estimates are created client side and sorted by id, so ids must sort by
creation time. uuid4 does not, and the standard library has no uuid7 before
Python 3.14.
"""
import os
import time
import uuid


def new_id() -> str:
    unix_ms = time.time_ns() // 1_000_000
    rand = int.from_bytes(os.urandom(10), "big")

    value = (unix_ms & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76                          # version
    value |= ((rand >> 62) & 0xFFF) << 64       # rand_a
    value |= 0b10 << 62                         # variant
    value |= rand & ((1 << 62) - 1)             # rand_b
    return str(uuid.UUID(int=value))
