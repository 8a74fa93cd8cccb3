"""
autoprofiler/utils/hashing.py

Stable string hashes. Python's built-in hash() is salted per process, so
sample selection uses djb2 instead to stay reproducible across runs.
"""

_INT31_MAX = 2 ** 31 - 1


def djb2(value: str) -> int:
    """djb2 over the UTF-8 bytes of value, kept in the non-negative int31 range."""
    h = 5381
    for byte in value.encode("utf-8"):
        h = ((h << 5) + h + byte) & 0xFFFFFFFF
    return h & _INT31_MAX


def normalized_hash(value: str) -> float:
    """Map value onto [0, 1]."""
    return djb2(value) / _INT31_MAX
