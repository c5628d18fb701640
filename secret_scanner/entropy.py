"""
Shannon entropy and the extra acceptance filters selected by a
signature's `validation` tag.
"""
import base64
import binascii
import logging
import math
import string
from collections import Counter

logger = logging.getLogger(__name__)

MIN_ENTROPY_CALC_LENGTH = 2

_HEX_DIGITS = set(string.hexdigits)


def shannon_entropy(data: str) -> float:
    """
    Calculate Shannon entropy of a string (bits per character).

    High entropy (>4.5) often indicates cryptographic material.
    Low entropy (<3.5) typically indicates human-readable text.

    Args:
        data: String to analyze

    Returns:
        Entropy value in bits per character; 0.0 for empty or
        single-character input
    """
    if not data or len(data) < MIN_ENTROPY_CALC_LENGTH:
        return 0.0

    counts = Counter(data)
    length = len(data)
    probs = [count / length for count in counts.values()]
    return -sum(p * math.log2(p) for p in probs if p > 0)


def is_hex_secret(value: str) -> bool:
    """Hex digits only, mixing numerals and letters (rules out plain numbers)."""
    if not value or any(ch not in _HEX_DIGITS for ch in value):
        return False
    return any(ch.isdigit() for ch in value) and any(ch.isalpha() for ch in value)


def is_base64_secret(value: str) -> bool:
    """Decodes as strict base64 and mixes at least two character classes."""
    if not value or len(value) % 4:
        return False
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    body = value.rstrip("=")
    classes = sum((
        any(ch.isupper() for ch in body),
        any(ch.islower() for ch in body),
        any(ch.isdigit() for ch in body),
    ))
    return classes >= 2


def passes_validation(tag: str, value: str, min_entropy: float) -> bool:
    """
    Apply the acceptance filter named by a signature's validation tag.

    Args:
        tag: "hex", "base64" or "entropy"
        value: The candidate secret (capture group or whole match)
        min_entropy: Entropy floor used by the "entropy" filter

    Returns:
        True if the candidate is accepted
    """
    if tag == "hex":
        return is_hex_secret(value)
    if tag == "base64":
        return is_base64_secret(value)
    if tag == "entropy":
        return shannon_entropy(value) >= min_entropy
    logger.debug(f"Unknown validation tag {tag!r}, accepting match")
    return True
