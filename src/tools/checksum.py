import hashlib


def calculate_checksum(content: bytes) -> str:
    """
    Compute a SHA-256 fingerprint for submitted document bytes.

    Two submissions with the same fingerprint are the same logical document
    but still become independent contracts.

    Example:
        >>> calculate_checksum(b"hello")[:12]
        '2cf24dba5fb0'
    """
    return hashlib.sha256(content).hexdigest()
