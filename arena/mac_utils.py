import hmac
import hashlib


def _pack(*parts) -> bytes:
    out = b""
    for part in parts:
        if isinstance(part, str):
            part = part.encode("utf-8")
        elif isinstance(part, int):
            part = part.to_bytes(32, byteorder="big")
        out += len(part).to_bytes(4, byteorder="big") + part
    return out


def generate_mac(secret: bytes, *parts) -> bytes:
    """HMAC-SHA256 over length-prefixed fields."""
    return hmac.new(secret, _pack(*parts), hashlib.sha256).digest()


def verify_mac(secret: bytes, mac: bytes, *parts) -> bool:
    expected = generate_mac(secret, *parts)
    return hmac.compare_digest(expected, mac)
