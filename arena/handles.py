"""Ciphertext handles.

A handle is 32 opaque bytes: a 30-byte digest minted by the coprocessor,
one byte of FHE type and one byte of handle version. Two handles are equal
only when their bytes are, regardless of what they encrypt.
"""
from dataclasses import dataclass
from enum import IntEnum

from arena.errors import InvalidHandle

HANDLE_SIZE = 32
HANDLE_VERSION = 0


class FheType(IntEnum):
    EBOOL = 0
    EUINT8 = 2
    EUINT16 = 3
    EUINT32 = 4
    EUINT64 = 5

    @property
    def bits(self) -> int:
        return _BITS[self]

    def wrap(self, value: int) -> int:
        """Reduce a plaintext into the type's domain."""
        if self is FheType.EBOOL:
            return 1 if value else 0
        return value % (1 << self.bits)


_BITS = {
    FheType.EBOOL: 1,
    FheType.EUINT8: 8,
    FheType.EUINT16: 16,
    FheType.EUINT32: 32,
    FheType.EUINT64: 64,
}


@dataclass(frozen=True)
class Handle:
    raw: bytes

    def __post_init__(self):
        if len(self.raw) != HANDLE_SIZE:
            raise InvalidHandle(f"Handle must be {HANDLE_SIZE} bytes, got {len(self.raw)}")

    @classmethod
    def mint(cls, digest: bytes, fhe_type: FheType) -> "Handle":
        return cls(digest[:30] + bytes([int(fhe_type), HANDLE_VERSION]))

    @classmethod
    def from_hex(cls, value: str) -> "Handle":
        text = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise InvalidHandle("Handle is not valid hex")
        return cls(raw)

    @property
    def is_zero(self) -> bool:
        return not any(self.raw)

    @property
    def fhe_type(self) -> FheType:
        try:
            return FheType(self.raw[30])
        except ValueError:
            raise InvalidHandle(f"Unknown FHE type code {self.raw[30]}")

    def hex(self) -> str:
        return "0x" + self.raw.hex()

    def __str__(self):
        return self.hex()


ZERO_HANDLE = Handle(bytes(HANDLE_SIZE))


def is_zero_ciphertext(value) -> bool:
    """True for the placeholder handle, in any of its spellings."""
    if value is None:
        return True
    if isinstance(value, Handle):
        return value.is_zero
    text = value[2:] if value.startswith(("0x", "0X")) else value
    return len(text) == 0 or set(text) == {"0"}
