import hashlib

from arena.config import GUESS_RANGE
from arena.coprocessor import Coprocessor
from arena.handles import FheType, Handle


class RandomDrawEngine:
    """House draws: encrypted, uniform over [0, upper_bound), never decrypted here."""

    def __init__(self, coprocessor: Coprocessor, ledger_address: str):
        self.coprocessor = coprocessor
        self.ledger_address = ledger_address

    def salt(self, identity: str, nonce: int) -> bytes:
        return hashlib.sha256(
            b"arena.draw|" + self.ledger_address.lower().encode()
            + b"|" + identity.lower().encode() + b"|" + nonce.to_bytes(8, "big")
        ).digest()

    def draw(self, identity: str, nonce: int, upper_bound: int = GUESS_RANGE) -> Handle:
        return self.coprocessor.random_bounded(
            self.ledger_address, upper_bound, FheType.EUINT32, self.salt(identity, nonce)
        )
