"""Client side of the arena: encrypted inputs and user decryption.

The ephemeral private key generated here never leaves the process; the
oracle only sees the public half, bound into the signed authorization.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import time

from eth_utils import to_checksum_address

import arena.config as g
from arena.coprocessor import Coprocessor
from arena.eip712 import create_eip712, sign_eip712
from arena.handles import FheType, Handle, is_zero_ciphertext
from arena.oracle import UserDecryptRequest
from arena.utils import derive_shared_key, from_hex, generate_keypair, load_private_key, load_public_key, unseal

logger = logging.getLogger(__name__)


@dataclass
class EncryptedInputResult:
    handles: List[Handle]
    input_proof: bytes


class EncryptedInput:
    """Collects values for one contract call, then encrypts them under a single proof."""

    def __init__(self, coprocessor: Coprocessor, contract_address: str, user_address: str):
        self.coprocessor = coprocessor
        self.contract_address = to_checksum_address(contract_address)
        self.user_address = to_checksum_address(user_address)
        self._values: List[Tuple[int, FheType, Optional[int]]] = []

    def _add(self, value: int, fhe_type: FheType, upper_bound: Optional[int]):
        self._values.append((int(value), fhe_type, upper_bound))
        return self

    def add32(self, value: int, upper_bound: Optional[int] = None):
        return self._add(value, FheType.EUINT32, upper_bound)

    def encrypt(self) -> EncryptedInputResult:
        handles, proof = self.coprocessor.encrypt_input(self.contract_address, self.user_address, self._values)
        return EncryptedInputResult(handles, proof)


def create_encrypted_input(coprocessor: Coprocessor, contract_address: str, user_address: str) -> EncryptedInput:
    return EncryptedInput(coprocessor, contract_address, user_address)


def open_response(response: Dict[str, object], private_key: str) -> Dict[str, int]:
    """Unseal an oracle response with the session's ephemeral private key."""
    key = derive_shared_key(load_private_key(private_key), load_public_key(response["oracle_public_key"]))
    clear = {}
    for handle_hex, sealed in response["results"].items():
        plaintext = unseal(key, from_hex(sealed["nonce"]), from_hex(sealed["ciphertext"]),
                           Handle.from_hex(handle_hex).raw)
        clear[handle_hex] = int.from_bytes(plaintext, "big")
    return clear


def user_decrypt(oracle, handle_contract_pairs: Sequence[Tuple[Handle, str]], private_key: str,
                 public_key: str, signature: str, contract_addresses: Sequence[str],
                 user_address: str, start_timestamp: int, duration_days: int) -> Dict[str, int]:
    request = UserDecryptRequest(
        handle_contract_pairs=list(handle_contract_pairs),
        public_key=public_key,
        signature=signature,
        contract_addresses=list(contract_addresses),
        user_address=user_address,
        start_timestamp=start_timestamp,
        duration_days=duration_days,
    )
    return open_response(oracle.user_decrypt(request), private_key)


@dataclass
class UserDecryptSession:
    user_address: str
    private_key: str
    public_key: str
    signature: str
    contract_addresses: List[str] = field(default_factory=list)
    start_timestamp: int = 0
    duration_days: int = g.DEFAULT_DURATION_DAYS

    @classmethod
    def create(cls, account, contract_addresses: Sequence[str], now: int,
               duration_days: int = g.DEFAULT_DURATION_DAYS) -> "UserDecryptSession":
        private_key, public_key = generate_keypair()
        typed_data = create_eip712(public_key, contract_addresses, now, duration_days)
        signature = sign_eip712(typed_data, account.key)
        return cls(to_checksum_address(account.address), private_key, public_key, signature,
                   [to_checksum_address(a) for a in contract_addresses], now, duration_days)

    def expires_at(self) -> int:
        return self.start_timestamp + self.duration_days * g.SECONDS_PER_DAY

    def is_valid(self, now: int) -> bool:
        return self.start_timestamp <= now <= self.expires_at()

    def decrypt(self, oracle, handle_contract_pairs: Sequence[Tuple[Handle, str]]) -> Dict[str, int]:
        return user_decrypt(oracle, handle_contract_pairs, self.private_key, self.public_key, self.signature,
                            self.contract_addresses, self.user_address, self.start_timestamp, self.duration_days)


class ArenaClient:
    """A player's view of one arena ledger."""

    def __init__(self, account, ledger, coprocessor: Coprocessor, oracle,
                 clock: Callable[[], float] = time.time, duration_days: int = g.DEFAULT_DURATION_DAYS):
        self.account = account
        self.ledger = ledger
        self.coprocessor = coprocessor
        self.oracle = oracle
        self.clock = clock
        self.duration_days = duration_days
        self._session: Optional[UserDecryptSession] = None

    @property
    def address(self) -> str:
        return to_checksum_address(self.account.address)

    def register(self):
        self.ledger.register_player(self.address)

    def play(self, guess: int):
        if not isinstance(guess, int) or not 0 <= guess < g.GUESS_RANGE:
            raise ValueError(f"Enter a number between 0 and {g.GUESS_RANGE - 1}.")
        encrypted = (create_encrypted_input(self.coprocessor, self.ledger.address, self.address)
                     .add32(guess, upper_bound=g.GUESS_RANGE)
                     .encrypt())
        self.ledger.play_game(self.address, encrypted.handles[0], encrypted.input_proof)

    def session(self) -> UserDecryptSession:
        now = int(self.clock())
        if self._session is None or not self._session.is_valid(now):
            self._session = UserDecryptSession.create(self.account, [self.ledger.address], now, self.duration_days)
            logger.debug(f"[CLIENT] New decrypt session for {self.address} until {self._session.expires_at()}")
        return self._session

    def decrypt(self, handles: Sequence[Handle]) -> List[int]:
        pending = []
        for handle in handles:
            if not is_zero_ciphertext(handle) and handle not in pending:
                pending.append(handle)
        clear = {}
        if pending:
            clear = self.session().decrypt(self.oracle, [(h, self.ledger.address) for h in pending])
        values = []
        for handle in handles:
            if is_zero_ciphertext(handle):
                values.append(0)
                continue
            if handle.hex() not in clear:
                raise RuntimeError(f"Oracle returned no value for {handle.hex()}")
            values.append(clear[handle.hex()])
        return values

    def balance(self) -> int:
        return self.decrypt([self.ledger.get_player_balance(self.address)])[0]

    def games_played(self) -> int:
        return self.ledger.games_played(self.address)

    def last_game(self) -> Optional[Dict[str, int]]:
        record = self.ledger.get_last_game(self.address)
        if not record.exists:
            return None
        guess, draw, won = self.decrypt([record.guess, record.draw, record.won])
        return {"guess": guess, "draw": draw, "won": won}
