"""Homomorphic coprocessor capability.

The ledger only ever talks to ``Coprocessor``. ``MockCoprocessor`` keeps a
plaintext shadow value behind every handle so settlement can be exercised
without an encryption backend; nothing outside this module and the oracle
reads those values.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union
import hashlib
import hmac
import logging
import secrets
import threading

from arena.errors import CoprocessorError, InvalidHandle, InvalidProof
from arena.handles import FheType, Handle, HANDLE_SIZE
from arena.mac_utils import generate_mac, verify_mac

logger = logging.getLogger(__name__)

PROOF_VERSION = 1
_BOUND_SIZE = 9  # fits 1 << 64
_MAC_SIZE = 32

Operand = Union[Handle, int]
InputValue = Tuple[int, FheType, Optional[int]]  # (value, type, exclusive upper bound)


class Coprocessor(ABC):
    @abstractmethod
    def trivial_encrypt(self, ledger: str, value: int, fhe_type: FheType) -> Handle:
        ...

    @abstractmethod
    def add(self, a: Handle, b: Operand) -> Handle:
        ...

    @abstractmethod
    def sub(self, a: Handle, b: Operand) -> Handle:
        ...

    @abstractmethod
    def eq(self, a: Handle, b: Operand) -> Handle:
        ...

    @abstractmethod
    def lt(self, a: Handle, b: Operand) -> Handle:
        ...

    @abstractmethod
    def select(self, condition: Handle, if_true: Handle, if_false: Handle) -> Handle:
        ...

    @abstractmethod
    def random_bounded(self, ledger: str, upper_bound: int, fhe_type: FheType, salt: bytes) -> Handle:
        """Fresh encrypted value uniform in [0, upper_bound)."""

    @abstractmethod
    def encrypt_input(self, ledger: str, user: str, values: Sequence[InputValue]) -> Tuple[List[Handle], bytes]:
        """Encrypt client inputs and return their handles with one input proof."""

    @abstractmethod
    def verify_input(self, handle: Handle, proof: bytes, ledger: str, user: str,
                     fhe_type: FheType, upper_bound: Optional[int] = None) -> Handle:
        """Accept ``handle`` for use on ``ledger`` or raise ``InvalidProof``."""

    @abstractmethod
    def decrypt(self, handle: Handle) -> int:
        """Reserved for the decryption oracle."""


@dataclass
class _Entry:
    fhe_type: FheType
    value: int
    ledger: str


class MockCoprocessor(Coprocessor):
    def __init__(self, seed: Optional[bytes] = None):
        self._values: Dict[bytes, _Entry] = {}
        self._lock = threading.Lock()
        self._seed = seed or secrets.token_bytes(32)
        self._input_key = secrets.token_bytes(32)
        self._instance = secrets.token_bytes(16)
        self._counter = 0
        self.available = True

    # --- internals ---
    def _check_available(self):
        if not self.available:
            raise CoprocessorError("Coprocessor unavailable")

    def _mint(self, ledger: str, fhe_type: FheType, value: int, tag: bytes) -> Handle:
        with self._lock:
            self._counter += 1
            digest = hashlib.sha256(
                b"arena.handle" + self._instance + ledger.lower().encode()
                + self._counter.to_bytes(8, "big") + tag
            ).digest()
            handle = Handle.mint(digest, fhe_type)
            self._values[handle.raw] = _Entry(fhe_type, fhe_type.wrap(value), ledger.lower())
        logger.debug(f"[COPROCESSOR] Minted {fhe_type.name.lower()} {handle.hex()}")
        return handle

    def _load(self, handle: Handle) -> _Entry:
        with self._lock:
            entry = self._values.get(handle.raw)
        if entry is None:
            raise InvalidHandle(f"Unknown handle {handle.hex()}")
        return entry

    def _operands(self, a: Handle, b: Operand) -> Tuple[_Entry, int]:
        self._check_available()
        left = self._load(a)
        if isinstance(b, Handle):
            right = self._load(b)
            if right.fhe_type is not left.fhe_type:
                raise InvalidHandle("Operand types differ")
            if right.ledger != left.ledger:
                raise InvalidHandle("Operands belong to different ledgers")
            return left, right.value
        return left, left.fhe_type.wrap(b)

    # --- homomorphic operations ---
    def trivial_encrypt(self, ledger, value, fhe_type):
        self._check_available()
        return self._mint(ledger, fhe_type, value, b"trivial")

    def add(self, a, b):
        left, right = self._operands(a, b)
        return self._mint(left.ledger, left.fhe_type, left.value + right, b"add")

    def sub(self, a, b):
        left, right = self._operands(a, b)
        return self._mint(left.ledger, left.fhe_type, left.value - right, b"sub")

    def eq(self, a, b):
        left, right = self._operands(a, b)
        return self._mint(left.ledger, FheType.EBOOL, int(left.value == right), b"eq")

    def lt(self, a, b):
        left, right = self._operands(a, b)
        return self._mint(left.ledger, FheType.EBOOL, int(left.value < right), b"lt")

    def select(self, condition, if_true, if_false):
        self._check_available()
        cond = self._load(condition)
        if cond.fhe_type is not FheType.EBOOL:
            raise InvalidHandle("Select condition must be an ebool")
        left, right = self._load(if_true), self._load(if_false)
        if left.fhe_type is not right.fhe_type:
            raise InvalidHandle("Select branches must share a type")
        chosen = left if cond.value else right
        return self._mint(cond.ledger, chosen.fhe_type, chosen.value, b"select")

    def random_bounded(self, ledger, upper_bound, fhe_type, salt):
        self._check_available()
        if upper_bound <= 0 or upper_bound > (1 << fhe_type.bits):
            raise ValueError(f"Upper bound {upper_bound} does not fit {fhe_type.name.lower()}")
        with self._lock:
            self._counter += 1
            counter = self._counter
        entropy = hmac.new(self._seed, salt + counter.to_bytes(8, "big"), hashlib.sha256).digest()
        value = int.from_bytes(entropy, "big") % upper_bound
        return self._mint(ledger, fhe_type, value, b"rand")

    # --- inputs ---
    def encrypt_input(self, ledger, user, values):
        self._check_available()
        if not values or len(values) > 255:
            raise InvalidProof("An input must carry between 1 and 255 values")
        bounds = []
        for value, fhe_type, upper_bound in values:
            domain = 1 << fhe_type.bits
            limit = domain if upper_bound is None else upper_bound
            if not 0 < limit <= domain:
                raise InvalidProof(f"Upper bound must be in (0, {domain}] for {fhe_type.name.lower()}")
            if not 0 <= value < limit:
                raise InvalidProof(f"Input value is outside [0, {limit})")
            bounds.append(limit)
        handles = [self._mint(ledger, fhe_type, value, b"input") for value, fhe_type, _ in values]
        body = b"".join(h.raw + b.to_bytes(_BOUND_SIZE, "big") for h, b in zip(handles, bounds))
        mac = generate_mac(self._input_key, ledger.lower(), user.lower(), body)
        logger.debug(f"[COPROCESSOR] Issued input proof for {len(handles)} value(s) from {user}")
        return handles, bytes([PROOF_VERSION, len(handles)]) + body + mac

    def verify_input(self, handle, proof, ledger, user, fhe_type, upper_bound=None):
        self._check_available()
        entry_size = HANDLE_SIZE + _BOUND_SIZE
        if len(proof) < 2 or proof[0] != PROOF_VERSION:
            raise InvalidProof("Malformed input proof")
        count = proof[1]
        body, mac = proof[2:-_MAC_SIZE], proof[-_MAC_SIZE:]
        if count == 0 or len(body) != count * entry_size:
            raise InvalidProof("Malformed input proof")
        if not verify_mac(self._input_key, mac, ledger.lower(), user.lower(), body):
            raise InvalidProof("Input proof does not match this caller and ledger")
        bound = None
        for i in range(count):
            chunk = body[i * entry_size:(i + 1) * entry_size]
            if chunk[:HANDLE_SIZE] == handle.raw:
                bound = int.from_bytes(chunk[HANDLE_SIZE:], "big")
                break
        if bound is None:
            raise InvalidProof("Handle is not covered by the input proof")
        if handle.fhe_type is not fhe_type:
            raise InvalidProof(f"Expected an encrypted {fhe_type.name.lower()}")
        if upper_bound is not None and bound > upper_bound:
            raise InvalidProof(f"Input proof does not attest the range [0, {upper_bound})")
        entry = self._load(handle)
        if entry.ledger != ledger.lower():
            raise InvalidProof("Handle was minted for another ledger")
        return handle

    def decrypt(self, handle):
        self._check_available()
        return self._load(handle).value
