"""Decryption oracle.

Serves user decryption requests: checks the signed authorization and the
ACL, then returns each plaintext sealed for the requester's ephemeral key.
It reads the ACL and the coprocessor and writes nothing.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple
import logging
import time

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from eth_utils import is_address, to_checksum_address

import arena.config as g
from arena.acl import ACL
from arena.coprocessor import Coprocessor
from arena.eip712 import create_eip712, recover_signer
from arena.errors import AccessDenied, InvalidAuthorization
from arena.handles import Handle
from arena.utils import derive_shared_key, from_hex, load_public_key, seal, to_hex

logger = logging.getLogger(__name__)


@dataclass
class UserDecryptRequest:
    handle_contract_pairs: List[Tuple[Handle, str]]
    public_key: str
    signature: str
    contract_addresses: List[str]
    user_address: str
    start_timestamp: int
    duration_days: int


class DecryptionOracle:
    def __init__(self, coprocessor: Coprocessor, acl: ACL, clock: Callable[[], float] = time.time):
        self.coprocessor = coprocessor
        self.acl = acl
        self.clock = clock

    def _check_shape(self, request: UserDecryptRequest):
        if not request.handle_contract_pairs:
            raise InvalidAuthorization("Invalid authorization: no handles requested")
        if len(request.handle_contract_pairs) > g.MAX_HANDLES_PER_REQUEST:
            raise InvalidAuthorization(
                f"Invalid authorization: at most {g.MAX_HANDLES_PER_REQUEST} handles per request")
        if not request.contract_addresses or len(request.contract_addresses) > g.MAX_CONTRACT_ADDRESSES:
            raise InvalidAuthorization(
                f"Invalid authorization: scope must list 1 to {g.MAX_CONTRACT_ADDRESSES} contracts")
        if not 1 <= request.duration_days <= g.MAX_DURATION_DAYS:
            raise InvalidAuthorization(
                f"Invalid authorization: duration must be 1 to {g.MAX_DURATION_DAYS} days")
        addresses = [request.user_address] + list(request.contract_addresses)
        addresses += [contract for _, contract in request.handle_contract_pairs]
        if not all(is_address(a) for a in addresses):
            raise InvalidAuthorization("Invalid authorization: malformed address")
        try:
            key_bytes = from_hex(request.public_key)
        except ValueError:
            key_bytes = b""
        if len(key_bytes) != 32:
            raise InvalidAuthorization("Invalid authorization: public key must be 32 bytes of hex")

    def _check_window(self, request: UserDecryptRequest, now: int):
        if now < request.start_timestamp:
            raise InvalidAuthorization("Invalid authorization: not yet valid")
        if now > request.start_timestamp + request.duration_days * g.SECONDS_PER_DAY:
            raise InvalidAuthorization("Invalid authorization: expired")

    def user_decrypt(self, request: UserDecryptRequest) -> Dict[str, object]:
        now = int(self.clock())
        self._check_shape(request)
        self._check_window(request, now)

        user = to_checksum_address(request.user_address)
        scope = {to_checksum_address(a) for a in request.contract_addresses}
        pairs = [(handle, to_checksum_address(contract)) for handle, contract in request.handle_contract_pairs]
        for handle, contract in pairs:
            if contract not in scope:
                raise InvalidAuthorization(f"Invalid authorization: {contract} is outside the signed scope")

        typed_data = create_eip712(request.public_key, request.contract_addresses,
                                   request.start_timestamp, request.duration_days)
        signer = recover_signer(typed_data, request.signature)
        if signer != user:
            logger.warning(f"[ORACLE] Signature recovers to {signer}, request claims {user}")
            raise InvalidAuthorization("Invalid authorization: signature does not match the user")

        for handle, contract in pairs:
            if handle.is_zero:
                raise InvalidAuthorization("Invalid authorization: placeholder handles are not decryptable")
            if not self.acl.is_granted(handle, user) or not self.acl.is_granted(handle, contract):
                logger.warning(f"[ORACLE] {user} denied on {handle.hex()}")
                raise AccessDenied(f"Not authorized to decrypt {handle.hex()}")

        ephemeral = X25519PrivateKey.generate()
        try:
            key = derive_shared_key(ephemeral, load_public_key(request.public_key))
        except ValueError:
            # low-order points yield an all-zero shared secret
            logger.warning(f"[ORACLE] Unusable public key from {user}")
            raise InvalidAuthorization("Invalid authorization: unusable public key")
        results = {}
        for handle, _ in pairs:
            value = self.coprocessor.decrypt(handle)
            nonce, ciphertext = seal(key, value.to_bytes(32, "big"), handle.raw)
            results[handle.hex()] = {"nonce": to_hex(nonce), "ciphertext": to_hex(ciphertext)}

        oracle_public = ephemeral.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )
        logger.debug(f"[ORACLE] Served {len(results)} handle(s) to {user}")
        return {"oracle_public_key": to_hex(oracle_public), "results": results}
