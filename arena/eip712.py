"""Typed-data authorization for user decryption.

The owner signs the ephemeral public key, the set of ledger contracts the
session covers and its validity window. The domain pins the protocol version
and chain, so a signature cannot be replayed elsewhere.
"""
from typing import Any, Dict, Optional, Sequence

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address

import arena.config as g
from arena.errors import InvalidAuthorization
from arena.utils import from_hex, to_hex

PRIMARY_TYPE = "UserDecryptRequestVerification"

TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    PRIMARY_TYPE: [
        {"name": "publicKey", "type": "bytes"},
        {"name": "contractAddresses", "type": "address[]"},
        {"name": "startTimestamp", "type": "uint256"},
        {"name": "durationDays", "type": "uint256"},
        {"name": "extraData", "type": "bytes"},
    ],
}


def create_eip712(public_key: str, contract_addresses: Sequence[str], start_timestamp: int,
                  duration_days: int, chain_id: Optional[int] = None, extra_data: bytes = b"") -> Dict[str, Any]:
    return {
        "types": {name: list(fields) for name, fields in TYPES.items()},
        "primaryType": PRIMARY_TYPE,
        "domain": {
            "name": g.DECRYPTION_DOMAIN_NAME,
            "version": g.DECRYPTION_DOMAIN_VERSION,
            "chainId": g.CHAIN_ID if chain_id is None else chain_id,
            "verifyingContract": g.DECRYPTION_VERIFYING_CONTRACT,
        },
        "message": {
            "publicKey": from_hex(public_key),
            "contractAddresses": [to_checksum_address(a) for a in contract_addresses],
            "startTimestamp": int(start_timestamp),
            "durationDays": int(duration_days),
            "extraData": extra_data,
        },
    }


def sign_eip712(typed_data: Dict[str, Any], private_key) -> str:
    signed = Account.sign_message(encode_typed_data(full_message=typed_data), private_key=private_key)
    return to_hex(bytes(signed.signature))


def recover_signer(typed_data: Dict[str, Any], signature: str) -> str:
    try:
        signature_bytes = from_hex(signature)
        signer = Account.recover_message(encode_typed_data(full_message=typed_data), signature=signature_bytes)
    except Exception as e:
        # eth_account raises several unrelated types for a bad signature
        raise InvalidAuthorization(f"Invalid authorization: malformed signature ({type(e).__name__})")
    return to_checksum_address(signer)
