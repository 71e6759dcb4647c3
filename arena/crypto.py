from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from eth_utils import is_address
import logging

import arena.config as g
from arena.errors import ArenaError
from arena.game import http_error
from arena.handles import FheType, Handle
from arena.oracle import UserDecryptRequest
from arena.utils import to_hex

router = APIRouter()

# --- Models ---
class InputValue(BaseModel):
    value: int
    type: str = "euint32"
    upper_bound: Optional[int] = None

class InputRequest(BaseModel):
    contract_address: str
    user_address: str
    values: List[InputValue]

class HandleContractPair(BaseModel):
    handle: str
    contract_address: str

class UserDecryptBody(BaseModel):
    handle_contract_pairs: List[HandleContractPair]
    public_key: str
    signature: str
    contract_addresses: List[str]
    user_address: str
    start_timestamp: int
    duration_days: int


def _fhe_type(name: str) -> FheType:
    try:
        return FheType[name.upper()]
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Unknown FHE type {name}")


@router.post("/input")
def encrypt_input(data: InputRequest):
    """Coprocessor input gateway: encrypt values for one contract call and attest them."""
    if not is_address(data.contract_address) or not is_address(data.user_address):
        raise HTTPException(status_code=400, detail="Malformed address")
    values = [(v.value, _fhe_type(v.type), v.upper_bound) for v in data.values]
    try:
        handles, proof = g.coprocessor.encrypt_input(data.contract_address, data.user_address, values)
    except ArenaError as e:
        raise http_error(e)
    return {"handles": [h.hex() for h in handles], "input_proof": to_hex(proof)}


@router.post("/user-decrypt")
def user_decrypt(data: UserDecryptBody):
    """Decryption oracle: plaintexts sealed for the request's ephemeral public key."""
    try:
        request = UserDecryptRequest(
            handle_contract_pairs=[(Handle.from_hex(p.handle), p.contract_address) for p in data.handle_contract_pairs],
            public_key=data.public_key,
            signature=data.signature,
            contract_addresses=data.contract_addresses,
            user_address=data.user_address,
            start_timestamp=data.start_timestamp,
            duration_days=data.duration_days,
        )
        return g.oracle.user_decrypt(request)
    except ArenaError as e:
        logging.warning(f"[ORACLE] Request from {data.user_address} refused: {e}")
        raise http_error(e)
