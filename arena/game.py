from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional
from eth_utils import is_address
import logging

import arena.config as g
from arena.auth import require_caller
from arena.errors import ArenaError
from arena.handles import Handle
from arena.utils import from_hex

router = APIRouter()


class PlayRequest(BaseModel):
    encrypted_guess: str  # 0x-hex handle
    input_proof: str      # 0x-hex proof


def http_error(e: ArenaError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


def _address(address: str) -> str:
    if not is_address(address):
        raise HTTPException(status_code=400, detail="Malformed address")
    return address


@router.post("/register")
def register_player(caller: str = Depends(require_caller)):
    try:
        g.ledger.register_player(caller)
    except ArenaError as e:
        raise http_error(e)
    return {"message": "Player registered", "player": caller}


@router.post("/play")
def play_game(data: PlayRequest, caller: str = Depends(require_caller)):
    try:
        proof = from_hex(data.input_proof)
    except ValueError:
        raise HTTPException(status_code=400, detail="Input proof is not valid hex")
    try:
        g.ledger.play_game(caller, Handle.from_hex(data.encrypted_guess), proof)
    except ArenaError as e:
        logging.debug(f"[PLAY] Rejected for {caller}: {e}")
        raise http_error(e)
    return {"message": "Game played", "games_played": g.ledger.games_played(caller)}


@router.get("/players/{address}")
def player(address: str):
    address = _address(address)
    return {
        "registered": g.ledger.is_registered(address),
        "balance": g.ledger.get_player_balance(address).hex(),
        "games_played": g.ledger.games_played(address),
    }


@router.get("/players/{address}/last-game")
def last_game(address: str):
    record = g.ledger.get_last_game(_address(address))
    return {
        "guess": record.guess.hex(),
        "draw": record.draw.hex(),
        "won": record.won.hex(),
        "exists": record.exists,
    }


@router.get("/events")
def events(player: Optional[str] = None):
    if player is not None:
        _address(player)
    return {
        "events": [
            {"seq": e.seq, "name": e.name, "args": e.args}
            for e in g.ledger.events(player)
        ]
    }


@router.get("/protocol-id")
def protocol_id():
    return {"protocol_id": g.ledger.protocol_id()}
