"""Confidential arena ledger.

Per-account state lives behind ciphertext handles; this module never sees
plaintext. One lock serialises every operation, standing in for the host
ledger's one-operation-at-a-time execution. Everything that can fail runs
before the first write, so a failed ``play_game`` changes nothing.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import itertools
import logging
import threading

from eth_utils import to_checksum_address

import arena.config as g
from arena.acl import ACL
from arena.coprocessor import Coprocessor
from arena.draw import RandomDrawEngine
from arena.errors import AlreadyRegistered, NotRegistered
from arena.handles import FheType, Handle, ZERO_HANDLE
from arena.settlement import settle

logger = logging.getLogger(__name__)


@dataclass
class Account:
    identity: str
    registered: bool = False
    balance: Handle = ZERO_HANDLE
    games_played: int = 0


@dataclass(frozen=True)
class GameRecord:
    guess: Handle = ZERO_HANDLE
    draw: Handle = ZERO_HANDLE
    won: Handle = ZERO_HANDLE
    exists: bool = False


NO_GAME = GameRecord()


@dataclass(frozen=True)
class LedgerEvent:
    seq: int
    name: str
    args: Dict[str, object] = field(default_factory=dict)


class ArenaLedger:
    def __init__(self, coprocessor: Coprocessor, acl: ACL, address: str = g.LEDGER_ADDRESS,
                 floor_at_zero: bool = g.BALANCE_FLOOR_AT_ZERO):
        self.address = to_checksum_address(address)
        self.coprocessor = coprocessor
        self.acl = acl
        self.floor_at_zero = floor_at_zero
        self.draw_engine = RandomDrawEngine(coprocessor, self.address)
        self._accounts: Dict[str, Account] = {}
        self._games: Dict[str, GameRecord] = {}
        self._events: List[LedgerEvent] = []
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def _allow(self, handle: Handle, identity: str):
        self.acl.grant(handle, identity)
        self.acl.grant(handle, self.address)

    def _emit(self, name: str, **args):
        event = LedgerEvent(next(self._seq), name, args)
        self._events.append(event)
        logger.info(f"[EVENT] {name} {args}")

    # --- mutating operations ---
    def register_player(self, identity: str):
        identity = to_checksum_address(identity)
        with self._lock:
            account = self._accounts.get(identity)
            if account is not None and account.registered:
                logger.warning(f"[REGISTER] {identity} is already registered")
                raise AlreadyRegistered(identity)

            balance = self.coprocessor.trivial_encrypt(self.address, g.STARTING_BALANCE, FheType.EUINT32)

            self._accounts[identity] = Account(identity, registered=True, balance=balance, games_played=0)
            self._allow(balance, identity)
            self._emit("PlayerRegistered", player=identity)
        logger.debug(f"[REGISTER] {identity} registered with balance handle {balance.hex()}")

    def play_game(self, identity: str, encrypted_guess: Handle, input_proof: bytes):
        identity = to_checksum_address(identity)
        with self._lock:
            account = self._accounts.get(identity)
            if account is None or not account.registered:
                logger.warning(f"[PLAY] {identity} is not registered")
                raise NotRegistered(identity)

            guess = self.coprocessor.verify_input(
                encrypted_guess, input_proof, self.address, identity,
                FheType.EUINT32, upper_bound=g.GUESS_RANGE,
            )
            draw = self.draw_engine.draw(identity, account.games_played)
            result = settle(self.coprocessor, self.address, account.balance, guess, draw,
                            floor_at_zero=self.floor_at_zero)

            # commit
            account.balance = result.new_balance
            account.games_played += 1
            self._games[identity] = GameRecord(guess=guess, draw=draw, won=result.won, exists=True)
            for handle in (result.new_balance, guess, draw, result.won):
                self._allow(handle, identity)
            self._emit("GamePlayed", player=identity, game_id=account.games_played)
            games = account.games_played
        logger.debug(f"[PLAY] {identity} settled game {games}")

    # --- reads ---
    def is_registered(self, identity: str) -> bool:
        with self._lock:
            account = self._accounts.get(to_checksum_address(identity))
            return account is not None and account.registered

    def get_player_balance(self, identity: str) -> Handle:
        with self._lock:
            account = self._accounts.get(to_checksum_address(identity))
            return account.balance if account else ZERO_HANDLE

    def games_played(self, identity: str) -> int:
        with self._lock:
            account = self._accounts.get(to_checksum_address(identity))
            return account.games_played if account else 0

    def get_last_game(self, identity: str) -> GameRecord:
        with self._lock:
            return self._games.get(to_checksum_address(identity), NO_GAME)

    def events(self, player: Optional[str] = None) -> List[LedgerEvent]:
        with self._lock:
            events = list(self._events)
        if player is None:
            return events
        player = to_checksum_address(player)
        return [e for e in events if e.args.get("player") == player]

    def protocol_id(self) -> int:
        return g.PROTOCOL_ID
