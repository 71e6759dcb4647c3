from dataclasses import dataclass

from arena.config import REWARD, STAKE
from arena.coprocessor import Coprocessor
from arena.handles import FheType, Handle


@dataclass(frozen=True)
class Settlement:
    won: Handle
    new_balance: Handle


def settle(coprocessor: Coprocessor, ledger_address: str, balance: Handle, guess: Handle,
           draw: Handle, floor_at_zero: bool = False) -> Settlement:
    """Score one game on ciphertexts only.

    An exact match wins. The stake is always taken and the reward is added
    on a win, so the net move is +REWARD-STAKE or -STAKE. With
    ``floor_at_zero`` a balance that would drop below zero becomes zero;
    otherwise it wraps like any euint32.
    """
    won = coprocessor.eq(guess, draw)
    reward = coprocessor.select(
        won,
        coprocessor.trivial_encrypt(ledger_address, REWARD, FheType.EUINT32),
        coprocessor.trivial_encrypt(ledger_address, 0, FheType.EUINT32),
    )
    credited = coprocessor.add(balance, reward)
    if floor_at_zero:
        short = coprocessor.lt(credited, STAKE)
        new_balance = coprocessor.select(
            short,
            coprocessor.trivial_encrypt(ledger_address, 0, FheType.EUINT32),
            coprocessor.sub(credited, STAKE),
        )
    else:
        new_balance = coprocessor.sub(credited, STAKE)
    return Settlement(won=won, new_balance=new_balance)
