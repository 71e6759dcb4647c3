import pytest
from eth_account import Account

from arena.acl import ACL
from arena.client import ArenaClient
from arena.coprocessor import MockCoprocessor
from arena.errors import CoprocessorError
from arena.ledger import ArenaLedger
from arena.oracle import DecryptionOracle

LEDGER = "0x8A96542EBa91F74F69949374c3865C9D672734f5"
OTHER_LEDGER = "0x1111111111111111111111111111111111111111"
START = 1_700_000_000


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now


class ScriptedCoprocessor(MockCoprocessor):
    """Mock with a forced house draw and switchable failures."""

    def __init__(self):
        super().__init__(seed=b"\x01" * 32)
        self.forced_draw = None
        self.fail_on = set()

    def random_bounded(self, ledger, upper_bound, fhe_type, salt):
        if "random_bounded" in self.fail_on:
            raise CoprocessorError("Coprocessor unavailable")
        if self.forced_draw is None:
            return super().random_bounded(ledger, upper_bound, fhe_type, salt)
        return self.trivial_encrypt(ledger, self.forced_draw, fhe_type)

    def eq(self, a, b):
        if "eq" in self.fail_on:
            raise CoprocessorError("Coprocessor unavailable")
        return super().eq(a, b)


class CountingOracle:
    def __init__(self, oracle):
        self.oracle = oracle
        self.calls = 0

    def user_decrypt(self, request):
        self.calls += 1
        return self.oracle.user_decrypt(request)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coprocessor():
    return ScriptedCoprocessor()


@pytest.fixture
def acl():
    return ACL()


@pytest.fixture
def ledger(coprocessor, acl):
    return ArenaLedger(coprocessor, acl, LEDGER)


@pytest.fixture
def oracle(coprocessor, acl, clock):
    return CountingOracle(DecryptionOracle(coprocessor, acl, clock=clock))


@pytest.fixture
def alice():
    return Account.create()


@pytest.fixture
def bob():
    return Account.create()


@pytest.fixture
def alice_client(alice, ledger, coprocessor, oracle, clock):
    return ArenaClient(alice, ledger, coprocessor, oracle, clock=clock)


@pytest.fixture
def bob_client(bob, ledger, coprocessor, oracle, clock):
    return ArenaClient(bob, ledger, coprocessor, oracle, clock=clock)
