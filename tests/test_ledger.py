import pytest

from arena.client import create_encrypted_input
from arena.errors import AlreadyRegistered, CoprocessorError, InvalidProof, NotRegistered
from arena.handles import ZERO_HANDLE
from arena.ledger import ArenaLedger

from conftest import OTHER_LEDGER


def _guess(coprocessor, ledger, user, value, upper_bound=100):
    result = create_encrypted_input(coprocessor, ledger.address, user).add32(value, upper_bound=upper_bound).encrypt()
    return result.handles[0], result.input_proof


def test_register_starts_at_100(alice_client, ledger):
    alice_client.register()
    assert ledger.is_registered(alice_client.address)
    assert ledger.games_played(alice_client.address) == 0
    assert not ledger.get_player_balance(alice_client.address).is_zero
    assert alice_client.balance() == 100


def test_register_twice_fails_and_changes_nothing(alice_client, ledger):
    alice_client.register()
    balance = ledger.get_player_balance(alice_client.address)
    with pytest.raises(AlreadyRegistered, match="Player already registered"):
        alice_client.register()
    assert ledger.get_player_balance(alice_client.address) == balance
    assert ledger.games_played(alice_client.address) == 0
    assert [e.name for e in ledger.events()] == ["PlayerRegistered"]


def test_unknown_account_reads_empty(ledger, alice):
    assert not ledger.is_registered(alice.address)
    assert ledger.get_player_balance(alice.address) == ZERO_HANDLE
    assert ledger.games_played(alice.address) == 0


def test_play_before_register(alice_client, ledger):
    with pytest.raises(NotRegistered, match="Player not registered"):
        alice_client.play(10)
    assert not ledger.get_last_game(alice_client.address).exists
    assert ledger.games_played(alice_client.address) == 0


def test_last_game_without_games_is_placeholder(alice_client, ledger):
    alice_client.register()
    record = ledger.get_last_game(alice_client.address)
    assert record.exists is False
    assert record.guess.is_zero and record.draw.is_zero and record.won.is_zero
    assert alice_client.last_game() is None


def test_play_99_scenario(alice_client, ledger):
    alice_client.register()
    alice_client.play(99)

    game = alice_client.last_game()
    assert game["guess"] == 99
    assert 0 <= game["draw"] < 100
    assert game["won"] in (0, 1)
    balance = alice_client.balance()
    assert balance in (90, 110)
    assert (game["won"] == 1) == (balance == 110)
    assert (game["won"] == 1) == (game["draw"] == 99)
    assert ledger.games_played(alice_client.address) == 1


def test_forced_win_pays_net_ten(alice_client, coprocessor):
    alice_client.register()
    coprocessor.forced_draw = 42
    alice_client.play(42)
    assert alice_client.last_game() == {"guess": 42, "draw": 42, "won": 1}
    assert alice_client.balance() == 110


def test_forced_loss_costs_stake(alice_client, coprocessor):
    alice_client.register()
    coprocessor.forced_draw = 7
    alice_client.play(42)
    assert alice_client.last_game() == {"guess": 42, "draw": 7, "won": 0}
    assert alice_client.balance() == 90


def test_every_play_moves_balance_by_ten(alice_client):
    alice_client.register()
    previous = alice_client.balance()
    for guess in (3, 50, 99, 0, 64):
        alice_client.play(guess)
        current = alice_client.balance()
        won = alice_client.last_game()["won"]
        assert current - previous == (10 if won else -10)
        previous = current


def test_history_keeps_only_latest_game(alice_client, ledger, coprocessor):
    alice_client.register()
    coprocessor.forced_draw = 5
    alice_client.play(1)
    first = ledger.get_last_game(alice_client.address)
    alice_client.play(2)
    second = ledger.get_last_game(alice_client.address)

    assert ledger.games_played(alice_client.address) == 2
    assert first.guess != second.guess
    assert first.draw != second.draw
    assert alice_client.last_game()["guess"] == 2


def test_draws_are_fresh_handles(alice_client, ledger):
    alice_client.register()
    seen = set()
    for _ in range(3):
        alice_client.play(10)
        seen.add(ledger.get_last_game(alice_client.address).draw)
    assert len(seen) == 3


def test_guess_out_of_range_is_refused_client_side(alice_client):
    alice_client.register()
    with pytest.raises(ValueError):
        alice_client.play(100)
    with pytest.raises(ValueError):
        alice_client.play(-1)


def test_proof_without_range_attestation_is_rejected(alice_client, ledger, coprocessor):
    alice_client.register()
    handle, proof = _guess(coprocessor, ledger, alice_client.address, 5, upper_bound=None)
    with pytest.raises(InvalidProof):
        ledger.play_game(alice_client.address, handle, proof)
    assert ledger.games_played(alice_client.address) == 0


def test_input_over_bound_cannot_be_attested(ledger, coprocessor, alice):
    with pytest.raises(InvalidProof):
        _guess(coprocessor, ledger, alice.address, 100)


def test_proof_for_someone_else_is_rejected(alice_client, bob_client, ledger, coprocessor):
    alice_client.register()
    bob_client.register()
    handle, proof = _guess(coprocessor, ledger, alice_client.address, 5)
    with pytest.raises(InvalidProof):
        ledger.play_game(bob_client.address, handle, proof)
    assert ledger.games_played(bob_client.address) == 0


def test_handle_from_another_ledger_is_rejected(alice_client, ledger, coprocessor, acl):
    alice_client.register()
    other = ArenaLedger(coprocessor, acl, OTHER_LEDGER)
    handle, proof = _guess(coprocessor, other, alice_client.address, 5)
    with pytest.raises(InvalidProof):
        ledger.play_game(alice_client.address, handle, proof)


def test_tampered_proof_is_rejected(alice_client, ledger, coprocessor):
    alice_client.register()
    handle, proof = _guess(coprocessor, ledger, alice_client.address, 5)
    tampered = proof[:-1] + bytes([proof[-1] ^ 1])
    with pytest.raises(InvalidProof):
        ledger.play_game(alice_client.address, handle, tampered)
    with pytest.raises(InvalidProof):
        ledger.play_game(alice_client.address, handle, b"")


def test_coprocessor_failure_mid_settlement_commits_nothing(alice_client, ledger, coprocessor):
    alice_client.register()
    balance = ledger.get_player_balance(alice_client.address)
    coprocessor.fail_on.add("eq")
    with pytest.raises(CoprocessorError):
        alice_client.play(10)
    assert ledger.get_player_balance(alice_client.address) == balance
    assert ledger.games_played(alice_client.address) == 0
    assert not ledger.get_last_game(alice_client.address).exists

    coprocessor.fail_on.clear()
    alice_client.play(10)
    assert ledger.games_played(alice_client.address) == 1


def test_events_carry_handles_and_counters_only(alice_client, ledger):
    alice_client.register()
    alice_client.play(10)
    alice_client.play(11)
    events = ledger.events(alice_client.address)
    assert [e.name for e in events] == ["PlayerRegistered", "GamePlayed", "GamePlayed"]
    assert events[2].args == {"player": alice_client.address, "game_id": 2}


def test_players_are_independent(alice_client, bob_client, ledger, coprocessor):
    alice_client.register()
    bob_client.register()
    coprocessor.forced_draw = 9
    alice_client.play(9)
    assert ledger.games_played(bob_client.address) == 0
    assert bob_client.balance() == 100
    assert alice_client.balance() == 110


def test_balance_wraps_without_floor(alice_client, coprocessor):
    alice_client.register()
    coprocessor.forced_draw = 0
    for _ in range(11):
        alice_client.play(1)
    assert alice_client.balance() == 2 ** 32 - 10


def test_balance_floor_at_zero(alice, coprocessor, acl, oracle, clock):
    from arena.client import ArenaClient

    ledger = ArenaLedger(coprocessor, acl, OTHER_LEDGER, floor_at_zero=True)
    client = ArenaClient(alice, ledger, coprocessor, oracle, clock=clock)
    client.register()
    coprocessor.forced_draw = 0
    for _ in range(11):
        client.play(1)
    assert client.balance() == 0
    client.play(0)
    assert client.balance() == 10
