"""Behaviour every ArcadeStore must share; runs against the memory and SQLite stores."""
import threading

import pytest

from arcade_index.errors import ConflictError, InvalidInputError, NotFoundError
from arcade_index.models.schemas import (
    STAT_TOTAL_GAMES_PLAYED,
    STAT_TOTAL_PLAYERS,
    STAT_TOTAL_XP_EARNED,
    GameType,
    ScoreSubmission,
)


def _submission(key, raw=10, xp=100, game=GameType.SPEED_CLICKER, submission_id=None, bonus=None):
    return ScoreSubmission(
        player_key=key,
        game_type=game,
        raw_score=raw,
        xp_earned=xp,
        bonus_data=bonus,
        submission_id=submission_id,
    )


@pytest.mark.unit
class TestPlayerRecords:

    def test_stats_seeded_at_zero(self, store):
        assert store.get_stats() == {
            STAT_TOTAL_PLAYERS: 0,
            STAT_TOTAL_GAMES_PLAYED: 0,
            STAT_TOTAL_XP_EARNED: 0,
        }

    def test_upsert_creates_with_zero_counters(self, store):
        player, created = store.upsert_player("alice", "Alice", "shard-1")
        assert created
        assert player.total_xp == 0
        assert player.games_played == 0
        assert player.level == 1
        assert player.shard_ref == "shard-1"
        assert store.get_stats()[STAT_TOTAL_PLAYERS] == 1

    def test_re_upsert_renames_only(self, store):
        store.upsert_player("alice", "Alice")
        store.apply_xp_delta("alice", 250)
        player, created = store.upsert_player("alice", "Alice2")
        assert not created
        assert player.display_name == "Alice2"
        assert player.total_xp == 250
        assert player.games_played == 1
        assert store.get_stats()[STAT_TOTAL_PLAYERS] == 1

    def test_get_unknown_player(self, store):
        assert store.get_player("nobody") is None

    def test_apply_xp_delta(self, store):
        store.upsert_player("alice", "Alice")
        player = store.apply_xp_delta("alice", 200)
        assert (player.total_xp, player.games_played, player.level) == (200, 1, 2)
        player = store.apply_xp_delta("alice", 200)
        assert (player.total_xp, player.games_played, player.level) == (400, 2, 3)

    def test_apply_xp_delta_unknown_player(self, store):
        with pytest.raises(NotFoundError):
            store.apply_xp_delta("ghost", 10)

    def test_negative_delta_corrects_xp(self, store):
        store.upsert_player("alice", "Alice")
        store.apply_xp_delta("alice", 100)
        player = store.apply_xp_delta("alice", -40)
        assert (player.total_xp, player.games_played) == (60, 2)

    def test_delta_below_zero_writes_nothing(self, store):
        store.upsert_player("alice", "Alice")
        store.upsert_player("bob", "Bob")
        store.apply_xp_delta("alice", 100)

        with pytest.raises(InvalidInputError):
            store.apply_xp_delta("alice", -500)

        alice = store.get_player("alice")
        assert (alice.total_xp, alice.games_played) == (100, 1)
        assert [p.identity_key for p in store.list_players()] == ["alice", "bob"]
        assert store.player_rank("alice") == 1
        _, top = store.stats_snapshot()
        assert top.identity_key == "alice"

    def test_list_and_rank_order(self, store):
        for key in ["carol", "bob", "alice"]:
            store.upsert_player(key, key.title())
        store.apply_xp_delta("bob", 50)
        assert [p.identity_key for p in store.list_players()] == ["bob", "alice", "carol"]
        assert [p.identity_key for p in store.top_players(2)] == ["bob", "alice"]
        assert store.player_rank("bob") == 1
        assert store.player_rank("alice") == 2
        assert store.player_rank("carol") == 3
        assert store.player_rank("dave") is None

    def test_delete_player_cascades_scores(self, store):
        store.upsert_player("alice", "Alice")
        store.upsert_player("bob", "Bob")
        store.record_submission(_submission("alice", submission_id="s1"))
        store.record_submission(_submission("bob"))

        assert store.delete_player("alice")
        assert store.get_player("alice") is None
        assert [s.player_key for s in store.recent_scores(10)] == ["bob"]
        # counters only ever increase
        assert store.get_stats()[STAT_TOTAL_GAMES_PLAYED] == 2
        assert not store.delete_player("alice")

    def test_reregistered_player_can_reuse_submission_id(self, store):
        store.upsert_player("alice", "Alice")
        store.record_submission(_submission("alice", submission_id="s1"))
        store.delete_player("alice")
        store.upsert_player("alice", "Alice")
        _, player, created = store.record_submission(_submission("alice", submission_id="s1"))
        assert created
        assert player.total_xp == 100


@pytest.mark.unit
class TestScoreRecords:

    def test_append_requires_player(self, store):
        with pytest.raises(NotFoundError):
            store.append_score(_submission("ghost"))
        assert store.recent_scores(10) == []

    def test_append_assigns_increasing_ids(self, store):
        store.upsert_player("alice", "Alice")
        first = store.append_score(_submission("alice"))
        second = store.append_score(_submission("alice"))
        assert second.id > first.id
        assert first.player_name == "Alice"
        # appending alone does not credit XP
        assert store.get_player("alice").total_xp == 0

    def test_record_submission_applies_all_effects(self, store):
        store.upsert_player("alice", "Alice")
        score, player, created = store.record_submission(_submission("alice", raw=20, xp=200, bonus=3))
        assert created
        assert (score.raw_score, score.xp_earned, score.bonus_data) == (20, 200, 3)
        assert score.player_name == "Alice"
        assert (player.total_xp, player.level, player.games_played) == (200, 3, 1)
        stats = store.get_stats()
        assert stats[STAT_TOTAL_GAMES_PLAYED] == 1
        assert stats[STAT_TOTAL_XP_EARNED] == 200

    def test_record_submission_unknown_player_changes_nothing(self, store):
        with pytest.raises(NotFoundError):
            store.record_submission(_submission("ghost"))
        assert store.recent_scores(10) == []
        assert store.get_stats()[STAT_TOTAL_GAMES_PLAYED] == 0

    def test_replay_returns_stored_record(self, store):
        store.upsert_player("alice", "Alice")
        first, _, created = store.record_submission(_submission("alice", submission_id="tx-1"))
        again, player, replay_created = store.record_submission(_submission("alice", submission_id="tx-1"))
        assert created and not replay_created
        assert again.id == first.id
        assert player.total_xp == 100
        assert player.games_played == 1
        assert store.get_stats()[STAT_TOTAL_XP_EARNED] == 100
        assert len(store.recent_scores(10)) == 1

    def test_submission_id_reused_with_other_payload(self, store):
        store.upsert_player("alice", "Alice")
        store.record_submission(_submission("alice", raw=10, submission_id="tx-1"))
        with pytest.raises(ConflictError):
            store.record_submission(_submission("alice", raw=11, submission_id="tx-1"))
        assert store.get_player("alice").total_xp == 100
        assert store.get_stats()[STAT_TOTAL_GAMES_PLAYED] == 1

    def test_submission_id_scoped_per_player(self, store):
        store.upsert_player("alice", "Alice")
        store.upsert_player("bob", "Bob")
        _, _, a_created = store.record_submission(_submission("alice", submission_id="tx-1"))
        _, _, b_created = store.record_submission(_submission("bob", submission_id="tx-1"))
        assert a_created and b_created

    def test_recent_scores_newest_first(self, store):
        store.upsert_player("alice", "Alice")
        ids = [store.record_submission(_submission("alice", raw=i))[0].id for i in range(5)]
        recent = store.recent_scores(3)
        assert [s.id for s in recent] == list(reversed(ids))[:3]

    def test_scores_for_game(self, store):
        store.upsert_player("alice", "Alice")
        for raw in [10, 50, 30]:
            store.record_submission(_submission("alice", raw=raw))
        store.record_submission(_submission("alice", raw=99, game=GameType.AIM_TRAINER))
        scores = store.scores_for_game(GameType.SPEED_CLICKER, 10)
        assert [s.raw_score for s in scores] == [50, 30, 10]
        assert [s.raw_score for s in store.scores_for_game(GameType.SPEED_CLICKER, 2)] == [50, 30]
        assert [s.raw_score for s in store.all_scores_for_game(GameType.SPEED_CLICKER)] == [10, 50, 30]


@pytest.mark.unit
class TestCounters:

    def test_increment_stat(self, store):
        assert store.increment_stat(STAT_TOTAL_XP_EARNED, 5) == 5
        assert store.increment_stat(STAT_TOTAL_XP_EARNED) == 6

    def test_unknown_stat(self, store):
        with pytest.raises(KeyError):
            store.increment_stat("total_everything")

    def test_stats_snapshot(self, store):
        stats, top = store.stats_snapshot()
        assert top is None
        store.upsert_player("alice", "Alice")
        store.upsert_player("bob", "Bob")
        store.record_submission(_submission("bob", xp=900))
        stats, top = store.stats_snapshot()
        assert top.identity_key == "bob"
        assert stats[STAT_TOTAL_PLAYERS] == 2


@pytest.mark.unit
@pytest.mark.slow
def test_concurrent_submissions_lose_no_xp(store):
    """Interleaved writers for two players: each total equals the sum of its deltas."""
    store.upsert_player("alice", "Alice")
    store.upsert_player("bob", "Bob")
    errors = []

    def submit(key, xp, count):
        try:
            for _ in range(count):
                store.record_submission(_submission(key, xp=xp))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=submit, args=(key, xp, 10))
               for key, xp in [("alice", 7), ("bob", 3)] * 3]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    alice, bob = store.get_player("alice"), store.get_player("bob")
    assert (alice.total_xp, alice.games_played) == (7 * 30, 30)
    assert (bob.total_xp, bob.games_played) == (3 * 30, 30)
    stats = store.get_stats()
    assert stats[STAT_TOTAL_GAMES_PLAYED] == 60
    assert stats[STAT_TOTAL_XP_EARNED] == 7 * 30 + 3 * 30


def _run_threads(targets):
    errors = []

    def guarded(fn):
        try:
            fn()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=guarded, args=(fn,)) for fn in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


@pytest.mark.unit
@pytest.mark.slow
def test_concurrent_upserts_register_once(store):
    names = [f"Alice{i}" for i in range(8)]
    errors = _run_threads([lambda name=name: store.upsert_player("alice", name) for name in names])

    assert errors == []
    assert store.get_stats()[STAT_TOTAL_PLAYERS] == 1
    assert len(store.list_players()) == 1
    assert store.get_player("alice").display_name in names


@pytest.mark.unit
@pytest.mark.slow
def test_concurrent_xp_deltas_sum_exactly(store):
    store.upsert_player("alice", "Alice")
    deltas = [5, 11, 20, 3, 8, 13, 2, 40] * 2
    errors = _run_threads([lambda d=d: store.apply_xp_delta("alice", d) for d in deltas])

    assert errors == []
    alice = store.get_player("alice")
    assert alice.total_xp == sum(deltas)
    assert alice.games_played == len(deltas)
