import threading

import pytest

from arcade_index.db.memory_provider import InMemoryStore
from arcade_index.errors import NotFoundError
from arcade_index.models.schemas import GameType, ScoreSubmission
from arcade_index.progression import level_for_xp


@pytest.fixture
def memory_store():
    store = InMemoryStore()
    store.init_db()
    return store


@pytest.mark.unit
class TestInMemoryStore:

    def test_records_are_replaced_not_mutated(self, memory_store):
        before, _ = memory_store.upsert_player("alice", "Alice")
        memory_store.apply_xp_delta("alice", 100)
        assert before.total_xp == 0
        assert memory_store.get_player("alice").total_xp == 100

    def test_level_follows_xp(self, memory_store):
        memory_store.upsert_player("alice", "Alice")
        for _ in range(4):
            player = memory_store.apply_xp_delta("alice", 100)
            assert player.level == level_for_xp(player.total_xp)
        assert memory_store.get_player("alice").level == 3

    def test_score_name_reflects_rename(self, memory_store):
        memory_store.upsert_player("alice", "Alice")
        memory_store.append_score(ScoreSubmission(
            player_key="alice", game_type=GameType.MATH_BLITZ, raw_score=1, xp_earned=1,
        ))
        memory_store.upsert_player("alice", "Alicia")
        assert memory_store.recent_scores(1)[0].player_name == "Alicia"

    def test_readers_never_see_half_applied_submission(self, memory_store):
        """XP, games played and the counters move together."""
        memory_store.upsert_player("alice", "Alice")
        stop = threading.Event()
        torn = []

        def reader():
            while not stop.is_set():
                stats, top = memory_store.stats_snapshot()
                if top is not None and top.total_xp != stats["total_xp_earned"]:
                    torn.append((top.total_xp, stats["total_xp_earned"]))
                if top is not None and top.total_xp != top.games_played * 10:
                    torn.append((top.total_xp, top.games_played))

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for _ in range(300):
                memory_store.record_submission(ScoreSubmission(
                    player_key="alice", game_type=GameType.MATH_BLITZ, raw_score=1, xp_earned=10,
                ))
        finally:
            stop.set()
            thread.join()

        assert torn == []
        assert memory_store.get_player("alice").total_xp == 3000

    def test_key_locks_released_after_writes(self, memory_store):
        for i in range(50):
            memory_store.upsert_player(f"player-{i}", f"Player {i}")
        memory_store.apply_xp_delta("player-0", 10)
        with pytest.raises(NotFoundError):
            memory_store.apply_xp_delta("ghost", 10)
        with pytest.raises(NotFoundError):
            memory_store.record_submission(ScoreSubmission(
                player_key="ghost", game_type=GameType.MATH_BLITZ, raw_score=1, xp_earned=1,
            ))
        memory_store.delete_player("player-1")
        assert memory_store._key_locks == {}

    def test_waiting_writer_keeps_key_lock(self, memory_store):
        memory_store.upsert_player("alice", "Alice")
        with memory_store._key_lock("alice"):
            writer = threading.Thread(target=memory_store.apply_xp_delta, args=("alice", 10))
            writer.start()
            writer.join(timeout=0.2)
            assert writer.is_alive()
            assert list(memory_store._key_locks) == ["alice"]
        writer.join()
        assert memory_store.get_player("alice").total_xp == 10
        assert memory_store._key_locks == {}
