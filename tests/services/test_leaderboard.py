"""Leaderboard aggregation."""

from dailyquiz.models.game import Profile, Score
from dailyquiz.services.leaderboard import MAX_LIMIT, clamp_limit, compute_leaderboard


async def _seed(session, scores, profiles=()):
    for user_id, question_id, points in scores:
        session.add(Score(user_id=user_id, question_id=question_id, points_earned=points, attempts_used=4 - points))
    for user_id, name in profiles:
        session.add(Profile(user_id=user_id, display_name=name))
    await session.commit()


class TestClampLimit:
    def test_defaults_and_bounds(self):
        assert clamp_limit(None) == 10
        assert clamp_limit(0) == 10
        assert clamp_limit(-3) == 10
        assert clamp_limit(5) == 5
        assert clamp_limit(10_000) == MAX_LIMIT


class TestComputeLeaderboard:
    async def test_totals_and_order(self, db_session):
        await _seed(
            db_session,
            [("carol", 1, 3), ("carol", 2, 3), ("bob", 1, 2), ("bob", 2, 3), ("alice", 1, 1), ("alice", 3, 3), ("alice", 4, 1)],
            profiles=[("alice", "Alice"), ("carol", "Carol")],
        )

        rows = await compute_leaderboard(db_session, limit=10)

        # bob and alice tie on 5; equal totals ordered by user id
        assert [(r["rank"], r["user_id"], r["total_points"], r["questions_answered"]) for r in rows] == [
            (1, "carol", 6, 2),
            (2, "alice", 5, 3),
            (3, "bob", 5, 2),
        ]

    async def test_missing_profile_is_anonymous(self, db_session):
        await _seed(db_session, [("ghost", 1, 3)])

        rows = await compute_leaderboard(db_session)
        assert rows[0]["display_name"] == "anonymous"
        assert rows[0]["photo_url"] is None

    async def test_limit(self, db_session):
        await _seed(db_session, [(f"user-{i:02d}", 1, 1) for i in range(15)])

        assert len(await compute_leaderboard(db_session, limit=3)) == 3
        assert len(await compute_leaderboard(db_session, limit=None)) == 10

    async def test_empty(self, db_session):
        assert await compute_leaderboard(db_session) == []
