"""Admin schedule endpoint."""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from dailyquiz.api import quiz as quiz_api
from dailyquiz.api import schedule as schedule_api


ADMIN_KEY = "test-admin-key"
MONDAY = date(2026, 10, 19)


@pytest.fixture
def today(monkeypatch):
    monkeypatch.setattr(schedule_api, "quiz_today", lambda: MONDAY)
    monkeypatch.setattr(quiz_api, "quiz_today", lambda: MONDAY)
    return MONDAY


async def _action(client: AsyncClient, **body):
    return await client.post("/quiz/schedule", json={"key": ADMIN_KEY, **body})


class TestScheduleActions:
    async def test_auto_fill_then_activate(self, client: AsyncClient, today, question_factory):
        snippet = await question_factory("snippet")
        await question_factory("trivia")

        response = await _action(client, action="auto-fill")
        assert response.json() == {"ok": True, "action": "auto-filled", "scheduled": 2}

        response = await _action(client, action="activate-today")
        data = response.json()
        assert data["action"] == "activated_new_quiz"
        assert isinstance(data["entry_id"], int)

        current = (await client.get("/quiz/current")).json()
        assert current["quiz"]["id"] == snippet.id

    async def test_daily_job(self, client: AsyncClient, today, question_factory):
        snippet = await question_factory("snippet")
        await question_factory("trivia")

        response = await _action(client, action="daily")

        data = response.json()
        assert (data["ok"], data["action"], data["scheduled"]) == (True, "daily", 2)
        assert isinstance(data["entry_id"], int)
        current = (await client.get("/quiz/current")).json()
        assert current["quiz"]["id"] == snippet.id

        # a second run the same day changes nothing
        again = (await _action(client, action="daily")).json()
        assert (again["scheduled"], again["entry_id"]) == (0, data["entry_id"])

    async def test_activate_without_entry(self, client: AsyncClient, today):
        response = await _action(client, action="activate-today")
        assert response.json() == {"ok": True, "action": "no_quiz_today"}

    async def test_manual_schedule(self, client: AsyncClient, today, question_factory):
        q = await question_factory("trivia")
        thursday = MONDAY + timedelta(days=3)

        response = await _action(client, action="schedule", question_id=q.id, date=thursday.isoformat())

        assert response.status_code == 200
        entry = response.json()["entry"]
        assert entry["scheduled_for"] == "2026-10-22"
        assert entry["type"] == "trivia"
        assert entry["question"]["id"] == q.id

    async def test_manual_schedule_errors(self, client: AsyncClient, today):
        response = await _action(client, action="schedule", date="2026-10-22")
        assert response.json()["error"] == "missing_fields"

        response = await _action(client, action="schedule", question_id=5, date="2026-10-22")
        assert response.status_code == 404
        assert response.json()["error"] == "question_not_found"

        response = await _action(client, action="schedule", question_id=5, date="next thursday")
        assert response.json()["error"] == "missing_fields"

    async def test_upcoming(self, client: AsyncClient, today, question_factory):
        await question_factory("snippet")
        await question_factory("trivia")
        await _action(client, action="auto-fill", horizon_days=7)

        response = await client.get("/quiz/schedule", params={"key": ADMIN_KEY})
        data = response.json()
        assert [e["scheduled_for"] for e in data["schedule"]] == ["2026-10-19", "2026-10-22"]
        assert len(data["available_questions"]) == 2

    async def test_admin_only_and_unknown_action(self, client: AsyncClient, today):
        assert (await client.get("/quiz/schedule")).status_code == 401
        assert (await client.post("/quiz/schedule", json={"action": "auto-fill"})).status_code == 401

        response = await _action(client, action="shuffle")
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_action"
