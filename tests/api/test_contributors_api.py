"""Contributor invites and registration."""

import re

from httpx import AsyncClient
from sqlalchemy import select

from dailyquiz.models.question import Contributor, Question


ADMIN_KEY = "test-admin-key"


async def _invite(client: AsyncClient, name=None) -> dict:
    response = await client.post("/quiz/contributors", json={"key": ADMIN_KEY, "action": "create-invite", "name": name})
    assert response.status_code == 200
    return response.json()


async def _register(client: AsyncClient, login, user_id: str, code: str, name: str = "DJ Shiva"):
    return await client.post(
        "/quiz/contributors/register",
        json={"invite_code": code, "name": name, "photo_url": "https://img.example/shiva.png"},
        headers=login(user_id),
    )


class TestInvites:
    async def test_create_invite(self, client: AsyncClient):
        data = await _invite(client)
        code = data["contributor"]["invite_code"]

        assert re.fullmatch(r"[0-9a-f]{16}", code)
        assert data["invite_link"].endswith(code)
        assert data["contributor"]["name"] == "pending registration"
        assert data["contributor"]["is_active"] is True
        assert data["contributor"]["user_id"] is None

    async def test_codes_are_unique(self, client: AsyncClient):
        codes = {(await _invite(client))["contributor"]["invite_code"] for _ in range(5)}
        assert len(codes) == 5

    async def test_list_newest_first(self, client: AsyncClient):
        first = (await _invite(client, name="first"))["contributor"]["id"]
        second = (await _invite(client, name="second"))["contributor"]["id"]

        response = await client.get("/quiz/contributors", params={"key": ADMIN_KEY})
        assert [c["id"] for c in response.json()["contributors"]] == [second, first]

    async def test_admin_only(self, client: AsyncClient):
        assert (await client.get("/quiz/contributors")).status_code == 401
        response = await client.post("/quiz/contributors", json={"key": "nope", "action": "create-invite"})
        assert response.status_code == 401

    async def test_unknown_action(self, client: AsyncClient):
        response = await client.post("/quiz/contributors", json={"key": ADMIN_KEY, "action": "promote"})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_action"

    async def test_toggle_unknown_contributor(self, client: AsyncClient):
        response = await client.post(
            "/quiz/contributors", json={"key": ADMIN_KEY, "action": "deactivate", "contributor_id": 999}
        )
        assert response.status_code == 404
        assert response.json()["error"] == "contributor_not_found"


class TestRegistration:
    async def test_register_binds_identity(self, client: AsyncClient, login):
        code = (await _invite(client))["contributor"]["invite_code"]

        response = await _register(client, login, "user-1", code)

        assert response.status_code == 200
        data = response.json()
        assert data["already_registered"] is False
        assert data["contributor"]["user_id"] == "user-1"
        assert data["contributor"]["name"] == "DJ Shiva"

    async def test_same_identity_again_is_idempotent(self, client: AsyncClient, login):
        code = (await _invite(client))["contributor"]["invite_code"]
        await _register(client, login, "user-1", code)

        response = await _register(client, login, "user-1", code)
        assert response.status_code == 200
        assert response.json()["already_registered"] is True

    async def test_other_identity_refused(self, client: AsyncClient, login):
        code = (await _invite(client))["contributor"]["invite_code"]
        await _register(client, login, "user-1", code)

        response = await _register(client, login, "user-2", code)
        assert response.status_code == 400
        assert response.json()["error"] == "invite_already_used"

    async def test_one_invite_per_identity(self, client: AsyncClient, login):
        first = (await _invite(client))["contributor"]["invite_code"]
        second = (await _invite(client))["contributor"]["invite_code"]
        await _register(client, login, "user-1", first)

        response = await _register(client, login, "user-1", second)
        assert response.json()["error"] == "identity_already_registered"

    async def test_unknown_code(self, client: AsyncClient, login):
        response = await _register(client, login, "user-1", "0000000000000000")
        assert response.status_code == 404
        assert response.json()["error"] == "invalid_invite_code"

    async def test_deactivated_invite(self, client: AsyncClient, login):
        invite = (await _invite(client))["contributor"]
        await client.post(
            "/quiz/contributors", json={"key": ADMIN_KEY, "action": "deactivate", "contributor_id": invite["id"]}
        )

        response = await _register(client, login, "user-1", invite["invite_code"])
        assert response.json()["error"] == "invite_deactivated"

    async def test_requires_login_and_fields(self, client: AsyncClient, login):
        code = (await _invite(client))["contributor"]["invite_code"]

        response = await client.post("/quiz/contributors/register", json={"invite_code": code, "name": "x"})
        assert response.status_code == 401

        response = await _register(client, login, "user-1", code, name="   ")
        assert response.json()["error"] == "missing_fields"


class TestContributorLifecycle:
    async def test_deactivate_blocks_submissions_then_reactivate(self, client: AsyncClient, login):
        invite = (await _invite(client))["contributor"]
        await _register(client, login, "user-1", invite["invite_code"])
        trivia = {"type": "trivia", "question_text": "Label of Astrix?", "accepted_answers": ["HOMmega"]}

        assert (await client.post("/quiz/questions", json=trivia, headers=login("user-1"))).status_code == 200

        response = await client.post(
            "/quiz/contributors", json={"key": ADMIN_KEY, "action": "deactivate", "contributor_id": invite["id"]}
        )
        assert response.json() == {"ok": True, "action": "deactivated"}
        response = await client.post("/quiz/questions", json=trivia, headers=login("user-1"))
        assert response.json()["error"] == "not_contributor"

        await client.post(
            "/quiz/contributors", json={"key": ADMIN_KEY, "action": "activate", "contributor_id": invite["id"]}
        )
        assert (await client.post("/quiz/questions", json=trivia, headers=login("user-1"))).status_code == 200

    async def test_delete_keeps_questions(self, client: AsyncClient, login, db_session):
        invite = (await _invite(client))["contributor"]
        await _register(client, login, "user-1", invite["invite_code"])
        submitted = await client.post(
            "/quiz/questions",
            json={"type": "trivia", "question_text": "Label of Astrix?", "accepted_answers": ["HOMmega"]},
            headers=login("user-1"),
        )
        question_id = submitted.json()["question_id"]

        response = await client.post(
            "/quiz/contributors", json={"key": ADMIN_KEY, "action": "delete", "contributor_id": invite["id"]}
        )
        assert response.json() == {"ok": True, "action": "deleted"}

        assert await db_session.scalar(select(Contributor.id).where(Contributor.id == invite["id"])) is None
        row = (
            await db_session.execute(select(Question.id, Question.contributor_id).where(Question.id == question_id))
        ).one()
        assert row.contributor_id is None
