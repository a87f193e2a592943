"""
SmartNotes Backend — API Route Tests
======================================

What:  End-to-end HTTP behaviour through the FastAPI app: auth, status codes
       and the error response format.
How:   HTTPX AsyncClient over ASGITransport; the lifecycle manager is the
       SQLite + stub summarizer one from conftest.
"""

import asyncio
from uuid import uuid4

import pytest

from smartnotes.exceptions import CircuitBreakerOpenError, SummarizationFailedError


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice_headers(make_token):
    return auth(make_token(sub="user-alice", email="alice@example.com",
                           user_metadata={"firstName": "Alice"}))


@pytest.fixture
def bob_headers(make_token):
    return auth(make_token(sub="user-bob", email="bob@example.com"))


async def create(client, headers, content="hello", title=None):
    response = await client.post(
        "/api/notes", json={"content": content, "title": title}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestIdentity:

    @pytest.mark.asyncio
    async def test_me(self, test_client, alice_headers):
        response = await test_client.get("/api/me", headers=alice_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "user-alice"
        assert body["greeting_name"] == "Alice"

    @pytest.mark.asyncio
    async def test_me_anonymous(self, test_client):
        response = await test_client.get("/api/me")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_invalid_token_is_401_not_anonymous(self, test_client):
        response = await test_client.get("/api/notes", headers=auth("garbage"))
        assert response.status_code == 401


class TestNotesRoutes:

    @pytest.mark.asyncio
    async def test_create_and_list(self, test_client, alice_headers):
        await create(test_client, alice_headers, "first")
        await asyncio.sleep(0.01)
        second = await create(test_client, alice_headers, "second", title="Two")

        response = await test_client.get("/api/notes", headers=alice_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 2
        assert body["notes"][0]["id"] == second["id"]
        assert body["notes"][0]["title"] == "Two"
        assert body["notes"][0]["state"] == "idle"
        assert response.headers["Cache-Control"] == "private, no-cache"

    @pytest.mark.asyncio
    async def test_anonymous_list_is_empty(self, test_client):
        response = await test_client.get("/api/notes")
        assert response.status_code == 200
        assert response.json() == {"notes": [], "total_count": 0}

    @pytest.mark.asyncio
    async def test_create_requires_login(self, test_client):
        response = await test_client.post("/api/notes", json={"content": "hi"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_blank_content(self, test_client, alice_headers):
        response = await test_client.post(
            "/api/notes", json={"content": "   "}, headers=alice_headers
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "content"
        assert body["request_id"]

    @pytest.mark.asyncio
    async def test_duplicate_title(self, test_client, alice_headers):
        await create(test_client, alice_headers, "a", title="Plans")
        response = await test_client.post(
            "/api/notes", json={"content": "b", "title": "Plans"}, headers=alice_headers
        )
        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_title"

    @pytest.mark.asyncio
    async def test_get_update_delete(self, test_client, alice_headers):
        note = await create(test_client, alice_headers, "v1")
        url = f"/api/notes/{note['id']}"

        assert (await test_client.get(url, headers=alice_headers)).json()["content"] == "v1"

        response = await test_client.put(url, json={"content": "v2"}, headers=alice_headers)
        assert response.status_code == 200
        assert response.json()["content"] == "v2"
        assert response.json()["id"] == note["id"]

        assert (await test_client.delete(url, headers=alice_headers)).status_code == 204
        assert (await test_client.delete(url, headers=alice_headers)).status_code == 204
        assert (await test_client.get(url, headers=alice_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_other_users_note(self, test_client, alice_headers, bob_headers):
        note = await create(test_client, alice_headers, "private")
        url = f"/api/notes/{note['id']}"

        assert (await test_client.get(url, headers=bob_headers)).status_code == 404
        response = await test_client.put(url, json={"content": "x"}, headers=bob_headers)
        assert response.status_code == 404
        response = await test_client.delete(url, headers=bob_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"
        response = await test_client.post(f"{url}/summarize", headers=bob_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_malformed_note_id(self, test_client, alice_headers):
        response = await test_client.get("/api/notes/not-a-uuid", headers=alice_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_edit_mode(self, test_client, alice_headers):
        note = await create(test_client, alice_headers, "v1")
        url = f"/api/notes/{note['id']}"

        response = await test_client.post(f"{url}/editing", headers=alice_headers)
        assert response.json()["state"] == "editing"

        response = await test_client.delete(f"{url}/editing", headers=alice_headers)
        assert response.json()["state"] == "idle"

    @pytest.mark.asyncio
    async def test_edit_mode_left_open_does_not_block_summarize(
        self, test_client, alice_headers
    ):
        note = await create(test_client, alice_headers, "v1")
        url = f"/api/notes/{note['id']}"
        await test_client.post(f"{url}/editing", headers=alice_headers)

        response = await test_client.post(f"{url}/summarize", headers=alice_headers)
        assert response.status_code == 200
        assert response.json()["summary"] == "Summary of: v1"
        assert response.json()["state"] == "idle"


class TestSummarizeRoutes:

    @pytest.mark.asyncio
    async def test_summarize_note(self, test_client, alice_headers):
        note = await create(test_client, alice_headers, "The quick brown fox...")

        response = await test_client.post(
            f"/api/notes/{note['id']}/summarize", headers=alice_headers
        )
        assert response.status_code == 200
        assert response.json()["summary"] == "Summary of: The quick brown fox..."

        listed = await test_client.get("/api/notes", headers=alice_headers)
        assert listed.json()["notes"][0]["summary"] == "Summary of: The quick brown fox..."

    @pytest.mark.asyncio
    async def test_summarize_with_snapshot(self, test_client, summarizer, alice_headers):
        note = await create(test_client, alice_headers, "displayed")
        response = await test_client.post(
            f"/api/notes/{note['id']}/summarize",
            json={"content": "displayed"},
            headers=alice_headers,
        )
        assert response.status_code == 200
        assert summarizer.calls == ["displayed"]

    @pytest.mark.asyncio
    async def test_summarize_failure(self, test_client, summarizer, alice_headers):
        note = await create(test_client, alice_headers, "content")
        summarizer.error = RuntimeError("secret upstream detail")

        response = await test_client.post(
            f"/api/notes/{note['id']}/summarize", headers=alice_headers
        )
        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "summarization_failed"
        assert "secret upstream detail" not in response.text

        current = await test_client.get(f"/api/notes/{note['id']}", headers=alice_headers)
        assert current.json()["summary"] is None
        assert current.json()["state"] == "idle"

    @pytest.mark.asyncio
    async def test_summarize_circuit_open(self, test_client, summarizer, alice_headers):
        note = await create(test_client, alice_headers, "content")
        summarizer.error = CircuitBreakerOpenError(recovery_time=42)

        response = await test_client.post(
            f"/api/notes/{note['id']}/summarize", headers=alice_headers
        )
        assert response.status_code == 503
        assert response.headers["Retry-After"] == "42"

    @pytest.mark.asyncio
    async def test_summarize_in_progress(self, test_client, summarizer, alice_headers):
        note = await create(test_client, alice_headers, "content")
        url = f"/api/notes/{note['id']}/summarize"
        summarizer.gate = asyncio.Event()

        first = asyncio.create_task(test_client.post(url, headers=alice_headers))
        await summarizer.started.wait()
        second = await test_client.post(url, headers=alice_headers)
        summarizer.gate.set()

        assert second.status_code == 409
        assert second.json()["error"] == "summarization_in_progress"
        assert (await first).status_code == 200
        assert len(summarizer.calls) == 1

    @pytest.mark.asyncio
    async def test_stale_summary(self, test_client, summarizer, alice_headers):
        note = await create(test_client, alice_headers, "old")
        url = f"/api/notes/{note['id']}"
        summarizer.gate = asyncio.Event()

        pending = asyncio.create_task(test_client.post(f"{url}/summarize", headers=alice_headers))
        await summarizer.started.wait()
        await test_client.put(url, json={"content": "new"}, headers=alice_headers)
        summarizer.gate.set()

        response = await pending
        assert response.status_code == 409
        assert response.json()["error"] == "stale_summary"

    @pytest.mark.asyncio
    async def test_summarize_missing_note(self, test_client, alice_headers):
        response = await test_client.post(
            f"/api/notes/{uuid4()}/summarize", headers=alice_headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_standalone_summarize(self, test_client, alice_headers):
        response = await test_client.post(
            "/api/summarize", json={"content": "some text"}, headers=alice_headers
        )
        assert response.status_code == 200
        assert response.json() == {"summary": "Summary of: some text"}

    @pytest.mark.asyncio
    async def test_standalone_summarize_no_content(self, test_client, alice_headers):
        response = await test_client.post("/api/summarize", json={}, headers=alice_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "No content provided"

    @pytest.mark.asyncio
    async def test_standalone_summarize_requires_login(self, test_client):
        response = await test_client.post("/api/summarize", json={"content": "x"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_standalone_summarize_failure(self, test_client, summarizer, alice_headers):
        summarizer.error = SummarizationFailedError(upstream_message="quota exceeded")
        response = await test_client.post(
            "/api/summarize", json={"content": "x"}, headers=alice_headers
        )
        assert response.status_code == 502
        assert "quota exceeded" not in response.text


class TestHealthAndMiddleware:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_health_degraded_without_summarizer(self, test_client, summarizer):
        summarizer.healthy = False
        response = await test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, test_client):
        response = await test_client.get("/api/notes")
        assert len(response.headers["X-Request-ID"]) == 8
