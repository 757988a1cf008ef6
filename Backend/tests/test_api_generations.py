"""
Generation API tests - the HTTP surface over the store and runner.
"""
import asyncio

import pytest

from dbcoach.core.exceptions import ErrorKind, GenerationError
from tests.conftest import ScriptedGenerator, fenced_json, settle


@pytest.mark.asyncio
async def test_no_session_yet(async_client):
    assert (await async_client.get("/api/generations/current")).status_code == 404
    progress = (await async_client.get("/api/generations/current/progress")).json()
    assert progress["percent"] == 0
    assert progress["current_phase_label"] is None


@pytest.mark.asyncio
async def test_start_and_complete(async_client, app):
    response = await async_client.post("/api/generations", json={
        "prompt": "Library with books and loans",
        "database_type": "SQL",
        "mode": "standard",
    })
    assert response.status_code == 202
    session_id = response.json()["session_id"]

    await settle(app.state.runner)

    current = (await async_client.get("/api/generations/current")).json()
    assert current["session_id"] == session_id
    assert current["status"] == "completed"
    assert current["completed_phases"] == ["analysis", "schema", "implementation", "validation"]
    assert current["request"]["database_type"] == "SQL"

    progress = (await async_client.get("/api/generations/current/progress")).json()
    assert progress["percent"] == 100

    slot = (await async_client.get("/api/generations/current/slots/schema")).json()
    assert slot["available"] is True
    assert slot["artifact"]["content"] == {"phase": "schema", "ok": True}


@pytest.mark.asyncio
async def test_unknown_slot_is_404(async_client, app):
    await async_client.post("/api/generations", json={"prompt": "Library"})
    await settle(app.state.runner)

    response = await async_client.get("/api/generations/current/slots/visualization")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_mode_is_400(async_client):
    response = await async_client.post("/api/generations", json={"prompt": "Library", "mode": "turbo"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_empty_prompt_is_400(async_client):
    response = await async_client.post("/api/generations", json={"prompt": "   "})
    assert response.status_code == 400


class TestWhileRunning:

    @pytest.fixture
    def release(self):
        return asyncio.Event()

    @pytest.fixture
    def app_generator(self, release):
        async def blocked(phase, context):
            await release.wait()
            return fenced_json({"late": True})

        return ScriptedGenerator({"schema": [blocked]})

    @pytest.mark.asyncio
    async def test_second_start_conflicts(self, async_client, app, release):
        first = await async_client.post("/api/generations", json={"prompt": "First"})
        assert first.status_code == 202

        second = await async_client.post("/api/generations", json={"prompt": "Second"})
        assert second.status_code == 409

        release.set()
        await settle(app.state.runner)

    @pytest.mark.asyncio
    async def test_cancel(self, async_client, app, release):
        await async_client.post("/api/generations", json={"prompt": "Library"})
        for _ in range(50):
            session = app.state.store.get_session()
            if session is not None and "analysis" in session.completed_phases:
                break
            await asyncio.sleep(0.01)

        response = await async_client.post("/api/generations/current/cancel")
        assert response.status_code == 202
        await settle(app.state.runner)

        current = (await async_client.get("/api/generations/current")).json()
        assert current["status"] == "failed"
        assert current["error_kind"] == ErrorKind.CANCELLED.value
        assert current["completed_phases"] == ["analysis"]

        # Nothing left to cancel
        assert (await async_client.post("/api/generations/current/cancel")).status_code == 409

    @pytest.mark.asyncio
    async def test_reset_cancels_and_clears(self, async_client, app):
        await async_client.post("/api/generations", json={"prompt": "Library"})
        await asyncio.sleep(0)

        response = await async_client.delete("/api/generations/current")
        assert response.status_code == 200
        assert app.state.store.get_session() is None
        assert (await async_client.get("/api/generations/current")).status_code == 404


class TestFailure:

    @pytest.fixture
    def app_generator(self):
        return ScriptedGenerator({
            "implementation": [GenerationError("implementation", "503", ErrorKind.UNAVAILABLE)] * 4,
        })

    @pytest.mark.asyncio
    async def test_failure_is_reported_with_partial_results(self, async_client, app, monkeypatch):
        from dbcoach.core.config import settings
        monkeypatch.setattr(settings.generation, "base_delay", 0.0)

        await async_client.post("/api/generations", json={"prompt": "Library"})
        await settle(app.state.runner)

        current = (await async_client.get("/api/generations/current")).json()
        assert current["status"] == "failed"
        assert current["error_kind"] == "retry_exhausted"
        assert set(current["artifacts"]) == {"analysis", "schema"}

        implementation = (await async_client.get("/api/generations/current/slots/implementation")).json()
        assert implementation["available"] is False
