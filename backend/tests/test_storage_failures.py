"""
mdnotes Backend - Storage Failure Tests
=========================================

What:  How the HTTP layer behaves when the store fails underneath it.
How:   Replaces methods of the bound NoteRepository / SessionStore with
       AsyncMocks raising StorageError.
"""

from unittest.mock import AsyncMock

import pytest

from mdnotes.exceptions import StorageError


class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_repository_failure_is_a_generic_500(self, app, auth_client, monkeypatch):
        monkeypatch.setattr(
            app.state.notes,
            "list",
            AsyncMock(side_effect=StorageError(context={"error_type": "OperationalError"})),
        )

        response = await auth_client.get("/notes")

        assert response.status_code == 500
        assert response.json() == {"error": "database error"}

    @pytest.mark.asyncio
    async def test_session_lookup_failure_is_a_500(self, app, auth_client, monkeypatch):
        monkeypatch.setattr(app.state.sessions, "validate", AsyncMock(side_effect=StorageError()))

        status = await auth_client.get("/auth/session")
        notes = await auth_client.get("/notes")

        assert status.status_code == 500
        assert notes.status_code == 500

    @pytest.mark.asyncio
    async def test_logout_succeeds_even_if_revoke_fails(self, app, auth_client, monkeypatch):
        revoke = AsyncMock(side_effect=StorageError())
        monkeypatch.setattr(app.state.sessions, "revoke", revoke)

        response = await auth_client.post("/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        revoke.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_login_fails_when_session_cannot_be_stored(self, app, test_client, settings, monkeypatch):
        monkeypatch.setattr(
            app.state.sessions,
            "issue",
            AsyncMock(side_effect=StorageError(message="failed to create session")),
        )

        response = await test_client.post("/auth/login", json={"password": settings.app_password})

        assert response.status_code == 500
        assert response.json() == {"error": "failed to create session"}
        assert "set-cookie" not in response.headers
