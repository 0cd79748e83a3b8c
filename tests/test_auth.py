import asyncio

import pytest
from fastapi.testclient import TestClient
from mcp.shared.auth import OAuthClientInformationFull, OAuthToken
from pydantic import AnyUrl

from foodchat.errors import AuthorizationError, AuthorizationTimeoutError
from foodchat.mcp.auth import FileTokenStorage, PendingAuthorization, clean_stale_auth_files
from tests.conftest import AUTH_URL


async def test_pending_authorization_complete():
    authorization = PendingAuthorization()
    authorization.set_url(AUTH_URL)

    waiter = asyncio.create_task(authorization.wait_for_code(5))
    await asyncio.sleep(0)

    assert authorization.complete("code-1", "state-1")
    assert await waiter == ("code-1", "state-1")
    assert authorization.done
    assert authorization.url == AUTH_URL
    assert not authorization.complete("code-2")
    assert not authorization.reject("too late")


async def test_pending_authorization_reject():
    authorization = PendingAuthorization()

    assert authorization.reject("access_denied")
    with pytest.raises(AuthorizationError, match="Authorization rejected: access_denied"):
        await authorization.wait_for_code(5)


async def test_pending_authorization_timeout():
    authorization = PendingAuthorization()

    with pytest.raises(AuthorizationTimeoutError):
        await authorization.wait_for_code(0.05)
    # A late callback still lands
    assert authorization.complete("late")


async def test_pending_authorization_cancel():
    authorization = PendingAuthorization()
    authorization.cancel()

    assert authorization.done
    assert not authorization.complete("code")
    with pytest.raises(asyncio.CancelledError):
        await authorization.wait_for_code(5)


def test_clean_stale_auth_files(tmp_path):
    stale = tmp_path / "mcp-remote-0.1.18"
    stale.mkdir()
    (stale / "abc_tokens.json").write_text("{}")
    (stale / "abc_lock.json").write_text("{}")
    keep = tmp_path / "README"
    keep.write_text("not a directory")

    removed = clean_stale_auth_files(tmp_path)

    assert removed == [stale]
    assert not stale.exists()
    assert keep.exists()


def test_clean_stale_auth_files_missing_dir(tmp_path):
    assert clean_stale_auth_files(tmp_path / "missing") == []


async def test_file_token_storage(tmp_path):
    storage = FileTokenStorage(tmp_path / "oauth")
    assert await storage.get_tokens() is None
    assert await storage.get_client_info() is None

    await storage.set_tokens(OAuthToken(access_token="access", token_type="Bearer", refresh_token="refresh"))
    await storage.set_client_info(
        OAuthClientInformationFull(client_id="client-1", redirect_uris=[AnyUrl("http://localhost:3000/oauth/callback")])
    )

    tokens = await storage.get_tokens()
    assert tokens.access_token == "access"
    assert tokens.refresh_token == "refresh"
    assert (await storage.get_client_info()).client_id == "client-1"

    storage.clear()
    assert await storage.get_tokens() is None
    assert await storage.get_client_info() is None
    storage.clear()


def test_oauth_callback_without_pending(client: TestClient):
    response = client.get("/oauth/callback", params={"code": "abc", "state": "xyz"})

    assert response.status_code == 409
    assert "No authorization is pending" in response.text


def test_oauth_callback_error(client: TestClient):
    response = client.get("/oauth/callback", params={"error": "access_denied"})

    assert response.status_code == 400
    assert "Authorization failed" in response.text


def test_oauth_callback_missing_code(client: TestClient):
    assert client.get("/oauth/callback").status_code == 400
