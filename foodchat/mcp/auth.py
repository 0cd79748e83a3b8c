from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from mcp.shared.auth import OAuthClientInformationFull, OAuthToken

from foodchat.errors import AuthorizationError, AuthorizationTimeoutError
from foodchat.log import logger


class PendingAuthorization:
    """
    The interactive authorization step of one connection attempt.

    The transport publishes the authorization URL as soon as it is known, and the
    attempt waits (bounded) until the OAuth callback delivers a code or the
    authorization is rejected.
    """

    def __init__(self) -> None:
        self.url: str | None = None
        self._outcome: asyncio.Future[tuple[str, str | None] | AuthorizationError] = (
            asyncio.get_running_loop().create_future()
        )

    def set_url(self, url: str) -> None:
        if self.url is None:
            logger.info("Authorization URL captured")
            logger.info(f"If the browser did not open, visit this URL manually: {url}")
        self.url = url

    @property
    def done(self) -> bool:
        return self._outcome.done()

    def complete(self, code: str, state: str | None = None) -> bool:
        if self._outcome.done():
            return False
        self._outcome.set_result((code, state))
        return True

    def reject(self, reason: str) -> bool:
        if self._outcome.done():
            return False
        self._outcome.set_result(AuthorizationError(f"Authorization rejected: {reason}"))
        return True

    def cancel(self) -> None:
        if not self._outcome.done():
            self._outcome.cancel()

    async def wait_for_code(self, timeout: float) -> tuple[str, str | None]:
        try:
            outcome = await asyncio.wait_for(asyncio.shield(self._outcome), timeout)
        except asyncio.TimeoutError as e:
            raise AuthorizationTimeoutError(
                f"Authorization was not completed within {timeout:.0f} seconds. "
                "Please try again -- stale tokens have been cleaned up."
            ) from e
        if isinstance(outcome, AuthorizationError):
            raise outcome
        return outcome


def clean_stale_auth_files(auth_dir: str | Path) -> list[Path]:
    """
    Remove every sub-directory of `auth_dir`.

    Lock files and half-written tokens left by an earlier failed attempt break the
    next login, so they are removed before each fresh connection attempt.
    """
    auth_dir = Path(auth_dir).expanduser()
    if not auth_dir.is_dir():
        return []

    removed = []
    for entry in auth_dir.iterdir():
        if not entry.is_dir():
            continue
        try:
            shutil.rmtree(entry)
        except OSError as e:
            logger.warning(f"Could not clean auth files in {entry}: {e}")
        else:
            logger.info(f"Removed stale auth directory: {entry}")
            removed.append(entry)
    return removed


class FileTokenStorage:
    """`mcp.client.auth.TokenStorage` kept as JSON files in one directory."""

    def __init__(self, token_dir: str | Path) -> None:
        self.token_dir = Path(token_dir).expanduser()

    @property
    def tokens_path(self) -> Path:
        return self.token_dir / "tokens.json"

    @property
    def client_info_path(self) -> Path:
        return self.token_dir / "client_info.json"

    async def get_tokens(self) -> OAuthToken | None:
        if not self.tokens_path.exists():
            return None
        return OAuthToken.model_validate_json(self.tokens_path.read_text())

    async def set_tokens(self, tokens: OAuthToken) -> None:
        self.token_dir.mkdir(parents=True, exist_ok=True)
        self.tokens_path.write_text(tokens.model_dump_json(exclude_none=True))

    async def get_client_info(self) -> OAuthClientInformationFull | None:
        if not self.client_info_path.exists():
            return None
        return OAuthClientInformationFull.model_validate_json(self.client_info_path.read_text())

    async def set_client_info(self, client_info: OAuthClientInformationFull) -> None:
        self.token_dir.mkdir(parents=True, exist_ok=True)
        self.client_info_path.write_text(client_info.model_dump_json(exclude_none=True))

    def clear(self) -> None:
        for path in (self.tokens_path, self.client_info_path):
            if path.exists():
                path.unlink()
                logger.info(f"Removed stale OAuth artifact: {path}")
