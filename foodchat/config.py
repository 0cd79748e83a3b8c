from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from foodchat.errors import ConfigurationError

PLACEHOLDER_API_KEYS = frozenset({"", "your_openai_api_key_here"})


def get_config() -> Config:
    return Config()


class Config(BaseSettings):
    openai_api_key: str | None = Field(
        None,
        validation_alias=AliasChoices("foodchat_openai_api_key", "openai_api_key"),
    )
    openai_base_url: str | None = None
    model_name: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 4096

    mcp_server_url: str = "https://mcp-server.zomato.com/mcp"
    mcp_transport: Literal["subprocess", "oauth"] = "subprocess"
    mcp_command: str = "npx"
    mcp_args: tuple[str, ...] = ("-y", "mcp-remote", "{server_url}", "--allow-http")
    mcp_auth_dir: str = (Path.home() / ".mcp-auth").as_posix()
    connect_timeout: float = 300
    ping_interval: float = 30

    oauth_token_dir: str = (Path.cwd() / ".foodchat-oauth").expanduser().resolve().absolute().as_posix()
    oauth_redirect_uri: str = "http://localhost:3000/oauth/callback"
    oauth_client_name: str = "foodchat"
    oauth_open_browser: bool = False

    max_tool_iterations: int = 10
    tool_result_max_chars: int = 2000

    store_backend: Literal["sql", "json"] = "sql"
    sqlite_file_path: str = (Path.cwd() / "foodchat.sqlite").expanduser().resolve().absolute().as_posix()
    use_postgres: bool = False
    pg_user: str | None = "postgres"
    pg_password: str | None = "postgres"
    pg_host: str | None = "localhost"
    pg_port: int | None = 5432
    pg_database: str | None = "foodchat"
    history_file_path: str = (Path.cwd() / "chat_history.json").expanduser().resolve().absolute().as_posix()

    host: str = "127.0.0.1"
    port: int = 3000
    static_dir: str | None = None

    model_config = SettingsConfigDict(env_prefix="foodchat_", case_sensitive=False, frozen=True)

    def require_openai_api_key(self) -> str:
        if self.openai_api_key is None or self.openai_api_key.strip() in PLACEHOLDER_API_KEYS:
            raise ConfigurationError(
                "OpenAI API key not configured. Please set OPENAI_API_KEY (or FOODCHAT_OPENAI_API_KEY)."
            )
        return self.openai_api_key

    def get_mcp_args(self) -> list[str]:
        return [arg.format(server_url=self.mcp_server_url) for arg in self.mcp_args]

    def get_db_url(self, async_mode: bool = True) -> str:
        if self.use_postgres:
            if not all([
                self.pg_user,
                self.pg_password,
                self.pg_host,
                self.pg_port,
                self.pg_database,
            ]):
                raise ValueError("PostgreSQL configuration is incomplete")
            return f"postgresql+psycopg://{self.pg_user}:{self.pg_password}@{self.pg_host}:{self.pg_port}/{self.pg_database}"
        else:
            if not self.sqlite_file_path:
                raise ValueError("SQLite file path is not configured")
            sqlite_file_path = Path(self.sqlite_file_path).expanduser().resolve().absolute().as_posix()
            if async_mode:
                return f"sqlite+aiosqlite:///{sqlite_file_path}"
            else:
                return f"sqlite+pysqlite:///{sqlite_file_path}"
