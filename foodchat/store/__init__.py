from __future__ import annotations

from functools import cache

from foodchat.config import Config, get_config
from foodchat.dbutils import init_engine
from foodchat.store.base import ConversationStore
from foodchat.store.jsonfile import JSONFileStore
from foodchat.store.sql import SQLConversationStore


def build_conversation_store(config: Config) -> ConversationStore:
    if config.store_backend == "json":
        return JSONFileStore(config.history_file_path)
    return SQLConversationStore(init_engine(config))


def get_conversation_store() -> ConversationStore:
    return _get_conversation_store()


@cache
def _get_conversation_store() -> ConversationStore:
    return build_conversation_store(get_config())
