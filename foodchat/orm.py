from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String, Text, Unicode, UniqueConstraint
from sqlalchemy.orm import declarative_base

from foodchat.store.base import DEFAULT_TITLE, now_ms

Base = declarative_base()


class Chat(Base):
    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), nullable=False, index=True)
    chat_id = Column(String(64), nullable=False)
    title = Column(Unicode(255), nullable=False, default=DEFAULT_TITLE)
    created_at = Column(BigInteger, nullable=False, default=now_ms)

    __table_args__ = (UniqueConstraint("session_id", "chat_id"),)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_pk = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(BigInteger, nullable=False, default=now_ms)
