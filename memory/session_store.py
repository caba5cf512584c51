import asyncio
import logging
import threading
import zlib
from typing import Dict, List, Optional

from exceptions import SessionNotFound
from models import ChatSession, Message

DEFAULT_SHARDS = 16


class _Shard:
    __slots__ = ("lock", "sessions", "turn_locks")

    def __init__(self):
        self.lock = threading.Lock()
        self.sessions: Dict[str, ChatSession] = {}
        self.turn_locks: Dict[str, asyncio.Lock] = {}


class SessionStore:
    """In-process registry of chat sessions.

    Sessions are spread over a fixed number of shards, each guarded by its own
    lock. Every operation on one session id runs under that id's shard lock, so
    operations on the same id are linearized while ids living in other shards
    never wait on each other. Nothing is persisted.
    """

    def __init__(self, shards: int = DEFAULT_SHARDS):
        self._shards = [_Shard() for _ in range(max(1, shards))]
        self.logger = logging.getLogger("app")

    def _shard(self, session_id: str) -> _Shard:
        return self._shards[zlib.crc32(session_id.encode("utf-8")) % len(self._shards)]

    def create(self, name: str = "New Chat") -> ChatSession:
        session = ChatSession(name=name)
        shard = self._shard(session.id)
        with shard.lock:
            shard.sessions[session.id] = session
        self.logger.info("Created session", extra={"extra_data": {"session_id": session.id}})
        return session

    def create_with_id(self, session_id: str, name: str = "New Chat") -> ChatSession:
        """Create a session under a caller-chosen id, replacing any record already there."""
        session = ChatSession(id=session_id, name=name)
        shard = self._shard(session_id)
        with shard.lock:
            shard.sessions[session_id] = session
        return session

    def get(self, session_id: str) -> Optional[ChatSession]:
        shard = self._shard(session_id)
        with shard.lock:
            return shard.sessions.get(session_id)

    def list_all(self) -> List[ChatSession]:
        sessions: List[ChatSession] = []
        for shard in self._shards:
            with shard.lock:
                sessions.extend(shard.sessions.values())
        return sessions

    def delete(self, session_id: str) -> bool:
        shard = self._shard(session_id)
        with shard.lock:
            # a running turn keeps its lock so a recreated session still queues behind it
            lock = shard.turn_locks.get(session_id)
            if lock is not None and not lock.locked():
                del shard.turn_locks[session_id]
            return shard.sessions.pop(session_id, None) is not None

    def rename(self, session_id: str, new_name: str) -> bool:
        shard = self._shard(session_id)
        with shard.lock:
            session = shard.sessions.get(session_id)
            if session is None:
                return False
            session.name = new_name
            return True

    def clear_messages(self, session_id: str) -> bool:
        shard = self._shard(session_id)
        with shard.lock:
            session = shard.sessions.get(session_id)
            if session is None:
                return False
            session.messages.clear()
            session.touch()
            return True

    def append_message(self, session_id: str, message: Message,
                       expected: Optional[ChatSession] = None) -> bool:
        """Append to the session. With ``expected``, only if that exact record is still stored under the id."""
        shard = self._shard(session_id)
        with shard.lock:
            session = shard.sessions.get(session_id)
            if session is None or (expected is not None and session is not expected):
                return False
            session.add_message(message)
            return True

    def history(self, session_id: str, expected: Optional[ChatSession] = None) -> Optional[List[Message]]:
        """Snapshot of the session's messages, or None for an unknown id (or a record other than ``expected``)."""
        shard = self._shard(session_id)
        with shard.lock:
            session = shard.sessions.get(session_id)
            if session is None or (expected is not None and session is not expected):
                return None
            return list(session.messages)

    def set_feedback(self, session_id: str, message_id: str, liked: Optional[bool]) -> Optional[Message]:
        shard = self._shard(session_id)
        with shard.lock:
            session = shard.sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            for message in session.messages:
                if message.id == message_id:
                    message.liked = liked
                    return message
        return None

    def turn_lock(self, session_id: str) -> asyncio.Lock:
        """Lock held by the orchestrator for a whole chat turn on this session."""
        shard = self._shard(session_id)
        with shard.lock:
            lock = shard.turn_locks.get(session_id)
            if lock is None:
                lock = shard.turn_locks[session_id] = asyncio.Lock()
            return lock
