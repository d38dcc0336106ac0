"""
会话注册表

会话上下文保存在进程内，同时把快照写入Redis；进程内找不到时从快照恢复
(恢复的会话不含进行中的兑换码)。
进程内的会话超过 session_cache_ttl 未访问即被移出，与快照的过期时间一致。
"""

import logging
import time
import uuid
from typing import Callable, Dict, Optional

from cafe_coupons.core.config import settings
from cafe_coupons.core.redis import SessionCache, session_cache
from cafe_coupons.models.session import SessionContext

logger = logging.getLogger(__name__)


class SessionRegistry:
    """会话注册表"""

    def __init__(
        self,
        cache: Optional[SessionCache] = None,
        idle_ttl: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.cache = cache if cache is not None else session_cache
        self.idle_ttl = idle_ttl if idle_ttl is not None else settings.session_cache_ttl
        self.clock = clock or time.monotonic
        self._sessions: Dict[str, SessionContext] = {}
        self._last_seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def new_session_id(self) -> str:
        return uuid.uuid4().hex

    def _touch(self, session: SessionContext) -> None:
        self._sessions[session.session_id] = session
        self._last_seen[session.session_id] = self.clock()

    def evict_idle(self) -> int:
        """移出长时间未访问的会话，返回移出数量"""
        deadline = self.clock() - self.idle_ttl
        stale = [session_id for session_id, seen in self._last_seen.items() if seen <= deadline]
        for session_id in stale:
            self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)
        if stale:
            logger.info(f"已移出 {len(stale)} 个空闲会话")
        return len(stale)

    async def create(self, **fields) -> SessionContext:
        self.evict_idle()
        session = SessionContext(session_id=self.new_session_id(), **fields)
        await self.save(session)
        return session

    async def get(self, session_id: str) -> Optional[SessionContext]:
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is not None:
            self._touch(session)
            return session

        snapshot = await self.cache.get_session(session_id)
        if not snapshot:
            return None
        try:
            session = SessionContext.from_snapshot(snapshot)
        except ValueError as e:
            logger.warning(f"会话快照无效，已忽略 {session_id}: {e}")
            return None

        self._touch(session)
        logger.info(f"会话已从快照恢复: {session_id}")
        return session

    async def save(self, session: SessionContext) -> None:
        self._touch(session)
        await self.cache.set_session(session.session_id, session.to_snapshot())

    async def remove(self, session_id: str) -> Optional[SessionContext]:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        await self.cache.delete_session(session_id)
        return session
