"""
使用记录发件箱

兑换码进入终态时，使用记录先写入发件箱 (Redis 列表，Redis 不可用时退化为进程内队列)，
再由后台任务批量写入台账。写入失败的记录带着尝试次数重新入队，超过上限后丢弃并记录错误。
"""

import asyncio
import json
from collections import deque
from typing import Any, Deque, Dict, List, Optional

import structlog
from pydantic import ValidationError

from cafe_coupons.core.config import settings
from cafe_coupons.core.redis import RedisManager
from cafe_coupons.models.redemption import UsageRecord
from cafe_coupons.services.usage_ledger import UsageLedger

logger = structlog.get_logger()


class UsageOutbox:
    """使用记录发件箱"""

    def __init__(
        self,
        ledger: UsageLedger,
        redis: Optional[RedisManager] = None,
        key: Optional[str] = None,
        max_attempts: Optional[int] = None,
        flush_interval: Optional[float] = None,
        batch_size: int = 100
    ):
        self.ledger = ledger
        self.redis = redis
        self.key = key or settings.outbox_key
        self.max_attempts = max_attempts or settings.outbox_max_attempts
        self.flush_interval = flush_interval or settings.outbox_flush_interval
        self.batch_size = batch_size
        self._pending: Deque[Dict[str, Any]] = deque()
        self._task: Optional[asyncio.Task] = None
        self._flush_lock = asyncio.Lock()

    @property
    def _use_redis(self) -> bool:
        return self.redis is not None and self.redis.is_available

    async def enqueue(self, record: UsageRecord) -> None:
        """记录入队"""
        envelope = {
            "attempts": 0,
            "record": record.model_dump(mode="json", by_alias=True)
        }
        await self._push(envelope)
        logger.info("使用记录已入队", coupon_code=record.coupon_code, status=record.status.value)

    async def _push(self, envelope: Dict[str, Any]) -> None:
        if self._use_redis:
            try:
                await self.redis.rpush(self.key, json.dumps(envelope, ensure_ascii=False))
                return
            except Exception as e:
                logger.warning("发件箱写入Redis失败，改用内存队列", error=str(e))
        self._pending.append(envelope)

    async def pending_count(self) -> int:
        count = len(self._pending)
        if self._use_redis:
            count += await self.redis.llen(self.key)
        return count

    async def _drain(self) -> List[Dict[str, Any]]:
        """取出一批待写入的记录"""
        envelopes: List[Dict[str, Any]] = []
        while self._pending and len(envelopes) < self.batch_size:
            envelopes.append(self._pending.popleft())

        if self._use_redis and len(envelopes) < self.batch_size:
            try:
                raw_items = await self.redis.lpop(self.key, self.batch_size - len(envelopes))
            except Exception as e:
                logger.error("从Redis读取发件箱失败", error=str(e))
                raw_items = []
            for raw in raw_items:
                try:
                    envelopes.append(json.loads(raw))
                except json.JSONDecodeError:
                    logger.error("发件箱记录格式错误，已丢弃", raw=raw)

        return envelopes

    async def flush(self) -> int:
        """把一批记录写入台账，返回成功条数"""
        async with self._flush_lock:
            envelopes = await self._drain()
            appended = 0
            retry: List[Dict[str, Any]] = []

            for envelope in envelopes:
                try:
                    record = UsageRecord.model_validate(envelope["record"])
                except (KeyError, TypeError, ValidationError) as e:
                    logger.error("发件箱记录无效，已丢弃", envelope=envelope, error=str(e))
                    continue

                try:
                    ok = await self.ledger.append(record)
                except Exception as e:
                    logger.error("写入使用台账异常", coupon_code=record.coupon_code, error=str(e))
                    ok = False

                if ok:
                    appended += 1
                    continue

                envelope["attempts"] = envelope.get("attempts", 0) + 1
                if envelope["attempts"] >= self.max_attempts:
                    logger.error(
                        "使用记录多次写入失败，已丢弃",
                        coupon_code=record.coupon_code,
                        coupon_id=record.coupon_id,
                        identifier=record.identifier,
                        attempts=envelope["attempts"]
                    )
                    continue
                retry.append(envelope)

            for envelope in retry:
                await self._push(envelope)

            if envelopes:
                logger.debug("发件箱刷新完成", appended=appended, retry=len(retry))
            return appended

    def start(self) -> None:
        """启动后台刷新任务"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
            logger.info("使用记录发件箱已启动", interval=self.flush_interval)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            try:
                await self.flush()
            except Exception as e:
                logger.error("发件箱刷新失败", error=str(e))

    async def stop(self) -> None:
        """停止后台任务并尽量写出剩余记录"""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        try:
            await self.flush()
        except Exception as e:
            logger.error("关闭时刷新发件箱失败", error=str(e))
        logger.info("使用记录发件箱已停止")
