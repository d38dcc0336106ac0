"""
使用台账接口

台账是 "本期是否已使用" 的唯一可信来源；会话中的已使用集合只是由它预热的缓存。
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy.ext.asyncio import async_sessionmaker

from cafe_coupons.core.database import get_session_maker
from cafe_coupons.models.redemption import UsageRecord, UsageStatus
from cafe_coupons.repositories.usage_log_repository import UsageLogRepository

logger = logging.getLogger(__name__)

# 按标识查询时最多匹配的变体数量
MAX_IDENTIFIER_VARIANTS = 10


def identifier_variants(identifiers: Iterable[str]) -> List[str]:
    """
    生成标识的匹配变体：原值、纯数字形式，以及手机号有/无前导 0 的形式

    Args:
        identifiers: 一个或多个用户标识

    Returns:
        去重后的变体列表，保持生成顺序
    """
    variants: List[str] = []

    for identifier in identifiers:
        if not identifier or not str(identifier).strip():
            continue
        identifier = str(identifier).strip()
        variants.append(identifier)

        digits = re.sub(r"\D", "", identifier)
        if digits:
            variants.append(digits)
            if digits.startswith("0"):
                variants.append(digits[1:])
            elif len(digits) == 9:
                variants.append("0" + digits)

    unique = list(dict.fromkeys(v for v in variants if v))
    return unique[:MAX_IDENTIFIER_VARIANTS]


class UsageLedger(ABC):
    """使用台账抽象接口"""

    @abstractmethod
    async def append(self, record: UsageRecord) -> bool:
        """追加一条使用记录，成功返回 True"""

    @abstractmethod
    async def query_used_coupon_ids(
        self,
        identifier: str,
        period_start: datetime,
        period_end: datetime
    ) -> Set[str]:
        """查询标识在期间内已使用/已过期的优惠券ID"""

    @abstractmethod
    async def get_history(
        self,
        identifier: str,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None
    ) -> List[UsageRecord]:
        """查询使用历史，按时间倒序"""


class InMemoryUsageLedger(UsageLedger):
    """内存台账，用于测试和无数据库的本地运行"""

    def __init__(self, records: Optional[List[UsageRecord]] = None):
        self.records: List[UsageRecord] = list(records or [])
        self.fail_appends = 0  # 接下来需要失败的追加次数

    async def append(self, record: UsageRecord) -> bool:
        if self.fail_appends > 0:
            self.fail_appends -= 1
            return False
        self.records.append(record)
        return True

    def _matching(
        self,
        identifier: str,
        period_start: Optional[datetime],
        period_end: Optional[datetime]
    ) -> List[UsageRecord]:
        variants = set(identifier_variants([identifier]))
        matched = []
        for record in self.records:
            if record.identifier not in variants:
                continue
            if period_start is not None and record.timestamp < period_start:
                continue
            if period_end is not None and record.timestamp > period_end:
                continue
            matched.append(record)
        return matched

    async def query_used_coupon_ids(
        self,
        identifier: str,
        period_start: datetime,
        period_end: datetime
    ) -> Set[str]:
        return {
            record.coupon_id
            for record in self._matching(identifier, period_start, period_end)
            if record.status in (UsageStatus.USED, UsageStatus.EXPIRED) and record.coupon_id
        }

    async def get_history(
        self,
        identifier: str,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None
    ) -> List[UsageRecord]:
        matched = self._matching(identifier, period_start, period_end)
        return sorted(matched, key=lambda record: record.timestamp, reverse=True)


class DatabaseUsageLedger(UsageLedger):
    """基于数据库 usage_logs 表的台账，每次调用使用独立会话"""

    def __init__(self, session_maker: Optional[async_sessionmaker] = None):
        self._session_maker = session_maker

    @property
    def session_maker(self) -> async_sessionmaker:
        return self._session_maker or get_session_maker()

    async def append(self, record: UsageRecord) -> bool:
        try:
            async with self.session_maker() as session:
                repo = UsageLogRepository(session)
                await repo.add(record)
                await session.commit()
            return True
        except Exception as e:
            logger.error(f"写入使用记录失败 {record.coupon_code}: {e}")
            return False

    async def query_used_coupon_ids(
        self,
        identifier: str,
        period_start: datetime,
        period_end: datetime
    ) -> Set[str]:
        async with self.session_maker() as session:
            repo = UsageLogRepository(session)
            rows = await repo.list_by_identifiers(
                identifier_variants([identifier]),
                period_start=period_start,
                period_end=period_end,
                statuses=[UsageStatus.USED, UsageStatus.EXPIRED]
            )
        return {row.coupon_id for row in rows if row.coupon_id}

    async def get_history(
        self,
        identifier: str,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None
    ) -> List[UsageRecord]:
        async with self.session_maker() as session:
            repo = UsageLogRepository(session)
            rows = await repo.list_by_identifiers(
                identifier_variants([identifier]),
                period_start=period_start,
                period_end=period_end
            )
            return [repo.to_model(row) for row in rows]
