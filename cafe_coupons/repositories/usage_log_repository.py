"""
使用记录数据库操作层
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from cafe_coupons.models.redemption import UsageRecord, UsageStatus
from cafe_coupons.models.database.usage_log_db import UsageLogDB


def _to_utc_naive(value: datetime) -> datetime:
    """统一按 UTC 存储 (不带时区)"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class UsageLogRepository:
    """使用记录数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, record: UsageRecord) -> UsageLogDB:
        """追加使用记录"""
        row = UsageLogDB(
            id=str(uuid.uuid4()),
            identifier=record.identifier,
            member_name=record.member_name,
            coupon_id=record.coupon_id,
            coupon_code=record.coupon_code,
            coupon_name=record.coupon_name,
            coupon_card_title=record.coupon_card_title,
            coupon_description=record.coupon_description,
            coupon_image_url=record.coupon_image_url,
            branch_name=record.branch_name,
            status=record.status.value,
            timestamp=_to_utc_naive(record.timestamp)
        )
        self.db.add(row)
        await self.db.flush()
        return row

    async def list_by_identifiers(
        self,
        identifiers: Sequence[str],
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
        statuses: Optional[Sequence[UsageStatus]] = None
    ) -> List[UsageLogDB]:
        """按标识(含变体)查询使用记录，按时间倒序"""
        if not identifiers:
            return []

        conditions = [UsageLogDB.identifier.in_(list(identifiers))]
        if period_start is not None:
            conditions.append(UsageLogDB.timestamp >= _to_utc_naive(period_start))
        if period_end is not None:
            conditions.append(UsageLogDB.timestamp <= _to_utc_naive(period_end))
        if statuses:
            conditions.append(UsageLogDB.status.in_([status.value for status in statuses]))

        query = select(UsageLogDB).where(and_(*conditions)).order_by(desc(UsageLogDB.timestamp))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def to_model(self, row: UsageLogDB) -> UsageRecord:
        """转换为Pydantic模型"""
        return UsageRecord(
            identifier=row.identifier,
            member_name=row.member_name,
            coupon_id=row.coupon_id,
            coupon_code=row.coupon_code,
            coupon_name=row.coupon_name or "",
            coupon_card_title=row.coupon_card_title or "",
            coupon_description=row.coupon_description or "",
            coupon_image_url=row.coupon_image_url,
            branch_name=row.branch_name,
            status=UsageStatus(row.status),
            timestamp=row.timestamp.replace(tzinfo=timezone.utc)
        )
