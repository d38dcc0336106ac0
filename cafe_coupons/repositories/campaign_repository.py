"""
活动数据库操作层
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import select, or_, asc
from sqlalchemy.ext.asyncio import AsyncSession

from cafe_coupons.core.timeutils import to_local
from cafe_coupons.models.promotion import Campaign, CampaignCreate
from cafe_coupons.models.database.campaign_db import CampaignDB, CURRENT_SCHEMA_VERSION

logger = logging.getLogger(__name__)


def _to_wall_clock(value: datetime) -> datetime:
    """转换为部署时区墙上时间 (不带时区)"""
    return to_local(value).replace(tzinfo=None)


class CampaignRepository:
    """活动数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, campaign_id: str) -> Optional[CampaignDB]:
        """根据活动ID获取活动"""
        result = await self.db.execute(
            select(CampaignDB).where(CampaignDB.id == campaign_id)
        )
        return result.scalar_one_or_none()

    async def list_active(self) -> List[CampaignDB]:
        """获取未被停用的当前版本活动"""
        query = select(CampaignDB).where(
            CampaignDB.schema_version == CURRENT_SCHEMA_VERSION,
            or_(CampaignDB.is_active.is_(None), CampaignDB.is_active.is_(True))
        ).order_by(asc(CampaignDB.start_date))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_legacy(self) -> List[CampaignDB]:
        """获取需要迁移的旧版活动"""
        query = select(CampaignDB).where(
            or_(
                CampaignDB.schema_version.is_(None),
                CampaignDB.schema_version < CURRENT_SCHEMA_VERSION
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, campaign_data: CampaignCreate, campaign_id: Optional[str] = None) -> CampaignDB:
        """创建活动，ID由存储分配"""
        row = CampaignDB(id=campaign_id or str(uuid.uuid4()))
        self.apply(row, campaign_data)
        self.db.add(row)
        await self.db.flush()
        return row

    async def add_legacy_document(self, document: Dict[str, Any], campaign_id: Optional[str] = None) -> CampaignDB:
        """写入旧版原始文档 (导入历史数据用)"""
        row = CampaignDB(
            id=campaign_id or str(uuid.uuid4()),
            schema_version=None,
            period=str(document.get("period") or ""),
            coupons=[],
            legacy_document=document
        )
        self.db.add(row)
        await self.db.flush()
        return row

    def apply(self, row: CampaignDB, campaign_data: CampaignCreate) -> None:
        """把当前版本活动数据写入数据库行"""
        row.schema_version = CURRENT_SCHEMA_VERSION
        row.period = campaign_data.period
        row.week = campaign_data.week
        row.priority = campaign_data.priority
        row.is_active = campaign_data.is_active
        row.start_date = _to_wall_clock(campaign_data.start_date)
        row.end_date = _to_wall_clock(campaign_data.end_date)
        row.coupons = [
            coupon.model_dump(mode="json", by_alias=True, exclude_none=True)
            for coupon in campaign_data.coupons
        ]

    async def set_active(self, campaign_id: str, is_active: bool) -> bool:
        """启用/停用活动"""
        row = await self.get_by_id(campaign_id)
        if not row:
            return False
        row.is_active = is_active
        await self.db.flush()
        return True

    def to_model(self, row: CampaignDB) -> Optional[Campaign]:
        """转换为Pydantic模型，数据无效时返回 None"""
        if row.start_date is None or row.end_date is None:
            logger.warning(f"活动缺少起止时间，已跳过: {row.id}")
            return None

        try:
            return Campaign(
                id=row.id,
                week=row.week,
                period=row.period or "",
                start_date=row.start_date,
                end_date=row.end_date,
                coupons=row.coupons or [],
                is_active=row.is_active,
                priority=row.priority
            )
        except ValidationError as e:
            logger.warning(f"活动数据无效，已跳过: {row.id}: {e}")
            return None

    def to_models(self, rows: List[CampaignDB]) -> List[Campaign]:
        campaigns = []
        for row in rows:
            campaign = self.to_model(row)
            if campaign is not None:
                campaigns.append(campaign)
        return campaigns
