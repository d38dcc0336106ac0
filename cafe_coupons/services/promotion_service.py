"""
活动查询服务

读取活动数据 (缓存 -> 数据库)，数据源读取失败时退回到最近一次成功读取的结果。
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from cafe_coupons.core.database import get_session_maker
from cafe_coupons.core.timeutils import now_local
from cafe_coupons.models.promotion import Campaign, CampaignView
from cafe_coupons.models.session import SessionContext
from cafe_coupons.repositories.campaign_repository import CampaignRepository
from cafe_coupons.services.common_cache import CampaignCache, campaign_cache
from cafe_coupons.services.eligibility import build_current_promotions

logger = logging.getLogger(__name__)


class PromotionService:
    """活动查询服务类"""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        cache: Optional[CampaignCache] = None
    ):
        self._session_maker = session_maker
        self.cache = cache if cache is not None else campaign_cache
        self._last_known: List[Campaign] = []

    @property
    def session_maker(self) -> async_sessionmaker:
        return self._session_maker or get_session_maker()

    async def list_active_campaigns(self, use_cache: bool = True) -> List[Campaign]:
        """
        获取启用中的活动

        数据库不可用时返回上一次成功读取的活动列表 (可能为空)。
        """
        if use_cache:
            campaigns = await self.cache.get_campaigns()
            if campaigns is not None:
                self._last_known = campaigns
                return campaigns

        try:
            async with self.session_maker() as session:
                repo = CampaignRepository(session)
                campaigns = repo.to_models(await repo.list_active())
        except Exception as e:
            logger.error(f"读取活动失败，使用最近一次数据 ({len(self._last_known)} 个活动): {e}")
            return list(self._last_known)

        self._last_known = campaigns
        await self.cache.set_campaigns(campaigns)
        return campaigns

    async def invalidate_cache(self) -> None:
        await self.cache.invalidate()

    async def get_current_promotions(
        self,
        session: SessionContext,
        now: Optional[datetime] = None
    ) -> List[CampaignView]:
        """会话当前可见的活动视图"""
        campaigns = await self.list_active_campaigns()
        return build_current_promotions(
            campaigns,
            session.entitlement,
            session.identifier,
            session.used_coupon_ids,
            now or now_local()
        )
