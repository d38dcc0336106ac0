"""
通用缓存工具
共用 RedisManager 的连接池；未连接Redis时读写都直接跳过，调用方退回数据库
"""

import json
import logging
from typing import Any, List, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from cafe_coupons.core.config import settings
from cafe_coupons.models.promotion import Campaign

logger = logging.getLogger(__name__)


class SimpleCache:
    """带key前缀的JSON缓存"""

    def __init__(self, redis_client: Optional[redis.Redis] = None, key_prefix: str = ""):
        self.redis_client = redis_client
        self.key_prefix = key_prefix

    @property
    def connected(self) -> bool:
        return self.redis_client is not None

    def attach(self, redis_client: Optional[redis.Redis]) -> None:
        """绑定 (或解除) 已初始化的Redis连接"""
        self.redis_client = redis_client

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}" if self.key_prefix else key

    async def get(self, key: str) -> Optional[Any]:
        if not self.connected:
            return None
        try:
            data = await self.redis_client.get(self._get_key(key))
            return json.loads(data) if data else None
        except Exception as e:
            logger.error(f"获取缓存失败 {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        if not self.connected:
            return False
        try:
            data = json.dumps(value, default=str, ensure_ascii=False)
            await self.redis_client.setex(self._get_key(key), ttl, data)
            return True
        except Exception as e:
            logger.error(f"设置缓存失败 {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self.connected:
            return False
        try:
            return await self.redis_client.delete(self._get_key(key)) > 0
        except Exception as e:
            logger.error(f"删除缓存失败 {key}: {e}")
            return False


class CampaignCache(SimpleCache):
    """
    活动列表缓存

    按文档结构 (camelCase) 存储，读取时重新校验；数据无效按未命中处理。
    """

    ACTIVE_KEY = "active"

    async def get_campaigns(self) -> Optional[List[Campaign]]:
        cached = await self.get(self.ACTIVE_KEY)
        if cached is None:
            return None
        try:
            return [Campaign.model_validate(item) for item in cached]
        except (TypeError, ValidationError) as e:
            logger.warning(f"活动缓存数据无效，改为读取数据库: {e}")
            return None

    async def set_campaigns(self, campaigns: List[Campaign], ttl: Optional[int] = None) -> bool:
        return await self.set(
            self.ACTIVE_KEY,
            [campaign.model_dump(mode="json", by_alias=True) for campaign in campaigns],
            ttl=ttl or settings.campaign_cache_ttl
        )

    async def invalidate(self) -> bool:
        return await self.delete(self.ACTIVE_KEY)


campaign_cache = CampaignCache(key_prefix="campaign:")
