import redis.asyncio as aioredis
import json
from typing import List, Optional, Union
from cafe_coupons.core.config import settings
import structlog

"redis连接管理器以及会话快照缓存"

logger = structlog.get_logger()


class RedisManager:
    """Redis连接管理器"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    @property
    def is_available(self) -> bool:
        return self.redis_pool is not None

    async def init_redis(self) -> None:
        """初始化Redis连接池"""
        try:
            self.redis_pool = aioredis.from_url(
                settings.redis_url_computed,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True
            )
            # 测试连接
            await self.redis_pool.ping()
            logger.info("Redis连接初始化成功")
        except Exception as e:
            logger.error("Redis连接初始化失败", error=str(e))
            self.redis_pool = None
            raise

    async def close_redis(self) -> None:
        """关闭Redis连接"""
        if self.redis_pool:
            await self.redis_pool.aclose()
            self.redis_pool = None
            logger.info("Redis连接已关闭")

    async def get(self, key: str) -> Optional[str]:
        """获取缓存值"""
        try:
            return await self.redis_pool.get(key)
        except Exception as e:
            logger.error("Redis获取数据失败", key=key, error=str(e))
            return None

    async def set(
            self,
            key: str,
            value: Union[str, dict, list],
            expire: Optional[int] = None
    ) -> bool:
        """设置缓存值"""
        try:
            if isinstance(value, (dict, list)):
                value = json.dumps(value, ensure_ascii=False, default=str)

            result = await self.redis_pool.set(key, value, ex=expire)
            return bool(result)
        except Exception as e:
            logger.error("Redis设置数据失败", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        """删除缓存"""
        try:
            result = await self.redis_pool.delete(key)
            return bool(result)
        except Exception as e:
            logger.error("Redis删除数据失败", key=key, error=str(e))
            return False

    async def rpush(self, key: str, *values: str) -> int:
        """追加到列表尾部，失败时抛出异常交由调用方降级"""
        return await self.redis_pool.rpush(key, *values)

    async def lpop(self, key: str, count: int) -> List[str]:
        """从列表头部批量弹出"""
        result = await self.redis_pool.lpop(key, count)
        return result or []

    async def llen(self, key: str) -> int:
        """列表长度"""
        try:
            return await self.redis_pool.llen(key)
        except Exception as e:
            logger.error("Redis获取列表长度失败", key=key, error=str(e))
            return 0

    async def ping(self) -> bool:
        try:
            return bool(await self.redis_pool.ping())
        except Exception as e:
            logger.error("Redis连接检查失败", error=str(e))
            return False


# 全局Redis管理器实例
redis_manager = RedisManager()


class SessionCache:
    """会话快照缓存：保存会话上下文，不包含进行中的兑换码"""

    def __init__(self, redis_manager: RedisManager):
        self.redis = redis_manager
        self.session_prefix = "coupon_session:"
        self.default_expire = settings.session_cache_ttl

    async def get_session(self, session_id: str) -> Optional[dict]:
        """获取会话数据"""
        if not self.redis.is_available:
            return None
        key = f"{self.session_prefix}{session_id}"
        data = await self.redis.get(key)
        if data:
            try:
                return json.loads(data)
            except json.JSONDecodeError:
                return None
        return None

    async def set_session(self, session_id: str, session_data: dict, expire: Optional[int] = None) -> bool:
        """设置会话数据"""
        if not self.redis.is_available:
            return False
        key = f"{self.session_prefix}{session_id}"
        expire = expire or self.default_expire
        return await self.redis.set(key, session_data, expire)

    async def delete_session(self, session_id: str) -> bool:
        """删除会话"""
        if not self.redis.is_available:
            return False
        key = f"{self.session_prefix}{session_id}"
        return await self.redis.delete(key)


# 全局会话缓存实例
session_cache = SessionCache(redis_manager)
