from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import text
from typing import Optional
import logging

from cafe_coupons.core.config import settings

logger = logging.getLogger(__name__)

# 创建基础模型类
Base = declarative_base()

# 全局数据库引擎
engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker] = None


async def init_database() -> None:
    """初始化数据库连接"""
    global engine, async_session_maker

    try:
        engine_kwargs = {
            "echo": settings.debug,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }
        if settings.is_testing:
            engine_kwargs["poolclass"] = NullPool

        engine = create_async_engine(settings.database_url_computed, **engine_kwargs)

        async_session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        logger.info("数据库连接初始化成功")

    except Exception as e:
        logger.error(f"数据库连接初始化失败: {e}")
        raise


async def create_tables() -> None:
    """创建缺失的数据表"""
    if not engine:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")

    # 导入表定义以注册到元数据
    from cafe_coupons.models import database  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database() -> None:
    """关闭数据库连接"""
    global engine

    if engine:
        await engine.dispose()
        logger.info("数据库连接已关闭")


def get_session_maker() -> async_sessionmaker:
    """获取session工厂"""
    if not async_session_maker:
        raise RuntimeError("数据库未初始化，请先调用 init_database()")
    return async_session_maker


class DatabaseService:
    """数据库服务类"""

    @property
    def engine(self):
        return engine

    async def health_check(self) -> dict:
        """数据库健康检查"""
        try:
            if not self.engine:
                return {"status": "error", "message": "数据库引擎未初始化"}

            async with self.engine.begin() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()

            return {
                "status": "healthy",
                "message": "数据库连接正常",
                "test_query_result": row[0] if row else None
            }

        except Exception as e:
            return {
                "status": "error",
                "message": f"数据库连接失败: {str(e)}"
            }


# 全局数据库服务实例
database_service = DatabaseService()
