from fastapi import APIRouter, HTTPException
import logging

from cafe_coupons.core.config import settings
from cafe_coupons.core.redis import redis_manager
from cafe_coupons.core.database import database_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """
    数据库连接健康检查

    Redis 为可选组件 (会话快照、活动缓存、发件箱)，不可用时整体仍视为可用。
    """
    health_status = {
        "postgresql": False,
        "redis": False,
        "overall": False,
        "details": {}
    }

    try:
        pg_status = await database_service.health_check()
        health_status["postgresql"] = pg_status["status"] == "healthy"
        health_status["details"]["postgresql"] = pg_status["message"]

        if redis_manager.is_available:
            if await redis_manager.ping():
                health_status["redis"] = True
                health_status["details"]["redis"] = "连接正常"
            else:
                health_status["details"]["redis"] = "连接失败"
        else:
            health_status["details"]["redis"] = "连接池未初始化，使用进程内降级"

        health_status["overall"] = health_status["postgresql"]

        if not health_status["overall"]:
            logger.warning(f"数据库连接检查失败: {health_status['details']}")
            return health_status

        logger.info("数据库连接检查通过")
        return health_status

    except Exception as e:
        logger.error(f"数据库健康检查异常: {str(e)}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": "数据库连接失败",
                "message": str(e),
                "status": health_status
            }
        )
