from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from cafe_coupons.core.config import settings
from cafe_coupons.core.redis import redis_manager
from cafe_coupons.core.database import init_database, create_tables, close_database, get_session_maker
from cafe_coupons.api.health import router as health_router
from cafe_coupons.api.coupons import router as coupons_router
from cafe_coupons.api.exceptions import (
    validation_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler,
    identity_unavailable_handler,
    BusinessException
)
from cafe_coupons.services.common_cache import campaign_cache
from cafe_coupons.services.coupon_service import build_coupon_service
from cafe_coupons.services.identity_service import IdentityServiceUnavailable
from cafe_coupons.services.migrations import migrate_legacy_campaigns

# 简化日志配置
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


async def run_migrations() -> None:
    """启动时把旧版活动文档转换为当前版本"""
    async with get_session_maker()() as session:
        report = await migrate_legacy_campaigns(session)
        await session.commit()
    if report.skipped:
        logger.warning(f"有 {len(report.skipped)} 个旧版活动未能迁移: {report.skipped}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动优惠券服务")

    try:
        await init_database()
        await create_tables()
        logger.info("数据库初始化成功")

        await run_migrations()
    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    # Redis 不可用时以进程内降级模式运行
    try:
        await redis_manager.init_redis()
        campaign_cache.attach(redis_manager.redis_pool)
        logger.info("Redis初始化成功")
    except Exception as e:
        logger.warning(f"Redis不可用，使用进程内降级: {e}")

    service, outbox = build_coupon_service()
    app.state.coupon_service = service
    app.state.usage_outbox = outbox
    outbox.start()
    logger.info("应用启动完成")

    yield

    logger.info("正在关闭应用")
    await service.lifecycle.shutdown()
    await outbox.stop()
    campaign_cache.attach(None)
    await redis_manager.close_redis()
    await close_database()
    logger.info("应用关闭完成")


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="会员优惠券服务 - 活动筛选、限时兑换码与使用记录",
    debug=settings.debug,
    lifespan=lifespan
)

# CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 注册路由
app.include_router(health_router)
app.include_router(coupons_router)

# 注册异常处理器
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(BusinessException, business_exception_handler)
app.add_exception_handler(IdentityServiceUnavailable, identity_unavailable_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"欢迎使用 {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "cafe_coupons.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
