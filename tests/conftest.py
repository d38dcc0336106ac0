"""
测试配置文件 - pytest fixtures和共用配置
"""

import random
import pytest
import pytest_asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from cafe_coupons.core.database import Base
from cafe_coupons.core.redis import SessionCache
from cafe_coupons.models.database import CampaignDB, UsageLogDB, MemberDB  # noqa: F401
from cafe_coupons.models.member import IdentityStatus, ValidationResult
from cafe_coupons.models.promotion import Campaign
from cafe_coupons.services.branch_resolver import BranchResolver
from cafe_coupons.services.coupon_service import CouponService
from cafe_coupons.services.identity_service import IdentityService
from cafe_coupons.services.promotion_service import PromotionService
from cafe_coupons.services.redemption import RedemptionLifecycle
from cafe_coupons.services.session_registry import SessionRegistry
from cafe_coupons.services.usage_ledger import InMemoryUsageLedger
from cafe_coupons.services.usage_outbox import UsageOutbox
from tests.factories import NOW, make_campaign, make_coupon


@pytest.fixture
def feb_campaign() -> Campaign:
    """二月活动，c1 每月 20 日解锁"""
    return make_campaign(
        "feb",
        datetime(2026, 2, 1),
        datetime(2026, 2, 28),
        [make_coupon("c1", targetType="all", activeDay=20, description="ลด 50 บาท")]
    )


@pytest.fixture
def ledger() -> InMemoryUsageLedger:
    return InMemoryUsageLedger()


@pytest.fixture
def outbox(ledger) -> UsageOutbox:
    """不连接Redis的发件箱"""
    return UsageOutbox(ledger, redis=None, max_attempts=3, flush_interval=0.01)


@pytest.fixture
def mock_redis():
    """模拟Redis客户端"""
    client = AsyncMock()
    client.get.return_value = None
    client.setex.return_value = True
    client.delete.return_value = 1
    return client


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """测试数据库引擎 - 内存SQLite"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncSession:
    """测试数据库会话"""
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def mock_session_cache():
    """模拟会话快照缓存"""
    cache = AsyncMock(spec=SessionCache)
    cache.get_session.return_value = None
    cache.set_session.return_value = True
    cache.delete_session.return_value = True
    return cache


@pytest.fixture
def mock_identity():
    identity = AsyncMock(spec=IdentityService)
    identity.validate.return_value = ValidationResult(
        status=IdentityStatus.MEMBER,
        display_name="Somchai Jaidee",
        member_id="VM0001"
    )
    return identity


@pytest.fixture
def mock_promotions(feb_campaign):
    """活动服务使用固定活动列表"""
    member_campaign = make_campaign(
        "members",
        feb_campaign.start_date,
        feb_campaign.end_date,
        [make_coupon("vip", isMemberOnly=True)],
        priority=0
    )
    promotions = PromotionService(session_maker=MagicMock(), cache=AsyncMock())
    promotions.list_active_campaigns = AsyncMock(return_value=[member_campaign, feb_campaign])
    return promotions


@pytest.fixture
def coupon_service(mock_session_cache, mock_identity, mock_promotions, ledger, outbox):
    """创建CouponService实例"""
    lifecycle = RedemptionLifecycle(
        outbox,
        ttl_seconds=300,
        tick_seconds=10,
        clock=lambda: NOW,
        rng=random.Random(1)
    )
    return CouponService(
        registry=SessionRegistry(cache=mock_session_cache),
        promotions=mock_promotions,
        identity=mock_identity,
        ledger=ledger,
        lifecycle=lifecycle,
        branch_resolver=BranchResolver()
    )
