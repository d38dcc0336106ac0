"""
优惠券业务服务层
把身份验证、活动筛选、兑换码生命周期、台账和门店定位组合成会话级操作
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from cafe_coupons.core.config import settings
from cafe_coupons.core.redis import redis_manager
from cafe_coupons.core.timeutils import month_window, now_local, to_local
from cafe_coupons.models.branch import BranchResolution, Coordinates
from cafe_coupons.models.member import IdentityStatus, ValidationResult
from cafe_coupons.models.promotion import CampaignView, CouponView, Entitlement
from cafe_coupons.models.redemption import CouponHistoryEntry, RedemptionCode, UsageRecord, UsageStatus
from cafe_coupons.models.session import SessionContext
from cafe_coupons.services.branch_resolver import BranchResolver
from cafe_coupons.services.identity_service import IdentityService
from cafe_coupons.services.promotion_service import PromotionService
from cafe_coupons.services.redemption import RedemptionLifecycle
from cafe_coupons.services.session_registry import SessionRegistry
from cafe_coupons.services.usage_ledger import DatabaseUsageLedger, UsageLedger
from cafe_coupons.services.usage_outbox import UsageOutbox

logger = logging.getLogger(__name__)


def merge_history(
    local: List[CouponHistoryEntry],
    records: List[UsageRecord]
) -> List[CouponHistoryEntry]:
    """合并台账记录与尚未写入台账的本地记录，按时间倒序"""
    entries = [
        CouponHistoryEntry.from_record(record)
        for record in records
        if record.status in (UsageStatus.USED, UsageStatus.EXPIRED)
    ]
    known_codes = {entry.coupon_code for entry in entries}
    pending = [entry for entry in local if entry.coupon_code not in known_codes]
    return sorted(pending + entries, key=lambda entry: entry.date, reverse=True)


class CouponService:
    """优惠券业务服务"""

    def __init__(
        self,
        registry: SessionRegistry,
        promotions: PromotionService,
        identity: IdentityService,
        ledger: UsageLedger,
        lifecycle: RedemptionLifecycle,
        branch_resolver: BranchResolver
    ):
        self.registry = registry
        self.promotions = promotions
        self.identity = identity
        self.ledger = ledger
        self.lifecycle = lifecycle
        self.branch_resolver = branch_resolver

    def now(self) -> datetime:
        return to_local(self.lifecycle.clock())

    # ---- 会话 ----

    async def _seed_from_ledger(self, session: SessionContext, now: datetime) -> None:
        """用台账预热本期已使用集合和历史，台账不可用时保留现有缓存"""
        if session.is_guest or not session.identifier:
            return

        period_start, period_end = month_window(now)
        try:
            used_ids = await self.ledger.query_used_coupon_ids(session.identifier, period_start, period_end)
            records = await self.ledger.get_history(session.identifier, period_start, period_end)
        except Exception as e:
            logger.warning(f"读取使用台账失败，沿用本地缓存 {session.session_id}: {e}")
            return

        session.used_coupon_ids = session.used_coupon_ids | used_ids
        session.history = merge_history(session.history, records)

    async def start_member_session(
        self,
        identifier: str,
        now: Optional[datetime] = None
    ) -> Tuple[ValidationResult, Optional[SessionContext]]:
        """
        会员登录

        只有验证为会员时才创建会话；INVALID / NON_MEMBER 不产生会话，由调用方提示重试或以游客身份继续。

        Raises:
            IdentityServiceUnavailable: 会员数据源暂时不可用
        """
        result = await self.identity.validate(identifier)
        if result.status != IdentityStatus.MEMBER:
            return result, None

        session = await self.registry.create(
            identifier=identifier.strip(),
            entitlement=Entitlement.MEMBER,
            display_name=result.display_name,
            member_id=result.member_id
        )
        await self._seed_from_ledger(session, to_local(now or self.now()))
        await self.registry.save(session)
        logger.info(f"会员会话已创建: {session.session_id}")
        return result, session

    async def start_guest_session(self) -> SessionContext:
        """游客会话，共享标识不查询台账"""
        session = await self.registry.create(
            identifier=settings.guest_identifier,
            entitlement=Entitlement.NON_MEMBER,
            is_guest=True
        )
        logger.info(f"游客会话已创建: {session.session_id}")
        return session

    async def get_session(self, session_id: str) -> Optional[SessionContext]:
        return await self.registry.get(session_id)

    async def end_session(self, session_id: str) -> bool:
        """登出：取消倒计时并清除会话"""
        session = await self.registry.get(session_id)
        if session is None:
            return False
        self.lifecycle.abandon(session)
        session.reset()
        await self.registry.remove(session_id)
        logger.info(f"会话已结束: {session_id}")
        return True

    # ---- 活动 ----

    async def get_current_promotions(
        self,
        session: SessionContext,
        now: Optional[datetime] = None
    ) -> List[CampaignView]:
        return await self.promotions.get_current_promotions(session, now or self.now())

    async def find_coupon(
        self,
        session: SessionContext,
        coupon_id: str,
        now: Optional[datetime] = None
    ) -> Optional[CouponView]:
        """在会话当前可见的活动中查找优惠券"""
        for view in await self.get_current_promotions(session, now):
            coupon = view.find_coupon(coupon_id)
            if coupon is not None:
                return coupon
        return None

    # ---- 门店 ----

    def resolve_branch(
        self,
        coords: Optional[Coordinates] = None,
        branch_id: Optional[int] = None
    ) -> BranchResolution:
        if branch_id is not None:
            return self.branch_resolver.select_manual(branch_id)
        return self.branch_resolver.resolve(coords)

    # ---- 兑换码 ----

    async def generate_code(
        self,
        session: SessionContext,
        coupon_id: str,
        branch_name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[RedemptionCode]:
        """为可见且已解锁的优惠券生成兑换码并启动倒计时，其他情况返回 None"""
        now = to_local(now or self.now())
        coupon = await self.find_coupon(session, coupon_id, now)
        code = self.lifecycle.generate(session, coupon, branch_name, now)
        if code is None:
            return None
        self.lifecycle.start_countdown(session)
        await self.registry.save(session)
        return code

    async def get_code_status(
        self,
        session: SessionContext,
        now: Optional[datetime] = None
    ) -> Optional[RedemptionCode]:
        """当前兑换码 (到期的兑换码在此时过期处理)"""
        if session.active_code is None:
            return None
        if await self.lifecycle.check_expiry(session, now):
            await self.registry.save(session)
        return session.active_code

    async def confirm_code(
        self,
        session: SessionContext,
        now: Optional[datetime] = None
    ) -> bool:
        """确认使用；重复确认或过期后确认返回 False"""
        confirmed = await self.lifecycle.confirm_use(session, now=now)
        if session.active_code is not None and session.active_code.is_terminal:
            await self._seed_from_ledger(session, to_local(now or self.now()))
            await self.registry.save(session)
        return confirmed

    async def abandon_code(self, session: SessionContext) -> None:
        self.lifecycle.abandon(session)
        await self.registry.save(session)

    # ---- 历史 ----

    async def get_history(
        self,
        session: SessionContext,
        now: Optional[datetime] = None
    ) -> List[CouponHistoryEntry]:
        """本月使用历史，按时间倒序；游客只返回本会话内的记录"""
        if session.is_guest or not session.identifier:
            return list(session.history)

        period_start, period_end = month_window(to_local(now or self.now()))
        try:
            records = await self.ledger.get_history(session.identifier, period_start, period_end)
        except Exception as e:
            logger.warning(f"读取使用历史失败，返回本地历史 {session.session_id}: {e}")
            return list(session.history)

        return merge_history(session.history, records)


def build_coupon_service(ledger: Optional[UsageLedger] = None) -> Tuple[CouponService, UsageOutbox]:
    """按配置组装服务及其发件箱"""
    ledger = ledger or DatabaseUsageLedger()
    outbox = UsageOutbox(ledger, redis=redis_manager)
    lifecycle = RedemptionLifecycle(outbox, clock=now_local)
    service = CouponService(
        registry=SessionRegistry(),
        promotions=PromotionService(),
        identity=IdentityService(),
        ledger=ledger,
        lifecycle=lifecycle,
        branch_resolver=BranchResolver()
    )
    return service, outbox
