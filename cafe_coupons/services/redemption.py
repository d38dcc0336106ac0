"""
兑换码生命周期

状态: 无码 -> Active -> {Used | Expired}，两个终态都不可再转换。
每个兑换码由本地 finalizing 标记保证最多一次终态转换，并且只产生一条使用记录。
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Callable, Dict, Optional

from cafe_coupons.core.config import settings
from cafe_coupons.core.timeutils import now_local, to_local
from cafe_coupons.models.promotion import CouponView, Entitlement
from cafe_coupons.models.redemption import (
    CouponHistoryEntry,
    RedemptionCode,
    RedemptionState,
    UsageRecord,
    UsageStatus,
)
from cafe_coupons.models.session import SessionContext
from cafe_coupons.services.usage_outbox import UsageOutbox

logger = logging.getLogger(__name__)


def format_code_value(prefix: str, now: datetime, suffix: int) -> str:
    """兑换码格式: <前缀><日DD><月MM>-<4位随机数>"""
    return f"{prefix}{now.day:02d}{now.month:02d}-{suffix:04d}"


class RedemptionLifecycle:
    """兑换码生成、倒计时与终态管理"""

    def __init__(
        self,
        outbox: UsageOutbox,
        prefix_member: Optional[str] = None,
        prefix_guest: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        tick_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None
    ):
        self.outbox = outbox
        self.prefix_member = prefix_member if prefix_member is not None else settings.coupon_prefix_member
        self.prefix_guest = prefix_guest if prefix_guest is not None else settings.coupon_prefix_guest
        self.ttl_seconds = ttl_seconds or settings.redemption_ttl_seconds
        self.tick_seconds = tick_seconds if tick_seconds is not None else settings.countdown_tick_seconds
        self.clock = clock or now_local
        self.rng = rng or random.SystemRandom()
        self._countdowns: Dict[str, asyncio.Task] = {}

    def prefix_for(self, entitlement: Entitlement) -> str:
        if entitlement == Entitlement.MEMBER:
            return self.prefix_member
        return self.prefix_guest

    def generate(
        self,
        session: SessionContext,
        coupon: Optional[CouponView],
        branch_name: Optional[str],
        now: Optional[datetime] = None
    ) -> Optional[RedemptionCode]:
        """
        为选中的优惠券生成兑换码

        coupon 必须是已标注锁定状态的 CouponView (见 annotate_lock_state)；
        未选择、未标注、已锁定或本期已使用的优惠券不会生成兑换码 (返回 None)。
        同一会话中尚未结束的旧兑换码会被丢弃，不写使用记录。
        """
        if coupon is None:
            logger.debug("未选择优惠券，忽略生成请求")
            return None
        if not isinstance(coupon, CouponView):
            logger.warning(f"优惠券未标注锁定状态，忽略生成请求: {coupon.id}")
            return None
        if coupon.is_locked:
            logger.info(f"优惠券尚未解锁，忽略生成请求: {coupon.id}")
            return None
        if coupon.id in session.used_coupon_ids:
            logger.info(f"优惠券本期已使用，忽略生成请求: {coupon.id}")
            return None

        if session.active_code is not None and not session.active_code.is_terminal:
            self.abandon(session)

        now = to_local(now or self.clock())
        value = format_code_value(
            self.prefix_for(session.entitlement),
            now,
            self.rng.randint(1000, 9999)
        )
        code = RedemptionCode(
            value=value,
            coupon_id=coupon.id,
            branch_name=branch_name,
            created_at=now,
            ttl_seconds=self.ttl_seconds,
            coupon=coupon
        )
        session.active_code = code
        logger.info(f"兑换码已生成: {value} coupon={coupon.id} branch={branch_name}")
        return code

    def start_countdown(
        self,
        session: SessionContext,
        on_tick: Optional[Callable[[int], None]] = None
    ) -> Optional[asyncio.Task]:
        """启动倒计时，每个 tick 减 1 秒，归零时过期"""
        code = session.active_code
        if code is None or code.is_terminal:
            return None

        self._cancel_countdown(session.session_id)
        task = asyncio.create_task(self._run_countdown(session, code, on_tick))
        self._countdowns[session.session_id] = task
        return task

    async def _run_countdown(
        self,
        session: SessionContext,
        code: RedemptionCode,
        on_tick: Optional[Callable[[int], None]]
    ) -> None:
        remaining = code.ttl_seconds
        try:
            while remaining > 0:
                await asyncio.sleep(self.tick_seconds)
                if code.is_terminal or code.finalizing:
                    return
                remaining -= 1
                if on_tick is not None:
                    on_tick(remaining)
            await self.expire(session, code)
        finally:
            if self._countdowns.get(session.session_id) is asyncio.current_task():
                self._countdowns.pop(session.session_id, None)

    def _cancel_countdown(self, session_id: str) -> None:
        task = self._countdowns.pop(session_id, None)
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def has_countdown(self, session_id: str) -> bool:
        task = self._countdowns.get(session_id)
        return task is not None and not task.done()

    async def confirm_use(
        self,
        session: SessionContext,
        code: Optional[RedemptionCode] = None,
        now: Optional[datetime] = None
    ) -> bool:
        """
        确认使用: Active -> Used

        已结束或正在结束的兑换码忽略；超过有效期的兑换码按过期处理。
        """
        code = code or session.active_code
        if code is None or code.finalizing or code.is_terminal:
            return False

        now = to_local(now or self.clock())
        if code.is_due(now):
            await self.expire(session, code, now)
            return False

        code.finalizing = True
        code.state = RedemptionState.USED
        code.finalized_at = now
        self._cancel_countdown(session.session_id)
        await self._finalize(session, code, UsageStatus.USED, now)
        return True

    async def expire(
        self,
        session: SessionContext,
        code: Optional[RedemptionCode] = None,
        now: Optional[datetime] = None
    ) -> bool:
        """过期: Active -> Expired"""
        code = code or session.active_code
        if code is None or code.finalizing or code.is_terminal:
            return False

        code.finalizing = True
        code.state = RedemptionState.EXPIRED
        code.finalized_at = to_local(now or self.clock())
        self._cancel_countdown(session.session_id)
        await self._finalize(session, code, UsageStatus.EXPIRED, code.finalized_at)
        return True

    async def check_expiry(self, session: SessionContext, now: Optional[datetime] = None) -> bool:
        """按时钟检查当前兑换码是否到期，到期则过期处理"""
        code = session.active_code
        if code is None or code.is_terminal:
            return False
        now = to_local(now or self.clock())
        if code.is_due(now):
            return await self.expire(session, code, now)
        return False

    def abandon(self, session: SessionContext) -> None:
        """离开页面：丢弃未结束的兑换码，不写使用记录"""
        self._cancel_countdown(session.session_id)
        code = session.active_code
        if code is not None and not code.is_terminal:
            logger.info(f"兑换码已放弃: {code.value}")
        session.active_code = None

    async def shutdown(self) -> None:
        """取消全部倒计时"""
        tasks = list(self._countdowns.values())
        self._countdowns.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _finalize(
        self,
        session: SessionContext,
        code: RedemptionCode,
        status: UsageStatus,
        now: datetime
    ) -> None:
        coupon = code.coupon
        session.mark_used(code.coupon_id)

        description = coupon.description if coupon else ""
        if status == UsageStatus.EXPIRED:
            description = f"Expired: {description}"

        record = UsageRecord(
            identifier=session.identifier or settings.guest_identifier,
            member_name=session.display_name,
            coupon_id=code.coupon_id,
            coupon_code=code.value,
            coupon_name=coupon.name if coupon else "",
            coupon_card_title=coupon.card_title if coupon else "",
            coupon_description=description,
            coupon_image_url=coupon.image_url if coupon else None,
            branch_name=code.branch_name,
            status=status,
            timestamp=now
        )
        session.record_history(CouponHistoryEntry.from_record(record))
        logger.info(f"兑换码已结束: {code.value} status={status.value}")

        # 台账写入失败不影响本地状态
        try:
            await self.outbox.enqueue(record)
        except Exception as e:
            logger.error(f"使用记录入队失败 {code.value}: {e}")
