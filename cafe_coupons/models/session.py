"""
会话上下文：显式传给引擎函数，替代全局可变状态
"""

from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, Field

from cafe_coupons.models.promotion import Entitlement
from cafe_coupons.models.redemption import CouponHistoryEntry, RedemptionCode


class SessionContext(BaseModel):
    """单个用户会话的上下文"""

    session_id: str = Field(..., description="会话ID")
    identifier: Optional[str] = Field(None, description="用户标识(手机号/会员号/Guest)")
    entitlement: Entitlement = Field(default=Entitlement.NON_MEMBER, description="会话权益")
    display_name: Optional[str] = Field(None, description="展示名称")
    member_id: Optional[str] = Field(None, description="会员编号")
    is_guest: bool = Field(default=False, description="是否游客")
    used_coupon_ids: Set[str] = Field(default_factory=set, description="本期已使用优惠券ID缓存")
    history: List[CouponHistoryEntry] = Field(default_factory=list, description="本期使用历史")
    active_code: Optional[RedemptionCode] = Field(None, description="进行中的兑换码，不持久化")

    def mark_used(self, coupon_id: str) -> None:
        """乐观更新已使用集合"""
        self.used_coupon_ids.add(coupon_id)

    def record_history(self, entry: CouponHistoryEntry) -> None:
        self.history.insert(0, entry)

    def reset(self) -> None:
        """登出/重置：清除身份与缓存"""
        self.identifier = None
        self.entitlement = Entitlement.NON_MEMBER
        self.display_name = None
        self.member_id = None
        self.is_guest = False
        self.used_coupon_ids = set()
        self.history = []
        self.active_code = None

    def to_snapshot(self) -> Dict[str, Any]:
        """生成可缓存的快照 (不含进行中的兑换码)"""
        return self.model_dump(mode="json", exclude={"active_code"})

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "SessionContext":
        data = {k: v for k, v in data.items() if k != "active_code"}
        return cls.model_validate(data)
