"""
兑换码与使用记录数据模型
"""

from datetime import datetime, timedelta
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from cafe_coupons.models.promotion import CouponInfo


class RedemptionState(str, Enum):
    """兑换码状态，USED/EXPIRED 为终态"""
    ACTIVE = "Active"
    USED = "Used"
    EXPIRED = "Expired"


class UsageStatus(str, Enum):
    """使用记录状态"""
    USED = "Used"
    EXPIRED = "Expired"


class RedemptionCode(BaseModel):
    """一次性限时兑换码"""

    model_config = ConfigDict(populate_by_name=True)

    value: str = Field(..., description="兑换码")
    coupon_id: str = Field(..., alias="couponId")
    branch_name: Optional[str] = Field(None, alias="branchName")
    created_at: datetime = Field(..., alias="createdAt")
    ttl_seconds: int = Field(default=300, ge=1, alias="ttlSeconds")
    state: RedemptionState = RedemptionState.ACTIVE
    finalized_at: Optional[datetime] = Field(None, alias="finalizedAt")

    # 本地 "正在结束" 标记，保证每个兑换码最多一次终态转换
    finalizing: bool = Field(default=False, exclude=True)
    # 生成时选中的优惠券，用于写入使用记录的展示字段
    coupon: Optional[CouponInfo] = Field(None, exclude=True)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    @property
    def is_terminal(self) -> bool:
        return self.state in (RedemptionState.USED, RedemptionState.EXPIRED)

    def is_due(self, now: datetime) -> bool:
        """是否已到过期时间"""
        return now >= self.expires_at

    def remaining_seconds(self, now: datetime) -> int:
        if self.is_terminal:
            return 0
        remaining = (self.expires_at - now).total_seconds()
        return max(0, int(remaining))


class UsageRecord(BaseModel):
    """使用记录 (追加到使用台账)"""

    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(..., description="用户标识")
    member_name: Optional[str] = Field(None, alias="memberName")
    coupon_id: str = Field(..., alias="couponId")
    coupon_code: str = Field(..., alias="couponCode")
    coupon_name: str = Field(default="", alias="couponName")
    coupon_card_title: str = Field(default="", alias="couponCardTitle")
    coupon_description: str = Field(default="", alias="couponDescription")
    coupon_image_url: Optional[str] = Field(None, alias="couponImageUrl")
    branch_name: Optional[str] = Field(None, alias="branchName")
    status: UsageStatus
    timestamp: datetime


class CouponHistoryEntry(BaseModel):
    """优惠券使用历史条目"""

    model_config = ConfigDict(populate_by_name=True)

    coupon_id: str = Field(..., alias="couponId")
    coupon_name: str = Field(default="", alias="couponName")
    coupon_card_title: str = Field(default="", alias="couponCardTitle")
    coupon_description: str = Field(default="", alias="couponDescription")
    coupon_image_url: Optional[str] = Field(None, alias="couponImageUrl")
    status: UsageStatus
    date: datetime
    coupon_code: str = Field(..., alias="couponCode")

    @classmethod
    def from_record(cls, record: UsageRecord) -> "CouponHistoryEntry":
        """从使用记录创建历史条目"""
        return cls(
            coupon_id=record.coupon_id,
            coupon_name=record.coupon_name,
            coupon_card_title=record.coupon_card_title or record.coupon_name,
            coupon_description=record.coupon_description,
            coupon_image_url=record.coupon_image_url,
            status=record.status,
            date=record.timestamp,
            coupon_code=record.coupon_code
        )
