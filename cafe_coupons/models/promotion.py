"""
活动与优惠券数据模型

字段别名保持存储文档的 camelCase 形状 (startDate, isActive, cardTitle ...)，
使用 model_dump(by_alias=True) 即可得到与现有数据集一致的文档。
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum

from cafe_coupons.core.timeutils import to_local


class Entitlement(str, Enum):
    """会话权益"""
    MEMBER = "MEMBER"  # 已验证会员
    NON_MEMBER = "NON_MEMBER"  # 游客/非会员


class TargetType(str, Enum):
    """优惠券投放对象"""
    ALL = "all"  # 所有人
    MEMBERS = "members"  # 仅会员
    SPECIFIC = "specific"  # 指定用户


class CouponInfo(BaseModel):
    """优惠券定义"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="优惠券ID，生命周期内保持不变")
    name: str = Field(default="", description="名称")
    card_title: str = Field(default="", alias="cardTitle", description="卡片标题")
    description: str = Field(default="", description="简介")
    details: str = Field(default="", description="详情")
    terms: str = Field(default="", description="使用条款")
    usage_limit: str = Field(default="", alias="usageLimit", description="使用限制说明")
    validity_period: str = Field(default="", alias="validityPeriod", description="有效期说明")
    image_url: Optional[str] = Field(None, alias="imageUrl", description="图片地址")
    is_member_only: bool = Field(default=False, alias="isMemberOnly", description="是否会员专享")
    target_type: Optional[TargetType] = Field(None, alias="targetType", description="投放对象")
    target_ids: List[str] = Field(default_factory=list, alias="targetIds", description="指定用户标识")
    active_day: Optional[int] = Field(None, ge=1, le=31, alias="activeDay", description="每月解锁日")

    @field_validator("target_ids", mode="before")
    @classmethod
    def coerce_target_ids(cls, v):
        if v is None:
            return []
        return [str(item) for item in v]


class Campaign(BaseModel):
    """活动 (一组共享生效规则的优惠券)"""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, description="活动ID，由存储分配")
    week: Optional[int] = Field(None, description="旧版排序字段")
    period: str = Field(default="", description="展示用周期文案")
    start_date: datetime = Field(..., alias="startDate", description="开始时间(含)")
    end_date: datetime = Field(..., alias="endDate", description="结束时间(含)")
    coupons: List[CouponInfo] = Field(default_factory=list, description="优惠券，按展示顺序")
    is_active: Optional[bool] = Field(None, alias="isActive", description="是否启用，缺省视为启用")
    priority: Optional[int] = Field(None, description="排序优先级，越小越靠前")

    @property
    def active(self) -> bool:
        return self.is_active is not False

    @property
    def effective_priority(self) -> int:
        """优先级，缺省时回退到旧版 week"""
        if self.priority is not None:
            return self.priority
        return self.week or 0


class CampaignCreate(BaseModel):
    """创建活动模型"""

    model_config = ConfigDict(populate_by_name=True)

    week: Optional[int] = None
    period: str = ""
    start_date: datetime = Field(..., alias="startDate")
    end_date: datetime = Field(..., alias="endDate")
    coupons: List[CouponInfo] = Field(default_factory=list)
    is_active: bool = Field(default=True, alias="isActive")
    priority: Optional[int] = None

    @model_validator(mode="after")
    def validate_campaign(self):
        """验证时间区间与投放规则"""
        if to_local(self.end_date) < to_local(self.start_date):
            raise ValueError("结束时间不能早于开始时间")

        seen = set()
        for coupon in self.coupons:
            if coupon.id in seen:
                raise ValueError(f"优惠券ID重复: {coupon.id}")
            seen.add(coupon.id)
            if coupon.target_type == TargetType.SPECIFIC and not coupon.target_ids:
                raise ValueError(f"指定用户优惠券必须包含 targetIds: {coupon.id}")
        return self


class CouponView(CouponInfo):
    """带锁定状态的优惠券视图"""

    is_locked: bool = Field(default=False, alias="isLocked")
    is_near_expiry: bool = Field(default=False, alias="isNearExpiry")
    promo_start_date: Optional[datetime] = Field(None, alias="promoStartDate")


class EligibleCampaign(BaseModel):
    """资格筛选结果：活动及其对当前用户可见的优惠券"""

    campaign: Campaign
    coupons: List[CouponInfo]


class CampaignView(BaseModel):
    """当前活动视图"""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    period: str = ""
    start_date: datetime = Field(..., alias="startDate")
    end_date: datetime = Field(..., alias="endDate")
    priority: int = 0
    coupons: List[CouponView] = Field(default_factory=list)

    @property
    def has_unlocked(self) -> bool:
        return any(not coupon.is_locked for coupon in self.coupons)

    def find_coupon(self, coupon_id: str) -> Optional[CouponView]:
        for coupon in self.coupons:
            if coupon.id == coupon_id:
                return coupon
        return None
