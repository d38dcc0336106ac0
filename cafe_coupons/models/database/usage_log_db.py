"""
使用记录数据库模型
"""

from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from cafe_coupons.core.database import Base


class UsageLogDB(Base):
    """优惠券使用记录表 (只追加)"""

    __tablename__ = "usage_logs"

    # 主键和用户信息
    id = Column(String(64), primary_key=True, comment="记录ID")
    identifier = Column(String(100), nullable=False, index=True, comment="用户标识")
    member_name = Column(String(200), comment="会员名称")

    # 优惠券信息
    coupon_id = Column(String(100), nullable=False, index=True, comment="优惠券ID")
    coupon_code = Column(String(50), nullable=False, comment="兑换码")
    coupon_name = Column(String(200), default="", comment="优惠券名称")
    coupon_card_title = Column(String(200), default="", comment="卡片标题")
    coupon_description = Column(Text, default="", comment="优惠券描述")
    coupon_image_url = Column(Text, comment="图片地址")

    # 兑换信息
    branch_name = Column(String(200), comment="门店名称")
    status = Column(String(20), nullable=False, index=True, comment="Used/Expired")

    # 时间 (UTC)
    timestamp = Column(DateTime, nullable=False, index=True, comment="终态时间(UTC)")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="写入时间")

    __table_args__ = (
        {'comment': '优惠券使用记录表'}
    )
