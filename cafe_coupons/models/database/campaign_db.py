"""
活动数据库模型
"""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, Text
from sqlalchemy.sql import func
from cafe_coupons.core.database import Base

# 当前活动文档结构版本
CURRENT_SCHEMA_VERSION = 2


class CampaignDB(Base):
    """活动数据库表"""

    __tablename__ = "campaigns"

    # 主键和结构版本 (NULL 表示旧版文档，启动时迁移)
    id = Column(String(64), primary_key=True, comment="活动ID")
    schema_version = Column(Integer, nullable=True, index=True, comment="文档结构版本")

    # 展示与排序
    period = Column(String(200), default="", comment="周期文案")
    week = Column(Integer, comment="旧版排序字段")
    priority = Column(Integer, comment="排序优先级")
    is_active = Column(Boolean, nullable=True, comment="是否启用，NULL视为启用")

    # 有效期 (部署时区墙上时间)
    start_date = Column(DateTime, index=True, comment="开始时间")
    end_date = Column(DateTime, index=True, comment="结束时间")

    # 优惠券文档列表 (camelCase)
    coupons = Column(JSON, nullable=False, default=list, comment="优惠券列表")

    # 旧版原始文档
    legacy_document = Column(JSON, comment="旧版原始文档")
    migration_note = Column(Text, comment="迁移备注")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        {'comment': '活动信息表'}
    )
