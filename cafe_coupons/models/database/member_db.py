"""
会员数据库模型
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from cafe_coupons.core.database import Base


class MemberDB(Base):
    """会员表"""

    __tablename__ = "members"

    id = Column(String(64), primary_key=True, comment="记录ID")
    member_id = Column(String(50), index=True, comment="会员编号")
    application_number = Column(String(50), index=True, comment="申请编号")
    phone = Column(String(20), index=True, comment="手机号")
    contact_phone = Column(String(20), index=True, comment="联系电话")
    first_name = Column(String(100), default="", comment="名")
    last_name = Column(String(100), default="", comment="姓")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        {'comment': '会员信息表'}
    )
