"""
会员数据库操作层
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cafe_coupons.models.member import Member
from cafe_coupons.models.database.member_db import MemberDB


class MemberRepository:
    """会员数据库操作类"""

    # 允许作为登录标识的字段
    LOOKUP_FIELDS = ("contact_phone", "phone", "application_number")

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_field(self, field: str, value: str) -> Optional[MemberDB]:
        """按指定字段精确查找会员"""
        if field not in self.LOOKUP_FIELDS:
            raise ValueError(f"不支持的查询字段: {field}")

        column = getattr(MemberDB, field)
        result = await self.db.execute(select(MemberDB).where(column == value).limit(1))
        return result.scalar_one_or_none()

    def to_model(self, row: MemberDB) -> Member:
        """转换为Pydantic模型"""
        return Member(
            id=row.id,
            member_id=row.member_id,
            application_number=row.application_number,
            phone=row.phone,
            contact_phone=row.contact_phone,
            first_name=row.first_name or "",
            last_name=row.last_name or ""
        )
