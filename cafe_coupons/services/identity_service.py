"""
会员身份验证服务
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from cafe_coupons.core.database import get_session_maker
from cafe_coupons.models.member import IdentityStatus, Member, ValidationResult
from cafe_coupons.repositories.member_repository import MemberRepository

logger = logging.getLogger(__name__)

DEFAULT_MEMBER_LABEL = "สมาชิก Vista Café"


class IdentityServiceUnavailable(Exception):
    """会员数据源暂时不可用 (所有查询都失败)，与 "未找到" 区分"""


class IdentityService:
    """会员身份验证服务类"""

    def __init__(self, session_maker: Optional[async_sessionmaker] = None):
        self._session_maker = session_maker

    @property
    def session_maker(self) -> async_sessionmaker:
        return self._session_maker or get_session_maker()

    async def _lookup(self, field: str, value: str) -> Optional[Member]:
        # 每个字段独立会话，单个查询失败不影响其他查询
        async with self.session_maker() as session:
            repo = MemberRepository(session)
            row = await repo.find_by_field(field, value)
            return repo.to_model(row) if row else None

    async def validate(self, identifier: Optional[str]) -> ValidationResult:
        """
        验证用户标识

        依次按 contact_phone、phone、application_number 查找会员。

        Returns:
            MEMBER: 找到会员；NON_MEMBER: 未找到；INVALID: 输入为空

        Raises:
            IdentityServiceUnavailable: 所有字段查询都失败
        """
        if identifier is None or not str(identifier).strip():
            return ValidationResult(status=IdentityStatus.INVALID)

        identifier = str(identifier).strip()
        failures = 0

        for field in MemberRepository.LOOKUP_FIELDS:
            try:
                member = await self._lookup(field, identifier)
            except Exception as e:
                logger.warning(f"会员查询失败 field={field}: {e}")
                failures += 1
                continue

            if member is not None:
                logger.info(f"会员验证成功 field={field} member={member.id}")
                return ValidationResult(
                    status=IdentityStatus.MEMBER,
                    display_name=member.full_name or DEFAULT_MEMBER_LABEL,
                    member_id=member.member_id or member.application_number or identifier
                )

        if failures == len(MemberRepository.LOOKUP_FIELDS):
            raise IdentityServiceUnavailable("会员数据源暂时不可用，请稍后重试")

        logger.info(f"未找到会员: {identifier}")
        return ValidationResult(status=IdentityStatus.NON_MEMBER)
