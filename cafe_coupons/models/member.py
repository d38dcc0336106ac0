"""
会员身份验证相关数据模型
"""

from typing import Optional
from pydantic import BaseModel, Field
from enum import Enum


class IdentityStatus(str, Enum):
    """身份验证结果状态"""
    MEMBER = "MEMBER"  # 会员
    NON_MEMBER = "NON_MEMBER"  # 未找到会员记录
    INVALID = "INVALID"  # 输入无效


class ValidationResult(BaseModel):
    """身份验证结果"""

    status: IdentityStatus
    display_name: Optional[str] = Field(None, description="展示名称")
    member_id: Optional[str] = Field(None, description="会员编号")


class Member(BaseModel):
    """会员信息"""

    id: str
    member_id: Optional[str] = None
    application_number: Optional[str] = None
    phone: Optional[str] = None
    contact_phone: Optional[str] = None
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
