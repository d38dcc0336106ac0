"""
仓库包初始化文件 - 数据库访问层
"""

from .campaign_repository import CampaignRepository
from .member_repository import MemberRepository
from .usage_log_repository import UsageLogRepository

__all__ = [
    "CampaignRepository",
    "MemberRepository",
    "UsageLogRepository"
]
