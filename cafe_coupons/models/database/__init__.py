"""
数据库模型包初始化文件
"""

from .campaign_db import CampaignDB, CURRENT_SCHEMA_VERSION
from .usage_log_db import UsageLogDB
from .member_db import MemberDB

__all__ = [
    "CampaignDB",
    "CURRENT_SCHEMA_VERSION",
    "UsageLogDB",
    "MemberDB"
]
