"""
旧版活动文档迁移

旧版文档 (legacy): 没有 schemaVersion，只有 week 排序，日期可能是字符串或
{"seconds": ...} 时间戳，缺少 isActive，优惠券可能没有 id。
启动时一次性转换为当前版本，读取路径不再做结构判断。
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from cafe_coupons.core.timeutils import get_timezone
from cafe_coupons.models.promotion import CampaignCreate, CouponInfo
from cafe_coupons.models.database.campaign_db import CampaignDB, CURRENT_SCHEMA_VERSION
from cafe_coupons.repositories.campaign_repository import CampaignRepository

logger = logging.getLogger(__name__)


class SchemaKind(str, Enum):
    """活动文档结构类型"""
    LEGACY = "legacy"
    CURRENT = "current"


def parse_document_datetime(value: Any) -> datetime:
    """解析旧版文档中的时间字段"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, dict) and "seconds" in value:
        return datetime.fromtimestamp(int(value["seconds"]), tz=timezone.utc).astimezone(get_timezone())
    if isinstance(value, (int, float)):
        # 毫秒时间戳
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).astimezone(get_timezone())
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    raise ValueError(f"无法解析的时间: {value!r}")


class LegacyCampaignDocument(BaseModel):
    """旧版活动文档"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    week: int = 0
    period: str = ""
    start_date: datetime = Field(..., alias="startDate")
    end_date: datetime = Field(..., alias="endDate")
    coupons: List[Dict[str, Any]] = Field(default_factory=list)
    is_active: Optional[bool] = Field(None, alias="isActive")
    priority: Optional[int] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return parse_document_datetime(v)


class MigrationReport(BaseModel):
    """迁移结果"""

    migrated: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)


def classify_row(row: CampaignDB) -> SchemaKind:
    if row.schema_version is None or row.schema_version < CURRENT_SCHEMA_VERSION:
        return SchemaKind.LEGACY
    return SchemaKind.CURRENT


def upgrade_legacy_document(campaign_id: str, document: Dict[str, Any]) -> CampaignCreate:
    """
    把旧版文档转换为当前版本

    - priority 缺省时取 week
    - isActive 缺省时视为启用
    - 没有 id 的优惠券分配稳定 id: <活动ID>-c<序号>
    """
    legacy = LegacyCampaignDocument.model_validate(document)

    coupons: List[CouponInfo] = []
    for index, raw in enumerate(legacy.coupons):
        data = dict(raw)
        if not str(data.get("id") or "").strip():
            data["id"] = f"{campaign_id}-c{index + 1}"
        coupons.append(CouponInfo.model_validate(data))

    return CampaignCreate(
        week=legacy.week,
        period=legacy.period,
        start_date=legacy.start_date,
        end_date=legacy.end_date,
        coupons=coupons,
        is_active=legacy.is_active if legacy.is_active is not None else True,
        priority=legacy.priority if legacy.priority is not None else legacy.week
    )


def _legacy_payload(row: CampaignDB) -> Dict[str, Any]:
    """旧版行的原始文档；没有原始文档时由列值拼出"""
    if row.legacy_document:
        return dict(row.legacy_document)
    return {
        "week": row.week or 0,
        "period": row.period or "",
        "startDate": row.start_date,
        "endDate": row.end_date,
        "coupons": row.coupons or [],
        "isActive": row.is_active,
        "priority": row.priority
    }


async def migrate_legacy_campaigns(db: AsyncSession) -> MigrationReport:
    """启动时执行的一次性迁移"""
    repo = CampaignRepository(db)
    report = MigrationReport()

    for row in await repo.list_legacy():
        if classify_row(row) != SchemaKind.LEGACY:
            continue
        try:
            upgraded = upgrade_legacy_document(row.id, _legacy_payload(row))
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"旧版活动无法迁移，保持原样: {row.id}: {e}")
            row.migration_note = str(e)[:500]
            report.skipped.append(row.id)
            continue

        repo.apply(row, upgraded)
        row.migration_note = "migrated from legacy schema"
        report.migrated.append(row.id)

    await db.flush()

    if report.migrated or report.skipped:
        logger.info(f"旧版活动迁移完成: 迁移 {len(report.migrated)} 条, 跳过 {len(report.skipped)} 条")
    return report
