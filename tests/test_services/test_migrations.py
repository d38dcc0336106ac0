"""
旧版活动文档迁移测试
"""

import pytest
from datetime import datetime

from cafe_coupons.models.database.campaign_db import CampaignDB, CURRENT_SCHEMA_VERSION
from cafe_coupons.repositories.campaign_repository import CampaignRepository
from cafe_coupons.services.migrations import (
    SchemaKind,
    classify_row,
    migrate_legacy_campaigns,
    parse_document_datetime,
    upgrade_legacy_document,
)


LEGACY_DOCUMENT = {
    "week": 3,
    "period": "15-21 ก.พ.",
    "startDate": "2026-02-15T00:00:00",
    "endDate": {"seconds": 1772211599},
    "coupons": [
        {"name": "ส่วนลด 10 บาท", "cardTitle": "ส่วนลด 10 บาท", "activeDay": 15},
        {"id": "w3-line-1", "name": "ส่วนลด 5%", "targetType": "all"},
    ],
    "legacyField": "ignored"
}


class TestUpgradeLegacyDocument:
    """旧版文档转换测试类"""

    def test_parse_document_datetime(self):
        """测试解析多种时间格式"""
        assert parse_document_datetime("2026-02-15T00:00:00Z").isoformat() == "2026-02-15T00:00:00+00:00"
        assert parse_document_datetime({"seconds": 0}).timestamp() == 0
        assert parse_document_datetime(1000).timestamp() == 1
        with pytest.raises(ValueError):
            parse_document_datetime("")

    def test_upgrade_defaults(self):
        """测试 priority 取 week、默认启用、补全优惠券ID"""
        upgraded = upgrade_legacy_document("camp-1", LEGACY_DOCUMENT)

        assert upgraded.priority == 3
        assert upgraded.week == 3
        assert upgraded.is_active is True
        assert [coupon.id for coupon in upgraded.coupons] == ["camp-1-c1", "w3-line-1"]
        assert upgraded.coupons[0].active_day == 15
        assert upgraded.end_date > upgraded.start_date

    def test_upgrade_is_stable(self):
        """测试重复转换得到相同的优惠券ID"""
        first = upgrade_legacy_document("camp-1", LEGACY_DOCUMENT)
        second = upgrade_legacy_document("camp-1", LEGACY_DOCUMENT)

        assert [coupon.id for coupon in first.coupons] == [coupon.id for coupon in second.coupons]

    def test_upgrade_keeps_explicit_values(self):
        """测试保留文档中已有的 priority 和 isActive"""
        document = dict(LEGACY_DOCUMENT, priority=0, isActive=False)

        upgraded = upgrade_legacy_document("camp-1", document)

        assert upgraded.priority == 0
        assert upgraded.is_active is False

    def test_classify_row(self):
        """测试按结构版本区分旧版与当前版本"""
        assert classify_row(CampaignDB(id="a", schema_version=None)) == SchemaKind.LEGACY
        assert classify_row(CampaignDB(id="b", schema_version=1)) == SchemaKind.LEGACY
        assert classify_row(CampaignDB(id="c", schema_version=CURRENT_SCHEMA_VERSION)) == SchemaKind.CURRENT


@pytest.mark.asyncio
class TestMigrateLegacyCampaigns:
    """启动迁移测试类"""

    async def test_migrates_legacy_rows(self, db_session):
        """测试旧版行迁移后可被读取为当前版本"""
        repo = CampaignRepository(db_session)
        await repo.add_legacy_document(LEGACY_DOCUMENT, campaign_id="legacy-1")

        report = await migrate_legacy_campaigns(db_session)

        assert report.migrated == ["legacy-1"]
        assert report.skipped == []

        rows = await repo.list_active()
        assert [row.id for row in rows] == ["legacy-1"]
        campaign = repo.to_model(rows[0])
        assert campaign.priority == 3
        assert campaign.start_date == datetime(2026, 2, 15)
        assert [coupon.id for coupon in campaign.coupons] == ["legacy-1-c1", "w3-line-1"]

    async def test_second_run_is_noop(self, db_session):
        """测试迁移只执行一次"""
        repo = CampaignRepository(db_session)
        await repo.add_legacy_document(LEGACY_DOCUMENT, campaign_id="legacy-1")

        await migrate_legacy_campaigns(db_session)
        report = await migrate_legacy_campaigns(db_session)

        assert report.migrated == []
        assert report.skipped == []

    async def test_invalid_document_skipped(self, db_session):
        """测试无法解析的旧版文档被跳过并记录原因"""
        repo = CampaignRepository(db_session)
        await repo.add_legacy_document({"week": 1, "startDate": "not a date", "endDate": "2026-02-01"}, campaign_id="bad")

        report = await migrate_legacy_campaigns(db_session)

        assert report.skipped == ["bad"]
        row = await repo.get_by_id("bad")
        assert row.schema_version is None
        assert row.migration_note
        assert await repo.list_active() == []
