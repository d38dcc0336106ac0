"""
使用记录Repository数据库操作测试 - 使用内存SQLite
"""

import pytest
from datetime import datetime, timezone

from cafe_coupons.core.timeutils import month_window
from cafe_coupons.models.redemption import UsageRecord, UsageStatus
from cafe_coupons.repositories.usage_log_repository import UsageLogRepository
from cafe_coupons.services.usage_ledger import DatabaseUsageLedger, identifier_variants
from tests.factories import local_dt


def make_record(identifier: str, coupon_id: str, when: datetime, status: UsageStatus = UsageStatus.USED) -> UsageRecord:
    return UsageRecord(
        identifier=identifier,
        coupon_id=coupon_id,
        coupon_code=f"MC{when:%d%m}-1000",
        coupon_name=f"优惠券 {coupon_id}",
        status=status,
        timestamp=when
    )


@pytest.mark.asyncio
class TestUsageLogRepository:
    """使用记录Repository测试类"""

    async def test_add_and_list(self, db_session):
        """测试追加记录并按时间倒序读取"""
        repo = UsageLogRepository(db_session)
        await repo.add(make_record("0812345678", "c1", local_dt(2026, 2, 3, 9, 0)))
        await repo.add(make_record("0812345678", "c2", local_dt(2026, 2, 10, 9, 0), UsageStatus.EXPIRED))

        rows = await repo.list_by_identifiers(["0812345678"])

        assert [row.coupon_id for row in rows] == ["c2", "c1"]
        assert rows[0].status == "Expired"
        # 按 UTC 存储
        assert rows[1].timestamp == datetime(2026, 2, 3, 2, 0)

    async def test_to_model_returns_utc(self, db_session):
        """测试转换为模型时带UTC时区"""
        repo = UsageLogRepository(db_session)
        row = await repo.add(make_record("0812345678", "c1", local_dt(2026, 2, 3, 9, 0)))

        record = repo.to_model(row)

        assert record.timestamp.tzinfo == timezone.utc
        assert record.timestamp == local_dt(2026, 2, 3, 9, 0)
        assert record.status == UsageStatus.USED

    async def test_period_and_status_filter(self, db_session):
        """测试按期间和状态过滤"""
        repo = UsageLogRepository(db_session)
        await repo.add(make_record("0812345678", "jan", local_dt(2026, 1, 31, 23, 0)))
        await repo.add(make_record("0812345678", "feb", local_dt(2026, 2, 1, 0, 30)))

        start, end = month_window(local_dt(2026, 2, 15))
        rows = await repo.list_by_identifiers(["0812345678"], start, end, [UsageStatus.USED])

        assert [row.coupon_id for row in rows] == ["feb"]

    async def test_empty_identifiers(self, db_session):
        """测试没有标识时返回空列表"""
        repo = UsageLogRepository(db_session)

        assert await repo.list_by_identifiers([]) == []


class TestIdentifierVariants:
    """标识变体测试类"""

    def test_phone_variants(self):
        """测试手机号有/无前导 0 的变体"""
        assert identifier_variants(["081-234-5678"]) == ["081-234-5678", "0812345678", "812345678"]
        assert identifier_variants(["812345678"]) == ["812345678", "0812345678"]

    def test_blank_and_duplicates(self):
        """测试忽略空值并去重"""
        assert identifier_variants(["", "  ", "APP-77", "APP-77"]) == ["APP-77", "77"]

    def test_variant_limit(self):
        """测试最多返回 10 个变体"""
        identifiers = [f"08123456{i:02d}" for i in range(10)]

        assert len(identifier_variants(identifiers)) == 10


@pytest.mark.asyncio
class TestDatabaseUsageLedger:
    """数据库台账测试类"""

    async def test_append_and_query_with_variants(self, session_maker):
        """测试写入后可按标识变体查询已使用优惠券"""
        ledger = DatabaseUsageLedger(session_maker)
        assert await ledger.append(make_record("0812345678", "c1", local_dt(2026, 2, 20, 10, 0)))
        assert await ledger.append(make_record("812345678", "c2", local_dt(2026, 2, 21, 10, 0), UsageStatus.EXPIRED))
        assert await ledger.append(make_record("0899999999", "c3", local_dt(2026, 2, 21, 10, 0)))

        start, end = month_window(local_dt(2026, 2, 25))
        used = await ledger.query_used_coupon_ids("0812345678", start, end)
        history = await ledger.get_history("0812345678", start, end)

        assert used == {"c1", "c2"}
        assert [record.coupon_id for record in history] == ["c2", "c1"]

    async def test_append_failure_returns_false(self):
        """测试写入失败时返回 False 而不是抛出异常"""
        def broken_session_maker():
            raise ConnectionError("database down")

        ledger = DatabaseUsageLedger(broken_session_maker)

        assert await ledger.append(make_record("0812345678", "c1", local_dt(2026, 2, 20))) is False
