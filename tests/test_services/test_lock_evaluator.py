"""
锁定状态判断测试
"""

from datetime import datetime

from cafe_coupons.services.lock_evaluator import annotate_lock_state, is_coupon_locked
from tests.factories import local_dt, make_campaign, make_coupon


class TestLockEvaluator:
    """锁定状态判断测试类"""

    def test_locked_before_campaign_start(self):
        """测试活动开始前锁定"""
        coupon = make_coupon("a")
        campaign = make_campaign("c", datetime(2026, 2, 10, 9, 0), datetime(2026, 2, 28), [coupon])

        assert is_coupon_locked(coupon, campaign, local_dt(2026, 2, 10, 8, 59)) is True
        assert is_coupon_locked(coupon, campaign, local_dt(2026, 2, 10, 9, 0)) is False

    def test_active_day_unlocks_on_that_day(self):
        """测试 activeDay 当天及之后解锁"""
        coupon = make_coupon("a", activeDay=20)
        campaign = make_campaign("c", datetime(2026, 2, 1), datetime(2026, 3, 31), [coupon])

        assert is_coupon_locked(coupon, campaign, local_dt(2026, 2, 19, 23, 59)) is True
        assert is_coupon_locked(coupon, campaign, local_dt(2026, 2, 20, 0, 0)) is False
        assert is_coupon_locked(coupon, campaign, local_dt(2026, 2, 27)) is False
        assert is_coupon_locked(coupon, campaign, local_dt(2026, 3, 5)) is True

    def test_day_of_month_uses_deployment_timezone(self):
        """测试按部署时区的日期判断，UTC 时间先转换"""
        coupon = make_coupon("a", activeDay=20)
        campaign = make_campaign("c", datetime(2026, 2, 1), datetime(2026, 2, 28), [coupon])

        # 2026-02-19 18:00 UTC = 2026-02-20 01:00 Asia/Bangkok
        utc_now = datetime.fromisoformat("2026-02-19T18:00:00+00:00")
        assert is_coupon_locked(coupon, campaign, utc_now) is False

    def test_annotate_keeps_coupon_fields(self):
        """测试标注后保留原有字段"""
        coupon = make_coupon("a", activeDay=20, terms="เงื่อนไข", imageUrl="https://example.com/a.jpg")
        campaign = make_campaign("c", datetime(2026, 2, 1), datetime(2026, 2, 28), [coupon])

        view = annotate_lock_state(coupon, campaign, local_dt(2026, 2, 15))

        assert view.is_locked is True
        assert view.terms == "เงื่อนไข"
        assert view.image_url == "https://example.com/a.jpg"
        assert view.promo_start_date == campaign.start_date
        assert coupon.model_dump() == make_coupon("a", activeDay=20, terms="เงื่อนไข", imageUrl="https://example.com/a.jpg").model_dump()
