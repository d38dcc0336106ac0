"""
优惠券会话接口测试 - 使用TestClient和内存台账
"""

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

from cafe_coupons.api.coupons import router as coupons_router
from cafe_coupons.api.exceptions import (
    BusinessException,
    business_exception_handler,
    identity_unavailable_handler,
    validation_exception_handler,
)
from cafe_coupons.models.member import IdentityStatus, ValidationResult
from cafe_coupons.services.identity_service import IdentityServiceUnavailable


@pytest.fixture
def client(coupon_service):
    app = FastAPI()
    app.include_router(coupons_router)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(IdentityServiceUnavailable, identity_unavailable_handler)
    app.state.coupon_service = coupon_service

    # 保持同一个事件循环，倒计时任务跨请求存活
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(coupon_service.lifecycle.shutdown)


def guest_session_id(client) -> str:
    response = client.post("/sessions/guest")
    assert response.status_code == 201
    return response.json()["session"]["sessionId"]


class TestLogin:
    """登录接口测试类"""

    def test_member_login(self, client):
        """测试会员登录返回会话"""
        response = client.post("/sessions", json={"identifier": "0812345678"})

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "MEMBER"
        assert data["session"]["entitlement"] == "MEMBER"
        assert data["session"]["displayName"] == "Somchai Jaidee"
        assert data["session"]["isGuest"] is False

    def test_non_member_login_has_no_session(self, client, mock_identity):
        """测试非会员登录不创建会话"""
        mock_identity.validate.return_value = ValidationResult(status=IdentityStatus.NON_MEMBER)

        response = client.post("/sessions", json={"identifier": "0800000000"})

        assert response.status_code == 201
        assert response.json()["status"] == "NON_MEMBER"
        assert response.json()["session"] is None

    def test_invalid_identifier(self, client, mock_identity):
        """测试空标识返回 400"""
        mock_identity.validate.return_value = ValidationResult(status=IdentityStatus.INVALID)

        response = client.post("/sessions", json={"identifier": "   "})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"]["code"] == "INVALID_IDENTIFIER"

    def test_identity_service_unavailable(self, client, mock_identity):
        """测试会员服务不可用返回 503"""
        mock_identity.validate.side_effect = IdentityServiceUnavailable("member lookup failed")

        response = client.post("/sessions", json={"identifier": "0812345678"})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "IDENTITY_SERVICE_UNAVAILABLE"

    def test_missing_identifier(self, client):
        """测试缺少参数返回 422"""
        response = client.post("/sessions", json={})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_logout(self, client):
        """测试登出后会话不可用"""
        session_id = guest_session_id(client)

        assert client.delete(f"/sessions/{session_id}").status_code == 200
        assert client.get(f"/sessions/{session_id}/promotions").status_code == 404


class TestRedemptionEndpoints:
    """兑换接口测试类"""

    def test_unknown_session(self, client):
        """测试不存在的会话返回 404"""
        response = client.get("/sessions/missing/promotions")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"

    def test_guest_promotions(self, client):
        """测试游客看不到会员专享活动"""
        session_id = guest_session_id(client)

        response = client.get(f"/sessions/{session_id}/promotions")

        assert response.status_code == 200
        campaigns = response.json()["campaigns"]
        assert [campaign["id"] for campaign in campaigns] == ["feb"]
        coupon = campaigns[0]["coupons"][0]
        assert coupon["id"] == "c1"
        assert coupon["isLocked"] is False

    def test_generate_and_confirm(self, client, outbox):
        """测试生成兑换码并确认，重复确认不生效"""
        session_id = guest_session_id(client)

        response = client.post(
            f"/sessions/{session_id}/codes",
            json={"couponId": "c1", "branchName": "สาขาแจ้งวัฒนะ"}
        )
        assert response.status_code == 201
        code = response.json()["code"]
        assert code["value"].startswith("MC2002-")
        assert code["state"] == "Active"
        assert code["remainingSeconds"] == 300

        response = client.get(f"/sessions/{session_id}/codes/current")
        assert response.json()["code"]["value"] == code["value"]

        first = client.post(f"/sessions/{session_id}/codes/current/confirm").json()
        second = client.post(f"/sessions/{session_id}/codes/current/confirm").json()

        assert first["confirmed"] is True
        assert first["code"]["state"] == "Used"
        assert first["code"]["remainingSeconds"] == 0
        assert second["confirmed"] is False
        assert client.portal.call(outbox.pending_count) == 1

        # 已使用的优惠券不能再次生成
        response = client.post(f"/sessions/{session_id}/codes", json={"couponId": "c1"})
        assert response.status_code == 409

        history = client.get(f"/sessions/{session_id}/history").json()["history"]
        assert [entry["couponCode"] for entry in history] == [code["value"]]

    def test_unavailable_coupon(self, client):
        """测试不可见的优惠券返回 409"""
        session_id = guest_session_id(client)

        response = client.post(f"/sessions/{session_id}/codes", json={"couponId": "vip"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "COUPON_NOT_AVAILABLE"

    def test_no_active_code(self, client):
        """测试没有兑换码时返回 404"""
        session_id = guest_session_id(client)

        assert client.get(f"/sessions/{session_id}/codes/current").status_code == 404
        assert client.post(f"/sessions/{session_id}/codes/current/confirm").status_code == 404

    def test_abandon_code(self, client, outbox):
        """测试放弃兑换码后可重新生成，且不写使用记录"""
        session_id = guest_session_id(client)
        client.post(f"/sessions/{session_id}/codes", json={"couponId": "c1"})

        assert client.delete(f"/sessions/{session_id}/codes/current").status_code == 200
        assert client.get(f"/sessions/{session_id}/codes/current").status_code == 404
        assert client.portal.call(outbox.pending_count) == 0
        assert client.post(f"/sessions/{session_id}/codes", json={"couponId": "c1"}).status_code == 201


class TestBranchEndpoint:
    """门店接口测试类"""

    def test_nearest_branch(self, client):
        """测试按坐标定位门店"""
        session_id = guest_session_id(client)

        response = client.post(f"/sessions/{session_id}/branch", json={"lat": 13.7570, "lng": 100.4850})

        resolution = response.json()["resolution"]
        assert resolution["branch"]["id"] == 8
        assert resolution["needs_manual_selection"] is False

    def test_manual_selection(self, client):
        """测试无坐标时返回门店列表，指定门店ID时直接选择"""
        session_id = guest_session_id(client)

        manual = client.post(f"/sessions/{session_id}/branch", json={}).json()["resolution"]
        selected = client.post(f"/sessions/{session_id}/branch", json={"branchId": 1}).json()["resolution"]

        assert manual["needs_manual_selection"] is True
        assert len(manual["candidates"]) == 13
        assert selected["branch"]["name"] == "สาขาแจ้งวัฒนะ"
