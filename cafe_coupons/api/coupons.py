"""
优惠券会话接口
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, ConfigDict, Field

from cafe_coupons.api.exceptions import (
    CouponNotAvailable,
    InvalidIdentifier,
    NoActiveCode,
    SessionNotFound,
)
from cafe_coupons.models.branch import BranchResolution, Coordinates
from cafe_coupons.models.member import IdentityStatus
from cafe_coupons.models.promotion import CampaignView
from cafe_coupons.models.redemption import CouponHistoryEntry, RedemptionCode
from cafe_coupons.models.session import SessionContext
from cafe_coupons.services.coupon_service import CouponService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["优惠券"])


class LoginRequest(BaseModel):
    identifier: str = Field(..., description="手机号/会员号")


class BranchRequest(BaseModel):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    branch_id: Optional[int] = Field(None, alias="branchId", description="手动选择的门店ID")

    model_config = ConfigDict(populate_by_name=True)


class GenerateCodeRequest(BaseModel):
    coupon_id: str = Field(..., alias="couponId", min_length=1)
    branch_name: Optional[str] = Field(None, alias="branchName")

    model_config = ConfigDict(populate_by_name=True)


def get_coupon_service(request: Request) -> CouponService:
    return request.app.state.coupon_service


async def get_session_context(
    session_id: str,
    service: CouponService = Depends(get_coupon_service)
) -> SessionContext:
    session = await service.get_session(session_id)
    if session is None:
        raise SessionNotFound(session_id)
    return session


def _session_payload(session: SessionContext) -> Dict[str, Any]:
    return {
        "sessionId": session.session_id,
        "identifier": session.identifier,
        "entitlement": session.entitlement.value,
        "displayName": session.display_name,
        "memberId": session.member_id,
        "isGuest": session.is_guest
    }


def _code_payload(code: RedemptionCode, service: CouponService) -> Dict[str, Any]:
    data = code.model_dump(mode="json", by_alias=True)
    data["remainingSeconds"] = code.remaining_seconds(service.now())
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def login(
    payload: LoginRequest,
    service: CouponService = Depends(get_coupon_service)
):
    """会员登录：验证身份并创建会话"""
    result, session = await service.start_member_session(payload.identifier)
    if result.status == IdentityStatus.INVALID:
        raise InvalidIdentifier()

    return {
        "success": True,
        "status": result.status.value,
        "displayName": result.display_name,
        "memberId": result.member_id,
        "session": _session_payload(session) if session else None
    }


@router.post("/guest", status_code=status.HTTP_201_CREATED)
async def guest_login(service: CouponService = Depends(get_coupon_service)):
    """以游客身份继续"""
    session = await service.start_guest_session()
    return {"success": True, "session": _session_payload(session)}


@router.delete("/{session_id}")
async def logout(
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """登出并清除会话"""
    await service.end_session(session.session_id)
    return {"success": True}


@router.get("/{session_id}/promotions")
async def current_promotions(
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """当前可见的活动与优惠券"""
    views: List[CampaignView] = await service.get_current_promotions(session)
    return {
        "success": True,
        "campaigns": [view.model_dump(mode="json", by_alias=True) for view in views]
    }


@router.post("/{session_id}/branch")
async def resolve_branch(
    payload: BranchRequest,
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """定位最近门店，无法定位时返回门店列表供手动选择"""
    coords = None
    if payload.lat is not None and payload.lng is not None:
        coords = Coordinates(latitude=payload.lat, longitude=payload.lng)

    resolution: BranchResolution = service.resolve_branch(coords, payload.branch_id)
    return {"success": True, "resolution": resolution.model_dump(mode="json")}


@router.post("/{session_id}/codes", status_code=status.HTTP_201_CREATED)
async def generate_code(
    payload: GenerateCodeRequest,
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """生成兑换码并开始倒计时"""
    code = await service.generate_code(session, payload.coupon_id, payload.branch_name)
    if code is None:
        raise CouponNotAvailable(payload.coupon_id)
    return {"success": True, "code": _code_payload(code, service)}


@router.get("/{session_id}/codes/current")
async def current_code(
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """当前兑换码状态与剩余秒数"""
    code = await service.get_code_status(session)
    if code is None:
        raise NoActiveCode()
    return {"success": True, "code": _code_payload(code, service)}


@router.post("/{session_id}/codes/current/confirm")
async def confirm_code(
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """店员确认使用；重复确认不会产生新记录"""
    if session.active_code is None:
        raise NoActiveCode()
    confirmed = await service.confirm_code(session)
    return {
        "success": True,
        "confirmed": confirmed,
        "code": _code_payload(session.active_code, service)
    }


@router.delete("/{session_id}/codes/current")
async def abandon_code(
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """离开兑换页面，放弃当前兑换码"""
    await service.abandon_code(session)
    return {"success": True}


@router.get("/{session_id}/history")
async def coupon_history(
    session: SessionContext = Depends(get_session_context),
    service: CouponService = Depends(get_coupon_service)
):
    """本月优惠券使用历史"""
    entries: List[CouponHistoryEntry] = await service.get_history(session)
    return {
        "success": True,
        "history": [entry.model_dump(mode="json", by_alias=True) for entry in entries]
    }
