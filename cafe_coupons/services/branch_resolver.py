"""
门店定位：按定位坐标找最近门店，定位失败时退回手动选择
"""

import logging
import math
from typing import List, Optional

from cafe_coupons.config.branches import get_branches
from cafe_coupons.models.branch import Branch, BranchResolution, Coordinates

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

MANUAL_SELECTION_MESSAGE = "无法获取定位，请手动选择门店"


def haversine_distance(coords: Coordinates, branch: Branch) -> float:
    """两点间球面距离 (公里)"""
    d_lat = math.radians(branch.lat - coords.latitude)
    d_lng = math.radians(branch.lng - coords.longitude)
    lat1 = math.radians(coords.latitude)
    lat2 = math.radians(branch.lat)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.sin(d_lng / 2) ** 2 * math.cos(lat1) * math.cos(lat2)
    )
    # 浮点误差可能使 a 略大于 1
    a = min(1.0, a)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class BranchResolver:
    """门店定位"""

    def __init__(self, branches: Optional[List[Branch]] = None):
        self.branches = branches if branches is not None else get_branches()

    def resolve_nearest_branch(self, coords: Coordinates) -> Optional[Branch]:
        nearest: Optional[Branch] = None
        min_distance = math.inf
        for branch in self.branches:
            distance = haversine_distance(coords, branch)
            if distance < min_distance:
                min_distance = distance
                nearest = branch
        return nearest

    def resolve(self, coords: Optional[Coordinates]) -> BranchResolution:
        """定位门店；没有坐标或没有门店时返回手动选择状态"""
        if coords is None:
            logger.info("未提供定位坐标，需要手动选择门店")
            return self.manual_selection()

        branch = self.resolve_nearest_branch(coords)
        if branch is None:
            logger.warning("门店列表为空，无法定位")
            return self.manual_selection()

        distance = haversine_distance(coords, branch)
        logger.info(f"定位最近门店: {branch.name} ({distance:.2f} km)")
        return BranchResolution(branch=branch, distance_km=round(distance, 3))

    def manual_selection(self, message: str = MANUAL_SELECTION_MESSAGE) -> BranchResolution:
        return BranchResolution(
            needs_manual_selection=True,
            candidates=list(self.branches),
            message=message
        )

    def select_manual(self, branch_id: int) -> BranchResolution:
        """手动选择门店，门店不存在时仍返回手动选择状态"""
        for branch in self.branches:
            if branch.id == branch_id:
                return BranchResolution(branch=branch)
        logger.warning(f"门店不存在: {branch_id}")
        return self.manual_selection(message=f"门店不存在: {branch_id}")
