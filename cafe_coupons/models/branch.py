"""
门店数据模型
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class Branch(BaseModel):
    """门店"""

    id: int
    name: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Coordinates(BaseModel):
    """定位坐标"""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class BranchResolution(BaseModel):
    """门店定位结果，定位失败时需要用户手动选择"""

    branch: Optional[Branch] = None
    distance_km: Optional[float] = None
    needs_manual_selection: bool = False
    candidates: List[Branch] = Field(default_factory=list)
    message: Optional[str] = None
