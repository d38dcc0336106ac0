"""
门店静态配置 - 用于定位最近门店及手动选择
"""

from typing import Any, Dict, List

from cafe_coupons.models.branch import Branch

# 门店配置列表 (id 不连续，沿用现有门店编号)
BRANCHES_CONFIG: List[Dict[str, Any]] = [
    {"id": 1, "name": "สาขาแจ้งวัฒนะ", "lat": 13.8913, "lng": 100.5518},
    {"id": 2, "name": "สาขาเดอะเซอเคิล ราชพฤกษ์", "lat": 13.7661, "lng": 100.4468},
    {"id": 3, "name": "สาขาเดอะมอลล์งามวงศ์วาน ชั้น G", "lat": 13.85524760, "lng": 100.54146770},
    {"id": 13, "name": "สาขาเดอะมอลล์งามวงศ์วาน ชั้น 4", "lat": 13.85451280, "lng": 100.54206480},
    {"id": 4, "name": "สาขาเพียวเพลส สัมมากร", "lat": 13.7744, "lng": 100.6860},
    {"id": 5, "name": "สาขาฟิวเจอร์พาร์ค รังสิต", "lat": 13.9877, "lng": 100.6155},
    {"id": 6, "name": "สาขาแฟชั่น ไอส์แลนด์", "lat": 13.8248, "lng": 100.6728},
    {"id": 7, "name": "สาขาอาคารภูมิสิริฯ ชั้น 11 รพ. จุฬา", "lat": 13.73236360, "lng": 100.53688080},
    {"id": 14, "name": "สาขาโรงพยาบาลจุฬาลงกรณ์", "lat": 13.73188450, "lng": 100.53585130},
    {"id": 8, "name": "สาขาโรงพยาบาลศิริราช", "lat": 13.75724140, "lng": 100.48413840},
    {"id": 9, "name": "สาขาลาดพร้าว 134", "lat": 13.7937, "lng": 100.6300},
    {"id": 11, "name": "สาขาอาคารวีรสุ (ถ.วิทยุ)", "lat": 13.7408, "lng": 100.5484},
    {"id": 12, "name": "สาขาโรงพยาบาลกรุงเทพคริสเตียน", "lat": 13.7279, "lng": 100.5304},
]


def get_branches() -> List[Branch]:
    """
    获取所有门店配置

    Returns:
        门店列表，保持配置顺序 (手动选择时的展示顺序)
    """
    return [Branch(**config) for config in BRANCHES_CONFIG]
