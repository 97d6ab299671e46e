"""
持股服務：合併持股變動、計算股票價值

純計算邏輯，不碰資料庫，不負責狀態轉換
"""
from typing import Dict, Mapping

from core.exceptions import NegativeShareCount


def merge_changes(current: Dict[int, int], changes: Mapping[int, int]) -> None:
    """
    把持股變動合併進目前持股（直接修改 current）

    規則：
    - current 沒有這家公司：變動量必須 >= 0
    - current 有這家公司：current + 變動量必須 >= 0

    先驗證所有變動，全部合法才寫入；
    任何一筆會變成負數時拋出 NegativeShareCount，current 完全不變。

    反向操作（撤銷上一筆交易）就是合併取負號後的變動：
        merge_changes(current, negate_changes(previous))
    驗證規則相同，撤銷後會變成負數一樣會失敗。

    參數：
        current: company_id -> 持股數量
        changes: company_id -> 變動量（可為負數，代表賣出）

    異常：
        NegativeShareCount: 任一公司的結果會小於 0
    """
    merged = {}
    for company_id, delta in changes.items():
        # 不存在的公司視為 0，負的變動量一樣會被擋下
        total = current.get(company_id, 0) + delta
        if total < 0:
            raise NegativeShareCount(company_id, total)
        merged[company_id] = total

    current.update(merged)


def negate_changes(changes: Mapping[int, int]) -> Dict[int, int]:
    """返回每筆變動取負號的新 dict（不修改原本的 changes）"""
    return {company_id: -delta for company_id, delta in changes.items()}


def calculate_shares_cost(changes: Mapping[int, int], price_by_company_id: Mapping[int, int]) -> int:
    """
    計算一組持股（或持股變動）的價值

    公式：Σ price(company) * count
    該回合沒有定價的公司價格視為 0

    用途：
    - 購買股票時的交易金額（賣出為負數，會增加餘額）
    - 排行榜的持股市值

    範例：
        calculate_shares_cost({42: 3, 7: -1}, {42: 100, 7: 50}) -> 250
    """
    return sum(
        price_by_company_id.get(company_id, 0) * count
        for company_id, count in changes.items()
    )
