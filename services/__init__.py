"""
服務層

這個 package 包含純計算邏輯，不碰資料庫：
- shares_service：持股變動的合併、反轉與成本計算
"""
