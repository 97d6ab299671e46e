"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- PeriodController：有時限的交易 / 註冊時段
- Manager：遊戲生命週期、隊伍、購買結算、目錄與設定
- Stores：資料存取
- Locks：並發控制工具
- Notifier：推送給隊伍前端的通知
"""
