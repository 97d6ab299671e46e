"""
API 層

FastAPI routers，只負責請求 / 回應轉換與錯誤對應：
- games：遊戲生命週期（管理員）
- teams：隊伍註冊、購買、排名
- companies / additional_infos / settings：目錄與設定（管理員）
- websocket：時段與遊戲狀態推送
"""
