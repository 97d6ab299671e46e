"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）。
SQLite 會忽略 FOR UPDATE，所以 Balance 另外有 version 欄位做樂觀鎖，
兩種資料庫上「同一隊伍同時購買」都不會重複扣款。
"""
from sqlalchemy.orm import Session, Query

from models import Game, Team, Balance


def with_game_lock(db: Session) -> Query:
    """
    鎖定 game 單例列（行級鎖）

    使用場景：
    - 管理員修改遊戲狀態 / 回合 / 交易狀態
    - 背景交易時段結束後把 trade_state 改回 NOT_STARTED

    返回：
        Query object（需要呼叫 .first() 來取得結果）
    """
    return db.query(Game).filter(Game.id == 1).with_for_update(nowait=False)


def with_team_lock(team_id: int, db: Session) -> Query:
    """
    鎖定一個 Team（行級鎖）

    使用場景：
    - 購買 / 重做 / 重置交易時修改持股
    - 需要確保同一隊伍的兩個請求依序執行

    範例：
        team = with_team_lock(team_id, db).first()
        if not team:
            raise TeamNotFound(team_id)

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Team).filter(Team.id == team_id).with_for_update(nowait=False)


def with_balance_lock(balance_id: int, db: Session) -> Query:
    """
    鎖定一個 Balance（行級鎖）

    鎖順序固定為 Team -> Balance，避免 deadlock
    """
    return db.query(Balance).filter(Balance.id == balance_id).with_for_update(nowait=False)
