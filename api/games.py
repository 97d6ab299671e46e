"""
Game API Endpoints（管理員）

職責：
1. 查詢 / 批次更新遊戲狀態
2. 開新一場、開始遊戲、開 / 關註冊
3. 開始回合、開始 / 結束交易時段
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import GameResponse, GameUpdate, StatusResponse
from core.exceptions import GameNotFound, NothingUpdated
from core.runtime import Runtime
from api.deps import get_runtime

router = APIRouter(prefix="/api/game", tags=["game"])
logger = logging.getLogger(__name__)


@router.get("", response_model=GameResponse)
def get_game(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    try:
        return runtime.game_manager.get_game(db)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except Exception as e:
        logger.error(f"Failed to get game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("", response_model=GameResponse)
def update_game(
    game_data: GameUpdate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """
    批次更新遊戲（管理員 endpoint）

    效果：
    - state 變成 STARTED 時 current_round 強制為 1
    - trade_state 變成 STARTED 時背景啟動交易時段
    """
    try:
        return runtime.game_manager.update(
            db,
            state=game_data.state,
            current_round=game_data.current_round,
            trade_state=game_data.trade_state
        )

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except NothingUpdated as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to update game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


def _run_transition(name: str, transition, db: Session) -> GameResponse:
    try:
        return transition(db)

    except GameNotFound:
        raise HTTPException(status_code=404, detail="Game not found")
    except NothingUpdated as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to {name}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/new", response_model=GameResponse)
def create_new_game(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    """開新一場遊戲：關閉註冊、回合歸零、結束交易時段"""
    return _run_transition("create new game", runtime.game_manager.create_new_game, db)


@router.post("/start", response_model=GameResponse)
def start_game(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    return _run_transition("start game", runtime.game_manager.start_game, db)


@router.post("/registration/start", response_model=GameResponse)
def start_registration(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    return _run_transition("start registration", runtime.game_manager.start_registration, db)


@router.post("/registration/stop", response_model=GameResponse)
def stop_registration(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    return _run_transition("stop registration", runtime.game_manager.stop_registration, db)


@router.post("/round/start", response_model=GameResponse)
def start_round(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    return _run_transition("start round", runtime.game_manager.start_round, db)


@router.post("/trade/start", response_model=GameResponse)
def start_trade(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    """
    開始交易時段（立即返回）

    前端透過 /ws/teams 的 isTradeStage 訊息得知時段開始 / 結束
    """
    return _run_transition("start trade", runtime.game_manager.start_trade, db)


@router.post("/trade/stop", response_model=StatusResponse)
def stop_trade(runtime: Runtime = Depends(get_runtime)):
    try:
        runtime.game_manager.stop_trade()
        return StatusResponse(status="ok")

    except Exception as e:
        logger.error(f"Failed to stop trade: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
