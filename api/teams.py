"""
Team API Endpoints

職責：
1. 隊伍註冊 / 登入 / 修改 / 查詢
2. 購買股票或額外資訊、隨機購買公司資訊
3. 重置本回合交易
4. 最終排名
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    AdditionalInfoResponse,
    DetailedTeamResponse,
    PurchaseRequest,
    PurchaseResponse,
    RandomInfoPurchaseResponse,
    StatisticsResponse,
    TeamCreate,
    TeamLogin,
    TeamResponse,
    TeamResultResponse,
    TeamUpdate,
)
from core.exceptions import (
    ConcurrentModification,
    EmptyPurchase,
    IncorrectShareCount,
    InsufficientBalance,
    NoAdditionalInfos,
    NoRegistrationPeriod,
    NoTeamsInGame,
    NoTradePeriod,
    NotFound,
    NothingUpdated,
    TeamAlreadyExists,
)
from core.runtime import Runtime
from core.team_manager import DetailedTeam
from api.deps import get_runtime

router = APIRouter(prefix="/api/teams", tags=["teams"])
logger = logging.getLogger(__name__)

PURCHASE_CLIENT_ERRORS = (
    NoTradePeriod,
    EmptyPurchase,
    IncorrectShareCount,
    InsufficientBalance,
    NoAdditionalInfos,
)


def _detailed_response(detailed: DetailedTeam) -> DetailedTeamResponse:
    return DetailedTeamResponse(
        id=detailed.team.id,
        name=detailed.team.name,
        members=detailed.team.members or [],
        shares=detailed.shares,
        balance=detailed.balance,
        has_transaction_in_this_round=detailed.has_transaction_in_this_round,
        additional_infos=[
            AdditionalInfoResponse.model_validate(info) for info in detailed.additional_infos
        ]
    )


@router.post("", response_model=TeamResponse)
def create_team(
    team_data: TeamCreate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """
    註冊隊伍

    前置條件：
    - 註冊時段（管理員開放註冊）
    - credentials 在本場遊戲內不重複
    """
    try:
        return runtime.team_manager.create_team(
            db,
            name=team_data.name,
            credentials=team_data.credentials,
            members=team_data.members
        )

    except (NoRegistrationPeriod, TeamAlreadyExists) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/login", response_model=TeamResponse)
def login(
    login_data: TeamLogin,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """以登入憑證取得本場遊戲的隊伍"""
    try:
        return runtime.team_manager.login(db, login_data.credentials)

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to login: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[TeamResponse])
def list_teams(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    try:
        return runtime.team_manager.get_all_for_current_game(db)

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to list teams: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/statistics", response_model=StatisticsResponse)
def get_statistics(
    round: int = Query(..., ge=0),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """最終排名：以指定回合的股價計算各隊持股市值"""
    try:
        results = runtime.team_manager.get_statistics(db, round)
        return StatisticsResponse(
            results=[
                TeamResultResponse(id=r.id, team_name=r.team_name, score=r.score)
                for r in results
            ]
        )

    except NoTeamsInGame as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get statistics: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{team_id}", response_model=DetailedTeamResponse)
def get_team(team_id: int, db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    try:
        return _detailed_response(runtime.team_manager.get_detailed(db, team_id))

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/{team_id}", response_model=TeamResponse)
def update_team(
    team_id: int,
    team_data: TeamUpdate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    try:
        return runtime.team_manager.update_team(db, team_id, team_data.name, team_data.members)

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NothingUpdated as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to update team: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{team_id}/purchase", response_model=PurchaseResponse)
def purchase(
    team_id: int,
    purchase_data: PurchaseRequest,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """
    購買股票或額外資訊

    同一回合再次購買股票會覆寫上一筆（重做），不會疊加
    """
    try:
        balance = runtime.purchase_manager.purchase(
            db,
            team_id,
            shares_changes=purchase_data.shares_changes,
            additional_info_id=purchase_data.additional_info_id
        )
        return PurchaseResponse(balance=balance)

    except PURCHASE_CLIENT_ERRORS as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ConcurrentModification, NothingUpdated) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to purchase: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{team_id}/purchase/random-info", response_model=RandomInfoPurchaseResponse)
def purchase_random_info(
    team_id: int,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    try:
        info, balance = runtime.purchase_manager.purchase_random_additional_info(db, team_id)
        return RandomInfoPurchaseResponse(
            additional_info=AdditionalInfoResponse.model_validate(info),
            balance=balance
        )

    except PURCHASE_CLIENT_ERRORS as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ConcurrentModification, NothingUpdated) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to purchase random info: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{team_id}/reset", response_model=DetailedTeamResponse)
def reset_transaction(
    team_id: int,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """撤銷本回合的股票交易，返回更新後的隊伍資訊"""
    try:
        return _detailed_response(runtime.purchase_manager.reset_transaction(db, team_id))

    except IncorrectShareCount as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ConcurrentModification, NothingUpdated) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to reset transaction: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
