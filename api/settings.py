"""
Settings API Endpoints（管理員）
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import SettingsSchema
from core.exceptions import ConcurrentModification, NotFound, NothingUpdated
from core.runtime import Runtime
from api.deps import get_runtime

router = APIRouter(prefix="/api/settings", tags=["settings"])
logger = logging.getLogger(__name__)


@router.get("", response_model=SettingsSchema)
def get_settings(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    try:
        return runtime.catalog_manager.get_settings(db)

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get settings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("", response_model=SettingsSchema)
def update_settings(
    settings_data: SettingsSchema,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """
    更新遊戲設定

    效果：
    - rounds_duration_seconds：之後開始的交易時段才套用
    - default_balance_amount：遊戲尚未開始時，重設本場所有隊伍的餘額
    - default_additional_info_cost：所有公司資訊改為新價格
    """
    try:
        return runtime.catalog_manager.update_settings(
            db,
            rounds_count=settings_data.rounds_count,
            rounds_duration_seconds=settings_data.rounds_duration_seconds,
            link_to_pdf=settings_data.link_to_pdf,
            enable_random_events=settings_data.enable_random_events,
            default_balance_amount=settings_data.default_balance_amount,
            default_additional_info_cost=settings_data.default_additional_info_cost
        )

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ConcurrentModification, NothingUpdated) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to update settings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
