"""
Additional Info API Endpoints

公司資訊（COMPANY_INFO）與分析資料（ANALYTICS）的管理
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import AdditionalInfoType
from schemas import AdditionalInfoCreate, AdditionalInfoResponse, AdditionalInfoUpdate, StatusResponse
from core.exceptions import NotFound, NothingUpdated
from core.runtime import Runtime
from api.deps import get_runtime

router = APIRouter(prefix="/api/additional-infos", tags=["additional-infos"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[AdditionalInfoResponse])
def list_additional_infos(
    type: AdditionalInfoType = Query(...),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """指定類型的額外資訊（不含已封存公司的資訊）"""
    try:
        return runtime.catalog_manager.get_actual_infos_by_type(db, type)

    except Exception as e:
        logger.error(f"Failed to list additional infos: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("", response_model=AdditionalInfoResponse)
def create_additional_info(
    info_data: AdditionalInfoCreate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    try:
        return runtime.catalog_manager.create_additional_info(
            db,
            name=info_data.name,
            description=info_data.description,
            info_type=info_data.type,
            cost=info_data.cost,
            company_id=info_data.company_id,
            round_number=info_data.round
        )

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create additional info: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/{info_id}", response_model=AdditionalInfoResponse)
def update_additional_info(
    info_id: int,
    info_data: AdditionalInfoUpdate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    try:
        return runtime.catalog_manager.update_additional_info(
            db,
            info_id,
            name=info_data.name,
            description=info_data.description,
            cost=info_data.cost,
            company_id=info_data.company_id,
            round_number=info_data.round
        )

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NothingUpdated as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to update additional info: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{info_id}", response_model=StatusResponse)
def delete_additional_info(
    info_id: int,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    try:
        runtime.catalog_manager.delete_additional_info(db, info_id)
        return StatusResponse(status="deleted")

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NothingUpdated as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to delete additional info: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
