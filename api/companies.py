"""
Company API Endpoints

職責：
1. 公司與各回合股價的建立 / 修改 / 封存（管理員）
2. 公司列表（隊伍端只看得到目前回合以前的股價）
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import CompanyCreate, CompanyResponse, StatusResponse
from core.catalog_manager import CompanyWithShares
from core.exceptions import CompanyArchived, NotFound, NothingUpdated
from core.runtime import Runtime
from api.deps import get_runtime

router = APIRouter(prefix="/api/companies", tags=["companies"])
logger = logging.getLogger(__name__)


def _company_response(item: CompanyWithShares) -> CompanyResponse:
    return CompanyResponse(id=item.company.id, name=item.company.name, shares=item.shares)


@router.get("", response_model=List[CompanyResponse])
def list_companies(
    only_current_round: bool = Query(False),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    try:
        items = runtime.catalog_manager.get_companies_with_shares(db, only_current_round)
        return [_company_response(item) for item in items]

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to list companies: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("", response_model=CompanyResponse)
def create_company(
    company_data: CompanyCreate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    try:
        company = runtime.catalog_manager.create_company_with_shares(
            db, company_data.name, company_data.shares
        )
        return CompanyResponse(id=company.id, name=company.name, shares=company_data.shares)

    except Exception as e:
        logger.error(f"Failed to create company: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/{company_id}", response_model=CompanyResponse)
def update_company(
    company_id: int,
    company_data: CompanyCreate,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """修改公司名稱，並新增 / 覆寫指定回合的股價"""
    try:
        company = runtime.catalog_manager.update_company(
            db, company_id, company_data.name, company_data.shares
        )
        return CompanyResponse(id=company.id, name=company.name, shares=company_data.shares)

    except CompanyArchived as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NothingUpdated as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to update company: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{company_id}", response_model=StatusResponse)
def archive_company(
    company_id: int,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime)
):
    """封存公司（不實際刪除，隊伍持股仍保留）"""
    try:
        runtime.catalog_manager.archive_company(db, company_id)
        return StatusResponse(status="archived")

    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NothingUpdated as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to archive company: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
