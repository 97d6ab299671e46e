"""
Pydantic schemas：API 的請求 / 回應格式
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import AdditionalInfoType, GameState, TradeState


# ============ Game ============

class GameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    state: GameState
    current_round: int
    trade_state: TradeState
    current_game: int


class GameUpdate(BaseModel):
    state: GameState
    current_round: int = Field(ge=0)
    trade_state: TradeState


# ============ Team ============

class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    credentials: str = Field(min_length=1)
    members: List[str] = []


class TeamLogin(BaseModel):
    credentials: str = Field(min_length=1)


class TeamUpdate(BaseModel):
    name: str = Field(min_length=1)
    members: List[str] = []


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    members: List[str]
    game_id: int


class AdditionalInfoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    type: AdditionalInfoType
    cost: int
    company_id: Optional[int] = None
    round: int


class DetailedTeamResponse(BaseModel):
    id: int
    name: str
    members: List[str]
    shares: Dict[int, int]
    balance: int
    has_transaction_in_this_round: bool
    additional_infos: List[AdditionalInfoResponse]


class PurchaseRequest(BaseModel):
    shares_changes: Optional[Dict[int, int]] = None
    additional_info_id: Optional[int] = None


class PurchaseResponse(BaseModel):
    balance: int


class RandomInfoPurchaseResponse(BaseModel):
    additional_info: AdditionalInfoResponse
    balance: int


class TeamResultResponse(BaseModel):
    id: int
    team_name: str
    score: int


class StatisticsResponse(BaseModel):
    results: List[TeamResultResponse]


# ============ Company ============

class CompanyCreate(BaseModel):
    name: str = Field(min_length=1)
    shares: Dict[int, int] = {}  # round -> price


class CompanyResponse(BaseModel):
    id: int
    name: str
    shares: Dict[int, int]


# ============ Additional info ============

class AdditionalInfoCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    type: AdditionalInfoType
    cost: int = Field(ge=0)
    company_id: Optional[int] = None
    round: int = Field(default=0, ge=0)


class AdditionalInfoUpdate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    cost: int = Field(ge=0)
    company_id: Optional[int] = None
    round: int = Field(default=0, ge=0)


# ============ Settings ============

class SettingsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rounds_count: int = Field(ge=1)
    rounds_duration_seconds: float = Field(gt=0)
    link_to_pdf: str = ""
    enable_random_events: bool = False
    default_balance_amount: int = Field(ge=0)
    default_additional_info_cost: int = Field(ge=0)


class StatusResponse(BaseModel):
    status: str
