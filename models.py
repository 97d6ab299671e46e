"""
資料模型：SQLAlchemy ORM + 狀態列舉

單例：
- Game（id=1）：遊戲狀態、目前回合、交易狀態、目前場次
- GameSettings（id=1）：回合數、交易時段長度、預設餘額

實體：Company / CompanyShare / AdditionalInfo / Balance / BalanceTransaction / Team
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator

from database import Base


class GameState(int, enum.Enum):
    CLOSED = -1
    PAUSED = 0
    OPENED = 1
    STARTED = 2
    STOP_GENERALLY = 3


class TradeState(int, enum.Enum):
    NOT_STARTED = 0
    STARTED = 1


class AdditionalInfoType(int, enum.Enum):
    COMPANY_INFO = 1
    ANALYTICS = 2


DEFAULT_ROUNDS_COUNT = 3


def _utcnow():
    return datetime.now(timezone.utc)


class ShareCounts(TypeDecorator):
    """
    company_id -> 數量 的 JSON 欄位

    JSON 物件的 key 一律是字串，讀回來時轉回 int，
    呼叫端永遠拿到 {42: 3} 而不是 {"42": 3}
    """
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return {str(key): int(count) for key, count in value.items()}

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return {int(key): int(count) for key, count in value.items()}


class Game(Base):
    __tablename__ = "game"

    id = Column(Integer, primary_key=True, default=1)
    state = Column(Enum(GameState, native_enum=False), nullable=False, default=GameState.CLOSED)
    current_round = Column(Integer, nullable=False, default=0)
    trade_state = Column(Enum(TradeState, native_enum=False), nullable=False, default=TradeState.NOT_STARTED)
    current_game = Column(Integer, nullable=False, default=1)


class GameSettings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, default=1)
    rounds_count = Column(Integer, nullable=False, default=DEFAULT_ROUNDS_COUNT)
    rounds_duration_seconds = Column(Float, nullable=False, default=300.0)
    link_to_pdf = Column(String, nullable=False, default="")
    enable_random_events = Column(Boolean, nullable=False, default=False)
    default_balance_amount = Column(Integer, nullable=False, default=0)
    default_additional_info_cost = Column(Integer, nullable=False, default=0)


class Company(Base):
    __tablename__ = "company"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    archived = Column(Boolean, nullable=True)

    @property
    def is_archived(self) -> bool:
        return bool(self.archived)


class CompanyShare(Base):
    """公司在某一回合的股價"""
    __tablename__ = "company_share"
    __table_args__ = (UniqueConstraint("company_id", "round", name="uq_company_share_round"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=False, index=True)
    round = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False)


class AdditionalInfo(Base):
    __tablename__ = "additional_info"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    type = Column(Enum(AdditionalInfoType, native_enum=False), nullable=False)
    cost = Column(Integer, nullable=False)
    company_id = Column(Integer, ForeignKey("company.id"), nullable=True)
    round = Column(Integer, nullable=False, default=0)


class Balance(Base):
    """
    隊伍餘額

    version 欄位是樂觀鎖：UPDATE 會帶上 WHERE version = 讀取時的值，
    讀取之後被其他請求改過就會更新 0 列（StaleDataError）
    """
    __tablename__ = "balance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    amount = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class BalanceTransaction(Base):
    """
    餘額交易紀錄

    additional_info_id 與 random_event_id 都是 NULL 的那一列是該回合唯一的「股票交易」
    """
    __tablename__ = "balance_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    balance_id = Column(Integer, ForeignKey("balance.id"), nullable=False, index=True)
    round = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    details = Column(ShareCounts, nullable=True)
    additional_info_id = Column(Integer, ForeignKey("additional_info.id"), nullable=True)
    random_event_id = Column(Integer, nullable=True)

    @property
    def is_shares_transaction(self) -> bool:
        return self.additional_info_id is None and self.random_event_id is None


class Team(Base):
    __tablename__ = "team"
    __table_args__ = (UniqueConstraint("credentials", "game_id", name="uq_team_credentials_game"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)
    name = Column(String, nullable=False)
    members = Column(JSON, nullable=False, default=list)
    credentials = Column(String, nullable=False)
    balance_id = Column(Integer, ForeignKey("balance.id"), nullable=False, unique=True)
    shares = Column(ShareCounts, nullable=False, default=dict)
    additional_info_ids = Column(JSON, nullable=False, default=list)
    random_event_id = Column(Integer, nullable=True)
    game_id = Column(Integer, nullable=False, index=True)
