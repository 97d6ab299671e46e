"""測試共用的輔助函式"""
import time
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from models import AdditionalInfo, AdditionalInfoType, Balance, Company, CompanyShare, Team
from core.runtime import Runtime
from core.stores import GameStore, SettingsStore


def wait_until(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
    """反覆檢查 predicate，直到成立或逾時"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class RecordingConnection:
    """記錄所有收到訊息的通知連線"""

    def __init__(self):
        self.messages: List[Dict[str, Any]] = []

    def send_json(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    def values(self, key: str) -> List[Any]:
        return [message[key] for message in self.messages if key in message]


class BrokenConnection:
    def __init__(self):
        self.calls = 0

    def send_json(self, message: Dict[str, Any]) -> None:
        self.calls += 1
        raise ConnectionError("client went away")


def set_round(db: Session, round_number: int) -> None:
    game = GameStore.get(db)
    game.current_round = round_number
    db.commit()


def set_default_balance(db: Session, amount: int) -> None:
    settings = SettingsStore.get(db)
    settings.default_balance_amount = amount
    db.commit()


def seed_company(db: Session, company_id: int, prices: Dict[int, int], name: Optional[str] = None) -> Company:
    """建立指定 id 的公司，prices 為 回合 -> 股價"""
    company = Company(id=company_id, name=name or f"Company {company_id}")
    db.add(company)
    for round_number, price in prices.items():
        db.add(CompanyShare(company_id=company_id, round=round_number, price=price))
    db.commit()
    return company


def seed_info(
    db: Session,
    cost: int,
    info_type: AdditionalInfoType = AdditionalInfoType.COMPANY_INFO,
    company_id: Optional[int] = None,
    round_number: int = 1,
    name: str = "info"
) -> AdditionalInfo:
    info = AdditionalInfo(
        name=name,
        description="",
        type=info_type,
        cost=cost,
        company_id=company_id,
        round=round_number
    )
    db.add(info)
    db.commit()
    return info


def register_team(runtime: Runtime, db: Session, name: str = "Alpha", credentials: Optional[str] = None) -> Team:
    """短暫開放註冊時段來註冊隊伍"""
    runtime.gate.set_registration_period_active(True)
    try:
        return runtime.team_manager.create_team(
            db, name=name, credentials=credentials or name.lower(), members=[f"{name} member"]
        )
    finally:
        runtime.gate.set_registration_period_active(False)


def balance_of(db: Session, team: Team) -> int:
    db.expire_all()
    return db.query(Balance).filter(Balance.id == team.balance_id).one().amount


def shares_of(db: Session, team: Team) -> Dict[int, int]:
    db.expire_all()
    return db.query(Team).filter(Team.id == team.id).one().shares
