"""
Catalog Manager：公司、股價、額外資訊與遊戲設定的管理員操作

這些都是單純的讀寫，唯一有連動的是設定更新：
- rounds_duration_seconds 改變 -> 通知交易時段控制器（之後的時段才生效）
- default_balance_amount 改變 -> 遊戲尚未開始時重設本場所有隊伍的餘額
- default_additional_info_cost 改變 -> 所有公司資訊改為新價格
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from models import AdditionalInfo, AdditionalInfoType, Company, GameSettings, GameState
from core.exceptions import CompanyArchived, SettingsNotFound
from core.stores import (
    AdditionalInfoStore,
    BalanceStore,
    CompanyShareStore,
    CompanyStore,
    GameStore,
    SettingsStore,
    TeamStore,
)
from database import transactional

logger = logging.getLogger(__name__)


@dataclass
class CompanyWithShares:
    company: Company
    shares: Dict[int, int]  # round -> price


class CatalogManager:

    def __init__(self, on_trade_period_changed: Callable[[Optional[float]], None]):
        self._on_trade_period_changed = on_trade_period_changed

    # ============ 公司 ============

    @transactional
    def create_company_with_shares(self, db: Session, name: str, shares: Dict[int, int]) -> Company:
        """建立公司與各回合股價（shares: round -> price）"""
        company = Company(name=name)
        CompanyStore.create(db, company)
        for round_number, price in shares.items():
            CompanyShareStore.upsert(db, company.id, int(round_number), price)
        logger.info(f"Company {company.id} ({name}) created with {len(shares)} prices")
        return company

    @transactional
    def update_company(self, db: Session, company_id: int, name: str, shares: Dict[int, int]) -> Company:
        company = CompanyStore.get_by_id(db, company_id)
        if company.is_archived:
            raise CompanyArchived(f"Cannot update archived company {company_id}")

        company.name = name
        CompanyStore.update(db, company)
        for round_number, price in shares.items():
            CompanyShareStore.upsert(db, company.id, int(round_number), price)
        return company

    @transactional
    def archive_company(self, db: Session, company_id: int) -> None:
        company = CompanyStore.get_by_id(db, company_id)
        company.archived = True
        CompanyStore.update(db, company)
        logger.info(f"Company {company_id} archived")

    def get_companies_with_shares(self, db: Session, only_current_round: bool = False) -> List[CompanyWithShares]:
        """
        所有未封存公司與股價

        only_current_round=True 時只回傳目前回合以前（含）的股價，
        隊伍看不到未來回合的價格
        """
        companies = CompanyStore.get_all_not_archived(db)
        current_round = GameStore.get(db).current_round if only_current_round else None

        prices: Dict[int, Dict[int, int]] = {company.id: {} for company in companies}
        for share in CompanyShareStore.get_all_actual(db):
            if current_round is not None and share.round > current_round:
                continue
            if share.company_id in prices:
                prices[share.company_id][share.round] = share.price

        return [CompanyWithShares(company=company, shares=prices[company.id]) for company in companies]

    # ============ 額外資訊 ============

    @transactional
    def create_additional_info(
        self,
        db: Session,
        name: str,
        description: str,
        info_type: AdditionalInfoType,
        cost: int,
        company_id: Optional[int],
        round_number: int
    ) -> AdditionalInfo:
        if company_id is not None:
            CompanyStore.get_by_id(db, company_id)
        info = AdditionalInfo(
            name=name,
            description=description,
            type=info_type,
            cost=cost,
            company_id=company_id,
            round=round_number
        )
        AdditionalInfoStore.create(db, info)
        return info

    @transactional
    def update_additional_info(
        self,
        db: Session,
        info_id: int,
        name: str,
        description: str,
        cost: int,
        company_id: Optional[int],
        round_number: int
    ) -> AdditionalInfo:
        info = AdditionalInfoStore.get_by_id(db, info_id)
        info.name = name
        info.description = description
        info.cost = cost
        info.company_id = company_id
        info.round = round_number
        AdditionalInfoStore.update(db, info)
        return info

    def get_actual_infos_by_type(self, db: Session, info_type: AdditionalInfoType) -> List[AdditionalInfo]:
        return AdditionalInfoStore.get_all_actual_by_type(db, info_type)

    @transactional
    def delete_additional_info(self, db: Session, info_id: int) -> None:
        AdditionalInfoStore.delete(db, info_id)

    # ============ 設定 ============

    @transactional
    def ensure_settings(self, db: Session, rounds_duration_seconds: float) -> GameSettings:
        """建立 settings 單例列（已存在則直接返回）"""
        try:
            return SettingsStore.get(db)
        except SettingsNotFound:
            settings = GameSettings(id=1, rounds_duration_seconds=rounds_duration_seconds)
            db.add(settings)
            db.flush()
            logger.info("Created settings singleton row")
            return settings

    def get_settings(self, db: Session) -> GameSettings:
        return SettingsStore.get(db)

    def update_settings(
        self,
        db: Session,
        rounds_count: int,
        rounds_duration_seconds: float,
        link_to_pdf: str,
        enable_random_events: bool,
        default_balance_amount: int,
        default_additional_info_cost: int
    ) -> GameSettings:
        settings, duration_changed = self._apply_settings(
            db,
            rounds_count,
            rounds_duration_seconds,
            link_to_pdf,
            enable_random_events,
            default_balance_amount,
            default_additional_info_cost
        )
        if duration_changed:
            self._on_trade_period_changed(rounds_duration_seconds)
        return settings

    @transactional
    def _apply_settings(
        self,
        db: Session,
        rounds_count: int,
        rounds_duration_seconds: float,
        link_to_pdf: str,
        enable_random_events: bool,
        default_balance_amount: int,
        default_additional_info_cost: int
    ):
        settings = SettingsStore.get(db)

        duration_changed = settings.rounds_duration_seconds != rounds_duration_seconds
        settings.rounds_count = rounds_count
        settings.rounds_duration_seconds = rounds_duration_seconds
        settings.link_to_pdf = link_to_pdf
        settings.enable_random_events = enable_random_events

        if settings.default_balance_amount != default_balance_amount:
            self._reset_balances_for_active_teams(db, default_balance_amount)
        settings.default_balance_amount = default_balance_amount

        if settings.default_additional_info_cost != default_additional_info_cost:
            self._update_company_info_costs(db, default_additional_info_cost)
        settings.default_additional_info_cost = default_additional_info_cost

        SettingsStore.update(db, settings)
        return settings, duration_changed

    def _reset_balances_for_active_teams(self, db: Session, amount: int) -> None:
        # 遊戲開始後餘額已經是交易結果，不能覆蓋
        game = GameStore.get(db)
        if game.state == GameState.STARTED:
            return

        teams = TeamStore.get_all_by_game_id(db, game.current_game)
        for team in teams:
            balance = BalanceStore.get_by_id(db, team.balance_id, lock=True)
            balance.amount = amount
            BalanceStore.update(db, balance)
        logger.info(f"Reset balance of {len(teams)} teams to {amount}")

    def _update_company_info_costs(self, db: Session, cost: int) -> None:
        for info in AdditionalInfoStore.get_all_actual_by_type(db, AdditionalInfoType.COMPANY_INFO):
            info.cost = cost
            AdditionalInfoStore.update(db, info)
