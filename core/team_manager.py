"""
Team Manager：隊伍註冊與查詢

職責：
1. 註冊隊伍（只在註冊時段）
2. 修改隊伍名稱 / 成員
3. 隊伍詳細資訊（持股補齊、已購資訊、餘額、本回合是否已交易）
4. 最終排名
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from models import AdditionalInfo, Team
from core.exceptions import NoRegistrationPeriod, NoTeamsInGame, TeamAlreadyExists, UnknownCredentials
from core.period_controller import PeriodGate
from core.stores import (
    AdditionalInfoStore,
    BalanceStore,
    BalanceTransactionStore,
    CompanyShareStore,
    CompanyStore,
    GameStore,
    SettingsStore,
    TeamStore,
)
from database import transactional
from services.shares_service import calculate_shares_cost

logger = logging.getLogger(__name__)


@dataclass
class DetailedTeam:
    team: Team
    shares: Dict[int, int]
    balance: int
    has_transaction_in_this_round: bool
    additional_infos: List[AdditionalInfo] = field(default_factory=list)


@dataclass
class TeamResult:
    id: int
    team_name: str
    score: int


class TeamManager:
    """隊伍管理器"""

    def __init__(self, gate: PeriodGate):
        self._gate = gate

    @transactional
    def create_team(
        self,
        db: Session,
        name: str,
        credentials: str,
        members: Optional[List[str]] = None
    ) -> Team:
        """
        註冊新隊伍

        前置條件：
        - 必須是註冊時段
        - 同一場遊戲內 credentials 不可重複

        流程：
        1. 建立 Balance（金額 = settings.default_balance_amount）
        2. 建立 Team（game_id = 目前場次）

        異常：
            NoRegistrationPeriod: 不是註冊時段
            TeamAlreadyExists: credentials 重複
        """
        if not self._gate.is_registration_period:
            logger.debug(f"Team {name} rejected: not registration period")
            raise NoRegistrationPeriod()

        settings = SettingsStore.get(db)
        game = GameStore.get(db)

        if TeamStore.get_by_credentials(db, credentials, game.current_game):
            raise TeamAlreadyExists(f"Team with these credentials already exists in game {game.current_game}")

        balance = BalanceStore.create(db, settings.default_balance_amount)
        team = Team(
            name=name,
            members=list(members or []),
            credentials=credentials,
            balance_id=balance.id,
            shares={},
            additional_info_ids=[],
            game_id=game.current_game
        )
        TeamStore.create(db, team)

        logger.info(f"Team {team.id} ({name}) registered in game {game.current_game}")
        return team

    @transactional
    def update_team(self, db: Session, team_id: int, name: str, members: List[str]) -> Team:
        team = TeamStore.get_by_id(db, team_id)
        team.name = name
        team.members = list(members)
        TeamStore.update(db, team)
        return team

    def login(self, db: Session, credentials: str) -> Team:
        """
        以登入憑證找出本場遊戲的隊伍

        異常：
            UnknownCredentials: 本場遊戲沒有這組憑證（上一場的憑證也算）
        """
        game = GameStore.get(db)
        team = TeamStore.get_by_credentials(db, credentials, game.current_game)
        if team is None:
            logger.debug(f"Login rejected for game {game.current_game}")
            raise UnknownCredentials()
        logger.info(f"Team {team.id} ({team.name}) logged in")
        return team

    def get_all_for_current_game(self, db: Session) -> List[Team]:
        game = GameStore.get(db)
        return TeamStore.get_all_by_game_id(db, game.current_game)

    def get_detailed(self, db: Session, team_id: int) -> DetailedTeam:
        """
        隊伍詳細資訊

        返回：
            - shares: 每家未封存公司都有一個數量（沒持有的補 0）
            - balance: 目前餘額
            - has_transaction_in_this_round: 本回合是否已有股票交易
            - additional_infos: 已購買的額外資訊
        """
        team = TeamStore.get_by_id(db, team_id)
        balance = BalanceStore.get_by_id(db, team.balance_id)
        game = GameStore.get(db)

        current = team.shares or {}
        companies = CompanyStore.get_all_not_archived(db)
        shares = {company.id: current.get(company.id, 0) for company in companies}

        has_transaction = BalanceTransactionStore.exists(db, team.balance_id, game.current_round)

        additional_infos = []
        if team.additional_info_ids:
            additional_infos = AdditionalInfoStore.get_by_ids(db, team.additional_info_ids)

        return DetailedTeam(
            team=team,
            shares=shares,
            balance=balance.amount,
            has_transaction_in_this_round=has_transaction,
            additional_infos=additional_infos
        )

    def get_statistics(self, db: Session, round_number: int) -> List[TeamResult]:
        """
        最終排名

        score = 持股在 round_number 回合股價下的總市值
        依 score 由高到低排序，同分時 ID 小的在前

        異常：
            NoTeamsInGame: 這場遊戲沒有隊伍
        """
        game = GameStore.get(db)
        teams = TeamStore.get_all_by_game_id(db, game.current_game)
        if not teams:
            raise NoTeamsInGame()

        price_by_company_id = {
            share.company_id: share.price
            for share in CompanyShareStore.get_all_actual(db)
            if share.round == round_number
        }

        results = [
            TeamResult(
                id=team.id,
                team_name=team.name,
                score=calculate_shares_cost(team.shares or {}, price_by_company_id)
            )
            for team in teams
        ]
        results.sort(key=lambda result: (-result.score, result.id))
        return results
