"""
Purchase Manager：購買結算引擎

職責：
1. 購買股票（每隊每回合只有一筆股票交易，重做時覆寫而不是疊加）
2. 購買額外資訊（每次都是新的一筆交易）
3. 隨機購買一則本回合的公司資訊
4. 重置本回合的股票交易

原則：
- 所有前置檢查（交易時段、持股不為負、餘額足夠）都在第一次寫入前完成
- 整個購買在同一個 transaction 內（@transactional），中途失敗全部 rollback
- Team -> Balance 依序加行級鎖；Balance 寫回時再以 version 檢查，
  讀取後被改過就拋出 ConcurrentModification
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple
import logging
import random

from sqlalchemy.orm import Session

from models import (
    AdditionalInfo,
    AdditionalInfoType,
    Balance,
    BalanceTransaction,
    Game,
    Team,
)
from core.exceptions import (
    EmptyPurchase,
    IncorrectShareCount,
    InsufficientBalance,
    NegativeShareCount,
    NoAdditionalInfos,
    NoTradePeriod,
    TransactionNotFound,
)
from core.period_controller import PeriodGate
from core.stores import (
    AdditionalInfoStore,
    BalanceStore,
    BalanceTransactionStore,
    CompanyShareStore,
    GameStore,
    TeamStore,
)
from core.team_manager import DetailedTeam, TeamManager
from database import transactional
from services.shares_service import calculate_shares_cost, merge_changes, negate_changes

logger = logging.getLogger(__name__)


@dataclass
class _PurchaseContext:
    game: Game
    team: Team
    balance: Balance


class PurchaseManager:
    """購買結算"""

    def __init__(self, gate: PeriodGate, team_manager: TeamManager, rng: Optional[random.Random] = None):
        self._gate = gate
        self._team_manager = team_manager
        self._rng = rng or random.Random()

    # ============ 購買 ============

    @transactional
    def purchase(
        self,
        db: Session,
        team_id: int,
        shares_changes: Optional[Mapping[int, int]] = None,
        additional_info_id: Optional[int] = None
    ) -> int:
        """
        購買股票或額外資訊（二選一）

        前置條件：
        - 必須是交易時段
        - shares_changes（非空）與 additional_info_id 恰好指定一個

        流程：
        1. 讀取 Game / Team / Balance（Team、Balance 加鎖）
        2. 計算購買金額
        3. 額外資訊 -> 新增一筆交易
           股票 -> 本回合沒有交易就新增，有就重做（先撤銷舊交易再覆寫）

        參數：
            db: SQLAlchemy Session
            team_id: 隊伍 ID
            shares_changes: company_id -> 變動量（負數代表賣出）
            additional_info_id: 額外資訊 ID

        返回：
            購買後的餘額

        異常：
            NoTradePeriod: 不是交易時段（不寫入任何資料）
            EmptyPurchase: 購買內容為空或同時指定兩種
            IncorrectShareCount: 持股會變成負數
            InsufficientBalance: 餘額不足
            ConcurrentModification: 餘額在讀取後被其他請求修改
        """
        if not self._gate.is_trade_period:
            logger.debug(f"Team {team_id} purchase rejected: not trade period")
            raise NoTradePeriod()

        has_shares = bool(shares_changes)
        has_info = additional_info_id is not None
        if has_shares == has_info:
            raise EmptyPurchase(
                "Purchase must contain either shares changes or an additional info"
            )

        ctx = self._load(db, team_id)

        if has_info:
            info = AdditionalInfoStore.get_by_id(db, additional_info_id)
            amount = info.cost
            logger.info(
                f"Team {ctx.team.id} ({ctx.team.name}) buys additional info {info.id} "
                f"for {amount}, balance={ctx.balance.amount}"
            )
            self._purchase_additional_info(db, ctx, info.id, amount)
        else:
            changes = {int(company_id): int(delta) for company_id, delta in shares_changes.items()}
            amount = self._calculate_shares_amount(db, ctx.game.current_round, changes)
            logger.info(
                f"Team {ctx.team.id} ({ctx.team.name}) buys shares {changes} "
                f"for {amount} in round {ctx.game.current_round}, balance={ctx.balance.amount}"
            )
            self._purchase_shares(db, ctx, changes, amount)

        return ctx.balance.amount

    @transactional
    def purchase_random_additional_info(self, db: Session, team_id: int) -> Tuple[AdditionalInfo, int]:
        """
        隨機購買一則本回合的公司資訊

        候選：類型為 COMPANY_INFO、回合等於目前回合、隊伍尚未擁有
        從候選中均勻隨機挑一則，走一般的額外資訊購買流程

        返回：
            (購買的 AdditionalInfo, 購買後餘額)

        異常：
            NoTradePeriod: 不是交易時段
            NoAdditionalInfos: 沒有候選
            InsufficientBalance: 餘額不足
        """
        if not self._gate.is_trade_period:
            logger.debug(f"Team {team_id} random info purchase rejected: not trade period")
            raise NoTradePeriod()

        ctx = self._load(db, team_id)

        owned = set(ctx.team.additional_info_ids or [])
        candidates = [
            info for info in AdditionalInfoStore.get_all_actual_by_type(db, AdditionalInfoType.COMPANY_INFO)
            if info.round == ctx.game.current_round and info.id not in owned
        ]
        if not candidates:
            raise NoAdditionalInfos()

        info = self._rng.choice(candidates)
        logger.info(
            f"Team {ctx.team.id} ({ctx.team.name}) buys random info {info.id} for {info.cost}"
        )
        self._purchase_additional_info(db, ctx, info.id, info.cost)

        return info, ctx.balance.amount

    # ============ 重置 ============

    @transactional
    def reset_transaction(self, db: Session, team_id: int) -> DetailedTeam:
        """
        撤銷本回合的股票交易

        - 交易金額退回餘額
        - 交易明細取負號合併回持股
        - 刪除交易紀錄

        異常：
            TransactionNotFound: 本回合沒有股票交易
        """
        ctx = self._load(db, team_id)
        transaction = BalanceTransactionStore.get(db, ctx.balance.id, ctx.game.current_round)

        shares = self._reverted_shares(ctx.team, transaction)

        ctx.balance.amount += transaction.amount
        BalanceStore.update(db, ctx.balance)

        ctx.team.shares = shares
        TeamStore.update(db, ctx.team)

        BalanceTransactionStore.delete(db, ctx.balance.id, ctx.game.current_round)

        logger.info(
            f"Team {ctx.team.id} reset round {ctx.game.current_round} transaction, "
            f"refunded {transaction.amount}"
        )
        return self._team_manager.get_detailed(db, team_id)

    # ============ 內部流程 ============

    def _load(self, db: Session, team_id: int) -> _PurchaseContext:
        game = GameStore.get(db)
        team = TeamStore.get_by_id(db, team_id, lock=True)
        balance = BalanceStore.get_by_id(db, team.balance_id, lock=True)
        return _PurchaseContext(game=game, team=team, balance=balance)

    def _calculate_shares_amount(self, db: Session, round_number: int, changes: Mapping[int, int]) -> int:
        prices = CompanyShareStore.get_prices_by_company_ids_and_round(db, changes.keys(), round_number)
        return calculate_shares_cost(changes, prices)

    def _purchase_additional_info(self, db: Session, ctx: _PurchaseContext, info_id: int, amount: int) -> None:
        if ctx.balance.amount - amount < 0:
            raise InsufficientBalance(ctx.balance.amount, amount)

        ctx.balance.amount -= amount
        BalanceStore.update(db, ctx.balance)

        BalanceTransactionStore.create(
            db,
            BalanceTransaction(
                balance_id=ctx.balance.id,
                round=ctx.game.current_round,
                amount=amount,
                details=None,
                additional_info_id=info_id,
                random_event_id=None
            )
        )

        ctx.team.additional_info_ids = list(ctx.team.additional_info_ids or []) + [info_id]
        TeamStore.update(db, ctx.team)

    def _purchase_shares(
        self,
        db: Session,
        ctx: _PurchaseContext,
        changes: Dict[int, int],
        amount: int
    ) -> None:
        round_number = ctx.game.current_round
        try:
            existing = BalanceTransactionStore.get(db, ctx.balance.id, round_number)
        except TransactionNotFound:
            existing = None

        # 1. 本回合的基準持股：重做時先撤銷舊交易
        if existing is None:
            shares = dict(ctx.team.shares or {})
            balance_before = ctx.balance.amount
        else:
            shares = self._reverted_shares(ctx.team, existing)
            balance_before = ctx.balance.amount + existing.amount

        # 2. 以基準持股驗證新的變動
        try:
            merge_changes(shares, changes)
        except NegativeShareCount as e:
            raise IncorrectShareCount(f"Incorrect count of shares: {e}") from e

        # 3. 檢查餘額
        balance_after = balance_before - amount
        if balance_after < 0:
            raise InsufficientBalance(balance_before, amount)

        # 4. 寫入：餘額 -> 交易 -> 持股
        ctx.balance.amount = balance_after
        BalanceStore.update(db, ctx.balance)

        if existing is None:
            BalanceTransactionStore.create(
                db,
                BalanceTransaction(
                    balance_id=ctx.balance.id,
                    round=round_number,
                    amount=amount,
                    details=dict(changes),
                    additional_info_id=None,
                    random_event_id=None
                )
            )
        else:
            existing.amount = amount
            existing.details = dict(changes)
            BalanceTransactionStore.update(db, existing)
            logger.info(f"Team {ctx.team.id} redid round {round_number} shares transaction")

        ctx.team.shares = shares
        TeamStore.update(db, ctx.team)

    def _reverted_shares(self, team: Team, transaction: BalanceTransaction) -> Dict[int, int]:
        """返回撤銷 transaction 之後的持股（不修改 team）"""
        shares = dict(team.shares or {})
        try:
            merge_changes(shares, negate_changes(transaction.details or {}))
        except NegativeShareCount as e:
            raise IncorrectShareCount(
                f"Cannot revert round {transaction.round} transaction: {e}"
            ) from e
        return shares
