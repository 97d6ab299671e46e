"""
Store 層：以 key 查詢 / 更新實體

每個 Store 都是一組 staticmethod，第一個參數是 db: Session，
不自己 commit（交由 @transactional 的外層 transaction 處理）。

約定：
- 查無資料 -> 對應的 *NotFound
- 條件更新沒有命中任何一列 -> NothingUpdated
- Balance 的 version 不符 -> ConcurrentModification
"""
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models import (
    AdditionalInfo,
    AdditionalInfoType,
    Balance,
    BalanceTransaction,
    Company,
    CompanyShare,
    Game,
    GameSettings,
    Team,
)
from core.locks import with_balance_lock, with_game_lock, with_team_lock
from core.exceptions import (
    AdditionalInfoNotFound,
    BalanceNotFound,
    CompanyNotFound,
    ConcurrentModification,
    GameNotFound,
    NothingUpdated,
    SettingsNotFound,
    TeamNotFound,
    TransactionNotFound,
)


def _flush(db: Session, entity_name: str) -> None:
    try:
        db.flush()
    except StaleDataError as e:
        raise NothingUpdated(f"{entity_name}: nothing updated") from e


class GameStore:

    @staticmethod
    def get(db: Session, lock: bool = False) -> Game:
        query = with_game_lock(db) if lock else db.query(Game).filter(Game.id == 1)
        game = query.first()
        if not game:
            raise GameNotFound()
        return game

    @staticmethod
    def update(db: Session, game: Game) -> None:
        db.add(game)
        _flush(db, "game")


class SettingsStore:

    @staticmethod
    def get(db: Session) -> GameSettings:
        settings = db.query(GameSettings).filter(GameSettings.id == 1).first()
        if not settings:
            raise SettingsNotFound()
        return settings

    @staticmethod
    def update(db: Session, settings: GameSettings) -> None:
        db.add(settings)
        _flush(db, "settings")


class TeamStore:

    @staticmethod
    def create(db: Session, team: Team) -> int:
        db.add(team)
        db.flush()  # 取得 team.id
        return team.id

    @staticmethod
    def get_by_id(db: Session, team_id: int, lock: bool = False) -> Team:
        query = with_team_lock(team_id, db) if lock else db.query(Team).filter(Team.id == team_id)
        team = query.first()
        if not team:
            raise TeamNotFound(team_id)
        return team

    @staticmethod
    def get_by_credentials(db: Session, credentials: str, game_id: int) -> Optional[Team]:
        return db.query(Team).filter(
            Team.credentials == credentials,
            Team.game_id == game_id
        ).first()

    @staticmethod
    def get_all_by_game_id(db: Session, game_id: int) -> List[Team]:
        return db.query(Team).filter(Team.game_id == game_id).order_by(Team.id).all()

    @staticmethod
    def update(db: Session, team: Team) -> None:
        db.add(team)
        _flush(db, "team")


class BalanceStore:

    @staticmethod
    def create(db: Session, amount: int) -> Balance:
        balance = Balance(amount=amount)
        db.add(balance)
        db.flush()
        return balance

    @staticmethod
    def get_by_id(db: Session, balance_id: int, lock: bool = False) -> Balance:
        query = with_balance_lock(balance_id, db) if lock else db.query(Balance).filter(Balance.id == balance_id)
        balance = query.first()
        if not balance:
            raise BalanceNotFound(balance_id)
        return balance

    @staticmethod
    def update(db: Session, balance: Balance) -> None:
        """
        寫回餘額（帶 version 條件）

        讀取之後被其他 transaction 改過 -> ConcurrentModification，
        呼叫者的整個 unit of work 會被 rollback
        """
        # flush 失敗後 session 會 rollback 並 expire 物件，之後不能再讀取屬性
        balance_id = balance.id
        db.add(balance)
        try:
            db.flush()
        except StaleDataError as e:
            raise ConcurrentModification(
                f"Balance {balance_id} was modified by another request"
            ) from e


class BalanceTransactionStore:

    @staticmethod
    def get(db: Session, balance_id: int, round_number: int) -> BalanceTransaction:
        """取得某回合的股票交易（additional_info_id 與 random_event_id 皆為 NULL）"""
        transaction = db.query(BalanceTransaction).filter(
            BalanceTransaction.balance_id == balance_id,
            BalanceTransaction.round == round_number,
            BalanceTransaction.additional_info_id.is_(None),
            BalanceTransaction.random_event_id.is_(None)
        ).first()
        if not transaction:
            raise TransactionNotFound(balance_id, round_number)
        return transaction

    @staticmethod
    def exists(db: Session, balance_id: int, round_number: int) -> bool:
        try:
            BalanceTransactionStore.get(db, balance_id, round_number)
        except TransactionNotFound:
            return False
        return True

    @staticmethod
    def create(db: Session, transaction: BalanceTransaction) -> int:
        db.add(transaction)
        db.flush()
        return transaction.id

    @staticmethod
    def update(db: Session, transaction: BalanceTransaction) -> None:
        db.add(transaction)
        _flush(db, "balance_transaction")

    @staticmethod
    def delete(db: Session, balance_id: int, round_number: int) -> None:
        deleted = db.query(BalanceTransaction).filter(
            BalanceTransaction.balance_id == balance_id,
            BalanceTransaction.round == round_number,
            BalanceTransaction.additional_info_id.is_(None),
            BalanceTransaction.random_event_id.is_(None)
        ).delete(synchronize_session="fetch")
        if deleted == 0:
            raise NothingUpdated(
                f"balance_transaction: nothing deleted for balance {balance_id} round {round_number}"
            )


class CompanyStore:

    @staticmethod
    def create(db: Session, company: Company) -> int:
        db.add(company)
        db.flush()
        return company.id

    @staticmethod
    def get_by_id(db: Session, company_id: int) -> Company:
        company = db.query(Company).filter(Company.id == company_id).first()
        if not company:
            raise CompanyNotFound(company_id)
        return company

    @staticmethod
    def get_all_not_archived(db: Session) -> List[Company]:
        return db.query(Company).filter(
            (Company.archived.is_(None)) | (Company.archived == False)  # noqa: E712
        ).order_by(Company.id).all()

    @staticmethod
    def update(db: Session, company: Company) -> None:
        db.add(company)
        _flush(db, "company")


class CompanyShareStore:

    @staticmethod
    def get_prices_by_company_ids_and_round(
        db: Session,
        company_ids: Iterable[int],
        round_number: int
    ) -> Dict[int, int]:
        """返回 company_id -> price；該回合沒有定價的公司不會出現在結果中"""
        company_ids = list(company_ids)
        if not company_ids:
            return {}
        shares = db.query(CompanyShare).filter(
            CompanyShare.company_id.in_(company_ids),
            CompanyShare.round == round_number
        ).all()
        return {share.company_id: share.price for share in shares}

    @staticmethod
    def get_all_actual(db: Session) -> List[CompanyShare]:
        """所有未封存公司的股價"""
        return db.query(CompanyShare).join(
            Company, Company.id == CompanyShare.company_id
        ).filter(
            (Company.archived.is_(None)) | (Company.archived == False)  # noqa: E712
        ).order_by(CompanyShare.company_id, CompanyShare.round).all()

    @staticmethod
    def get_by_company_id(db: Session, company_id: int) -> List[CompanyShare]:
        return db.query(CompanyShare).filter(
            CompanyShare.company_id == company_id
        ).order_by(CompanyShare.round).all()

    @staticmethod
    def upsert(db: Session, company_id: int, round_number: int, price: int) -> CompanyShare:
        share = db.query(CompanyShare).filter(
            CompanyShare.company_id == company_id,
            CompanyShare.round == round_number
        ).first()
        if share:
            share.price = price
        else:
            share = CompanyShare(company_id=company_id, round=round_number, price=price)
            db.add(share)
        db.flush()
        return share


class AdditionalInfoStore:

    @staticmethod
    def create(db: Session, info: AdditionalInfo) -> int:
        db.add(info)
        db.flush()
        return info.id

    @staticmethod
    def get_by_id(db: Session, info_id: int) -> AdditionalInfo:
        info = db.query(AdditionalInfo).filter(AdditionalInfo.id == info_id).first()
        if not info:
            raise AdditionalInfoNotFound(info_id)
        return info

    @staticmethod
    def get_by_ids(db: Session, info_ids: Iterable[int]) -> List[AdditionalInfo]:
        info_ids = list(info_ids)
        if not info_ids:
            return []
        return db.query(AdditionalInfo).filter(
            AdditionalInfo.id.in_(info_ids)
        ).order_by(AdditionalInfo.id).all()

    @staticmethod
    def get_all_actual_by_type(db: Session, info_type: AdditionalInfoType) -> List[AdditionalInfo]:
        """某類型的額外資訊，排除掛在已封存公司上的項目"""
        return db.query(AdditionalInfo).outerjoin(
            Company, Company.id == AdditionalInfo.company_id
        ).filter(
            AdditionalInfo.type == info_type,
            (Company.archived.is_(None)) | (Company.archived == False)  # noqa: E712
        ).order_by(AdditionalInfo.id).all()

    @staticmethod
    def update(db: Session, info: AdditionalInfo) -> None:
        db.add(info)
        _flush(db, "additional_info")

    @staticmethod
    def delete(db: Session, info_id: int) -> None:
        deleted = db.query(AdditionalInfo).filter(
            AdditionalInfo.id == info_id
        ).delete(synchronize_session="fetch")
        if deleted == 0:
            raise AdditionalInfoNotFound(info_id)
