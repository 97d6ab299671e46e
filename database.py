from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache, wraps
from typing import List, Optional
import logging

from core.exceptions import InvestmentGameException

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="INVEST_")

    database_url: str = "sqlite:///./investment_game.db"
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # 交易時段：settings 表尚未建立時使用的預設長度
    default_round_duration_seconds: float = 300.0
    # None 表示註冊時段直到管理員關閉為止
    registration_period_seconds: Optional[float] = None
    stop_grace_seconds: float = 1.0
    shutdown_timeout_seconds: float = 5.0


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def build_engine(database_url: str):
    """
    SQLite 需要 connect_args={"check_same_thread": False}：
    FastAPI 的同步 endpoint 和背景交易時段執行緒會共用連線池
    """
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
        pool_pre_ping=True
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs) -> Optional[Session]:
    if 'db' in kwargs and isinstance(kwargs['db'], Session):
        return kwargs['db']
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return None


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        class PurchaseManager:
            @transactional
            def purchase(self, db: Session, ...):
                # 所有 DB 操作都在一個 transaction 內
                balance.amount -= amount
                # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback（balance、transaction、team 的變更一起撤銷）
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 參數中必須有一個 db: Session（位置參數或 keyword）
        - 不要在函式內手動 commit（decorator 會處理）
        - 巢狀呼叫另一個 @transactional 函式時，內層的 commit 會提前提交
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a 'db: Session' argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except InvestmentGameException:
            # 業務規則拒絕，不需要 traceback
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
