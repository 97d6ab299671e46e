import pytest
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine
from core.runtime import build_runtime
from tests.helpers import set_default_balance, set_round

TRADE_PERIOD_SECONDS = 0.2


@pytest.fixture
def engine(tmp_path):
    # 背景時段執行緒需要自己的連線，所以用檔案而不是 in-memory SQLite
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_runtime(session_factory, db):
    """建立已寫入單例列的 runtime；測試結束後關閉所有建立過的 runtime"""
    runtimes = []

    def factory(
        trade_period_seconds=TRADE_PERIOD_SECONDS,
        registration_period_seconds=None,
        default_balance=1000
    ):
        runtime = build_runtime(
            session_factory,
            trade_period_seconds=trade_period_seconds,
            registration_period_seconds=registration_period_seconds,
            stop_grace_seconds=0.5
        )
        runtime.catalog_manager.ensure_settings(db, trade_period_seconds)
        runtime.game_manager.ensure_game(db)
        set_default_balance(db, default_balance)
        runtimes.append(runtime)
        return runtime

    yield factory

    for runtime in runtimes:
        runtime.game_manager.shutdown(2.0)


@pytest.fixture
def runtime(make_runtime):
    return make_runtime()


@pytest.fixture
def trading(runtime, db):
    """第 1 回合且交易時段開放的 runtime"""
    set_round(db, 1)
    runtime.gate.set_trade_period_active(True)
    return runtime
