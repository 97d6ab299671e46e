"""
Runtime：組裝所有常駐物件

應用程式啟動時建立一次，存在 app.state.runtime，API 層透過 dependency 取得。
subscriber 的註冊順序固定：先更新 PeriodGate 旗標，再通知前端，
前端收到「交易開始」時購買入口一定已經開放。
"""
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from core.background import BackgroundTasks
from core.catalog_manager import CatalogManager
from core.game_manager import GameManager
from core.notifier import TeamsNotifier
from core.period_controller import PeriodController, PeriodGate
from core.purchase_manager import PurchaseManager
from core.team_manager import TeamManager


@dataclass
class Runtime:
    gate: PeriodGate
    notifier: TeamsNotifier
    trade_controller: PeriodController
    registration_controller: PeriodController
    tasks: BackgroundTasks
    game_manager: GameManager
    team_manager: TeamManager
    purchase_manager: PurchaseManager
    catalog_manager: CatalogManager


def build_runtime(
    session_factory: Callable[[], Session],
    trade_period_seconds: Optional[float],
    registration_period_seconds: Optional[float] = None,
    stop_grace_seconds: float = 1.0,
) -> Runtime:
    gate = PeriodGate()
    notifier = TeamsNotifier()
    tasks = BackgroundTasks()

    trade_controller = PeriodController("trade", trade_period_seconds, stop_grace=stop_grace_seconds)
    trade_controller.register_subscriber(gate.set_trade_period_active)
    trade_controller.register_subscriber(notifier.notify_trade_period_changed)

    registration_controller = PeriodController(
        "registration", registration_period_seconds, stop_grace=stop_grace_seconds
    )
    registration_controller.register_subscriber(gate.set_registration_period_active)
    registration_controller.register_subscriber(notifier.notify_registration_period_changed)

    game_manager = GameManager(
        trade_controller=trade_controller,
        registration_controller=registration_controller,
        notifier=notifier,
        session_factory=session_factory,
        tasks=tasks
    )
    team_manager = TeamManager(gate)

    return Runtime(
        gate=gate,
        notifier=notifier,
        trade_controller=trade_controller,
        registration_controller=registration_controller,
        tasks=tasks,
        game_manager=game_manager,
        team_manager=team_manager,
        purchase_manager=PurchaseManager(gate, team_manager),
        catalog_manager=CatalogManager(game_manager.update_trade_period),
    )
