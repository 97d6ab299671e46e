import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app
from tests.helpers import register_team, seed_company, wait_until


@pytest.fixture
def client(runtime, session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.state.runtime = runtime
    app.dependency_overrides[get_db] = override_get_db
    # 不進入 lifespan：runtime 與資料庫都由 fixture 提供
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestMeta:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestGameEndpoints:
    def test_get_game(self, client):
        response = client.get("/api/game")

        assert response.status_code == 200
        assert response.json() == {
            "state": -1,
            "current_round": 0,
            "trade_state": 0,
            "current_game": 1,
        }

    def test_registration_flow(self, client, runtime):
        assert client.post("/api/teams", json={"name": "Alpha", "credentials": "a"}).status_code == 400

        response = client.post("/api/game/registration/start")
        assert response.json()["state"] == 1
        assert wait_until(lambda: runtime.gate.is_registration_period)

        response = client.post("/api/teams", json={"name": "Alpha", "credentials": "a", "members": ["Ann"]})
        assert response.status_code == 200
        assert response.json()["name"] == "Alpha"

        duplicate = client.post("/api/teams", json={"name": "Beta", "credentials": "a"})
        assert duplicate.status_code == 400

        assert [team["name"] for team in client.get("/api/teams").json()] == ["Alpha"]

    def test_bulk_update(self, client):
        response = client.put("/api/game", json={"state": 2, "current_round": 4, "trade_state": 0})

        assert response.status_code == 200
        assert response.json()["current_round"] == 1


class TestTeamEndpoints:
    def test_purchase_outside_trade_period(self, client, runtime, db):
        team = register_team(runtime, db, "Alpha")

        response = client.post(f"/api/teams/{team.id}/purchase", json={"shares_changes": {"42": 1}})

        assert response.status_code == 400

    def test_purchase_and_reset(self, client, trading, db):
        seed_company(db, 42, {1: 100})
        team = register_team(trading, db, "Alpha")

        response = client.post(f"/api/teams/{team.id}/purchase", json={"shares_changes": {"42": 3}})
        assert response.status_code == 200
        assert response.json() == {"balance": 700}

        detailed = client.get(f"/api/teams/{team.id}").json()
        assert detailed["shares"] == {"42": 3}
        assert detailed["has_transaction_in_this_round"] is True

        reset = client.post(f"/api/teams/{team.id}/reset").json()
        assert reset["balance"] == 1000
        assert reset["has_transaction_in_this_round"] is False

    def test_login(self, client, runtime, db):
        team = register_team(runtime, db, "Alpha", credentials="secret")

        response = client.post("/api/teams/login", json={"credentials": "secret"})

        assert response.status_code == 200
        assert response.json()["id"] == team.id
        assert client.post("/api/teams/login", json={"credentials": "guess"}).status_code == 404

    def test_unknown_team(self, client):
        assert client.get("/api/teams/999").status_code == 404

    def test_statistics_without_teams(self, client):
        assert client.get("/api/teams/statistics", params={"round": 1}).status_code == 400


class TestCatalogEndpoints:
    def test_company_and_settings(self, client):
        created = client.post("/api/companies", json={"name": "Acme", "shares": {"1": 100}})
        assert created.status_code == 200

        companies = client.get("/api/companies").json()
        assert companies == [{"id": created.json()["id"], "name": "Acme", "shares": {"1": 100}}]

        settings = client.get("/api/settings").json()
        settings["default_balance_amount"] = 5000
        updated = client.put("/api/settings", json=settings)
        assert updated.status_code == 200
        assert updated.json()["default_balance_amount"] == 5000

    def test_info_for_unknown_company(self, client):
        response = client.post(
            "/api/additional-infos",
            json={"name": "Tip", "type": 1, "cost": 10, "company_id": 404, "round": 1}
        )
        assert response.status_code == 404


class TestTeamsWebsocket:
    def test_sends_current_flags_then_changes(self, client, runtime):
        with client.websocket_connect("/ws/teams") as websocket:
            assert websocket.receive_json() == {"isTradeStage": False}
            assert websocket.receive_json() == {"isRegistrationStage": False}
            assert wait_until(lambda: runtime.notifier.connections_count == 1)

            runtime.notifier.notify_trade_period_changed(True)

            assert websocket.receive_json() == {"isTradeStage": True}
