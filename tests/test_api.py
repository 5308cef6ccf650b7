"""
Tests for the REST API
Run with: pytest tests/test_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from bookie.main import app, get_session
from bookie.services.session import MODE_MAIN, BookieSession, SessionSettings

ADMIN = {"X-API-Key": "test-admin-key"}
USER = {"X-API-Key": "test-user-key"}


@pytest.fixture
def session(store):
    return BookieSession(store, settings=SessionSettings(default_limit=1000))


@pytest.fixture
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    # No context manager: the lifespan (scheduler, init_db) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    """Test API key checks"""

    def test_public_endpoints(self, client):
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/").status_code == 200

    def test_missing_key(self, client):
        assert client.get("/api/summary").status_code == 401

    def test_invalid_key(self, client):
        response = client.get("/api/summary", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_admin_only(self, client):
        assert client.delete("/api/history", headers=USER).status_code == 403
        assert client.delete("/api/history", headers=ADMIN).status_code == 200


class TestBetsEndpoints:
    """Test submitting, listing and editing bets"""

    def test_parse_preview_records_nothing(self, client, session):
        response = client.post("/api/parse", json={"text": "12r 100"}, headers=USER)

        assert response.status_code == 200
        assert response.json()["count"] == 2
        assert len(session.ledger) == 0

    def test_add_bets(self, client):
        response = client.post("/api/bets", json={"text": "12r 100"}, headers=USER)

        assert response.status_code == 201
        data = response.json()
        assert data["input"] == "12r 100"
        assert [b["number"] for b in data["bets"]] == ["12", "21"]

    def test_format_error(self, client, session):
        response = client.post("/api/bets", json={"text": "hello"}, headers=USER)

        assert response.status_code == 422
        assert response.json()["detail"] == "format error"
        assert len(session.ledger) == 0

    def test_inbox_without_agent(self, client):
        response = client.post("/api/bets/inbox", json={"text": "25 100"}, headers=USER)
        assert response.status_code == 422

    def test_inbox_with_header(self, client):
        response = client.post(
            "/api/bets/inbox", json={"text": "--- Ko Aung ---\n25 100"}, headers=USER
        )
        assert response.status_code == 201
        assert response.json()["bets"][0]["source"] == "Inbox: Ko Aung"

        agents = client.get("/api/agents", headers=USER).json()
        assert agents == [{"name": "Ko Aung", "commission": 15.0}]

    def test_history_newest_first_and_edit(self, client):
        client.post("/api/bets", json={"text": "12 100"}, headers=USER)
        client.post("/api/bets", json={"text": "34 200"}, headers=USER)

        history = client.get("/api/history", headers=USER).json()
        assert [h["input"] for h in history] == ["34 200", "12 100"]

        response = client.post(f"/api/history/{history[0]['id']}/edit", headers=USER)
        assert response.json() == {"text": "34 200"}
        assert len(client.get("/api/history", headers=USER).json()) == 1

    def test_unknown_ids(self, client):
        assert client.delete("/api/history/missing", headers=USER).status_code == 404
        assert client.delete("/api/bets/missing", headers=USER).status_code == 404
        assert client.post("/api/bets/missing/edit", headers=USER).status_code == 404

    def test_undo(self, client):
        assert client.post("/api/history/undo", headers=USER).json() == {"undone": None}
        entry = client.post("/api/bets", json={"text": "12 100"}, headers=USER).json()
        assert client.post("/api/history/undo", headers=USER).json() == {"undone": entry["id"]}


class TestExposureEndpoints:
    """Test grid, over-limit handling and forwarding"""

    @pytest.fixture(autouse=True)
    def bets(self, client):
        client.post("/api/bets", json={"text": "25 1300\n12 500"}, headers=USER)

    def test_grid(self, client):
        cells = client.get("/api/grid", headers=USER).json()
        assert len(cells) == 100
        over = client.get("/api/grid", params={"over_only": True}, headers=USER).json()
        assert [c["number"] for c in over] == ["25"]
        assert over[0]["over_limit_amount"] == 300

    def test_number_detail(self, client):
        data = client.get("/api/numbers/25", headers=USER).json()
        assert data["total"] == 1300
        assert data["limit"] == 1000
        assert client.get("/api/numbers/123", headers=USER).status_code == 422

    def test_summary(self, client):
        data = client.get("/api/summary", headers=USER).json()
        assert data["total_bet_amount"] == 1800
        assert data["net_amount"] == 1500

    def test_forward_preview_then_confirm(self, client):
        preview = client.get("/api/forward/all", headers=USER).json()
        assert preview["items"] == [{"number": "25", "amount": 300.0}]
        assert "25 = 300" in preview["text"]

        # preview acknowledges nothing
        assert client.get("/api/forward/all", headers=USER).json()["items"]

        numbers = [i["number"] for i in preview["items"]]
        confirmed = client.post(
            "/api/forward/all/confirm", json={"numbers": numbers}, headers=USER
        ).json()
        assert confirmed["items"] == preview["items"]
        assert client.get("/api/forward/all", headers=USER).json()["items"] == []

    def test_confirm_only_commits_delivered_numbers(self, client, session):
        preview = client.get("/api/forward/all", headers=USER).json()
        assert [i["number"] for i in preview["items"]] == ["25"]

        client.post("/api/bets", json={"text": "34 1500"}, headers=USER)
        confirmed = client.post(
            "/api/forward/all/confirm", json={"numbers": ["25"]}, headers=USER
        ).json()

        assert confirmed["items"] == [{"number": "25", "amount": 300.0}]
        assert session.limits.acknowledged == {"25": 300.0}
        pending = client.get("/api/forward/all", headers=USER).json()["items"]
        assert pending == [{"number": "34", "amount": 500.0}]

    def test_confirm_needs_delivered_numbers(self, client):
        response = client.post("/api/forward/all/confirm", headers=USER)
        assert response.status_code == 422
        assert client.get("/api/forward/all", headers=USER).json()["items"]

    def test_unknown_forward_kind(self, client):
        assert client.get("/api/forward/everything", headers=USER).status_code == 404

    def test_hold_and_release(self, client):
        assert client.post("/api/over-limit/25/hold", headers=USER).json()["moved"] == 300
        over = client.get("/api/over-limit", headers=USER).json()
        assert over["held"] == [{"number": "25", "amount": 300.0}]
        assert over["sticky_held"] == ["25"]

        client.post("/api/over-limit/25/release", headers=USER)
        over = client.get("/api/over-limit", headers=USER).json()
        assert over["held"] == []
        assert over["forwardable"] == [{"number": "25", "amount": 300.0}]

    def test_payout(self, client):
        data = client.post("/api/payout", json={"winning_number": "25"}, headers=USER).json()
        assert data["total_bet_on_win"] == 1300
        assert data["total_held_payout"] == 80000

    def test_payout_wrong_width(self, client):
        response = client.post("/api/payout", json={"winning_number": "123"}, headers=USER)
        assert response.status_code == 422

    def test_risk_and_voucher(self, client):
        risk = client.get("/api/risk", headers=USER).json()
        assert risk["worst_case"]["numbers"] == ["25"]
        voucher = client.get("/api/voucher", headers=USER).json()
        assert voucher["total_amount"] == 1800


class TestLimitEndpoints:
    """Test limit group management"""

    def test_add_and_list(self, client):
        response = client.post("/api/limits", json={"name": "apu", "amount": 500}, headers=USER)
        assert response.status_code == 201
        group = response.json()
        assert len(group["numbers"]) == 10

        listed = client.get("/api/limits", headers=USER).json()
        assert [g["id"] for g in listed] == [group["id"]]

    def test_name_without_numbers(self, client):
        response = client.post("/api/limits", json={"name": "xyz", "amount": 500}, headers=USER)
        assert response.status_code == 422

    def test_negative_amount_rejected(self, client):
        response = client.post("/api/limits", json={"name": "apu", "amount": -1}, headers=USER)
        assert response.status_code == 422

    def test_update_toggle_delete(self, client):
        group = client.post("/api/limits", json={"name": "apu", "amount": 500}, headers=USER).json()
        gid = group["id"]

        assert client.put(f"/api/limits/{gid}", json={"amount": 700}, headers=USER).json()["amount"] == 700
        assert client.post(f"/api/limits/{gid}/toggle", headers=USER).json()["is_open"] is True
        assert client.delete(f"/api/limits/{gid}", headers=USER).status_code == 200
        assert client.delete(f"/api/limits/{gid}", headers=USER).status_code == 404

    def test_batch(self, client):
        client.post("/api/limits", json={"name": "apu", "amount": 500}, headers=USER)
        groups = client.post("/api/limits/batch", json={"kind": "sub", "value": 600}, headers=USER).json()
        assert groups[0]["amount"] == 0

        response = client.post("/api/limits/batch", json={"kind": "add", "value": 0}, headers=USER)
        assert response.status_code == 422


class TestSettingsEndpoints:
    """Test settings, lottery type and mode"""

    def test_update_settings(self, client):
        data = client.put(
            "/api/settings", json={"bookie_name": "Shop", "currency_symbol": "¥"}, headers=USER
        ).json()
        assert data["bookie_name"] == "Shop"
        assert data["currency_symbol"] == "¥"
        assert data["default_limit"] == 1000

    def test_invalid_currency(self, client):
        response = client.put("/api/settings", json={"currency_symbol": "$"}, headers=USER)
        assert response.status_code == 422

    def test_lottery_type_and_mode(self, client):
        client.post("/api/bets", json={"text": "12 100"}, headers=USER)

        data = client.put("/api/lottery-type", json={"lottery_type": "3D"}, headers=USER).json()
        assert data["lottery_type"] == "3D"
        assert client.get("/api/summary", headers=USER).json()["total_bet_amount"] == 0

        client.put("/api/lottery-type", json={"lottery_type": "2D"}, headers=USER)
        assert client.get("/api/summary", headers=USER).json()["total_bet_amount"] == 100

        data = client.put("/api/mode", json={"mode": MODE_MAIN}, headers=USER).json()
        assert data["mode"] == MODE_MAIN
        assert client.put("/api/mode", json={"mode": "other"}, headers=USER).status_code == 422


class TestReportEndpoints:
    """Test reports, snapshot and backup"""

    def test_save_list_restore(self, client, session):
        client.post("/api/bets", json={"text": "12 100"}, headers=USER)
        saved = client.post("/api/reports", json={"session": "morning"}, headers=USER).json()
        assert saved["total_bet_amount"] == 100

        reports = client.get("/api/reports", headers=USER).json()
        assert [r["id"] for r in reports] == [saved["id"]]

        client.delete("/api/history", headers=ADMIN)
        restored = client.post(f"/api/reports/{saved['id']}/restore", headers=USER).json()
        assert restored["restored_entries"] == 1
        assert session.total_bet_amount == 100

        assert client.delete(f"/api/reports/{saved['id']}", headers=USER).status_code == 200
        assert client.post(f"/api/reports/{saved['id']}/restore", headers=USER).status_code == 404

    def test_snapshot(self, client):
        client.post("/api/bets", json={"text": "12 100"}, headers=USER)
        data = client.get("/api/snapshot", headers=USER).json()
        assert data["snapshot"]["history"][0]["input"] == "12 100"
        assert data["snapshot"]["default_limit"] == 1000

    def test_backup_roundtrip(self, client, session):
        client.post("/api/bets", json={"text": "12 100"}, headers=USER)
        assert client.get("/api/backup", headers=USER).status_code == 403

        backup = client.get("/api/backup", headers=ADMIN).json()
        client.delete("/api/history", headers=ADMIN)

        response = client.post("/api/backup/restore", json=backup, headers=ADMIN)
        assert response.status_code == 200
        assert session.total_bet_amount == 100
