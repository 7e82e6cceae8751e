"""HTTP API end to end (JSON, session login)."""

import pytest

from claimdesk.extensions import db
from claimdesk.models import User


@pytest.fixture
def mission(manager_client, agent_id) -> dict:
    resp = manager_client.post(
        "/api/missions",
        json={"insured_name": "Leila M.", "vehicle_brand": "Dacia", "assigned_agent_id": agent_id},
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["mission"]


class TestAuth:
    def test_anonymous_gets_json_401(self, app) -> None:
        resp = app.test_client().get("/api/missions")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "unauthorized"

    def test_bad_password(self, app) -> None:
        resp = app.test_client().post("/auth/login", json={"username": "manager", "password": "nope"})
        assert resp.status_code == 422
        assert resp.get_json()["error"] == "validation_error"

    def test_me_and_logout(self, agent_client) -> None:
        assert agent_client.get("/auth/me").get_json()["user"]["role"] == "agent"
        assert agent_client.post("/auth/logout").status_code == 200
        assert agent_client.get("/auth/me").status_code == 401

    def test_inactive_user_refused(self, app) -> None:
        with app.app_context():
            user = User.query.filter_by(username="other_agent").one()
            user.is_active = False
            db.session.commit()
        resp = app.test_client().post("/auth/login", json={"username": "other_agent", "password": "s3cret-pass"})
        assert resp.status_code == 403

    def test_seed_manager_refused_once_users_exist(self, app) -> None:
        resp = app.test_client().post("/auth/seed-manager", json={"username": "boss", "password": "x"})
        assert resp.status_code == 403

    def test_csrf_token_endpoint(self, app) -> None:
        resp = app.test_client().get("/auth/csrf")
        assert resp.status_code == 200
        assert resp.get_json()["csrf_token"]


class TestMissions:
    def test_create_returns_detail(self, mission, manager_client) -> None:
        detail = manager_client.get(f"/api/missions/{mission['id']}").get_json()
        assert detail["mission"]["status"] == "created"
        assert detail["mission"]["assigned_agent_username"] == "agent"
        assert len(detail["labors"]["entries"]) == 4
        assert detail["valuation"]["final_indemnisation"] is None

    def test_agent_cannot_create(self, agent_client) -> None:
        resp = agent_client.post("/api/missions", json={"insured_name": "X"})
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "permission_denied"

    def test_validation_error_shape(self, manager_client) -> None:
        resp = manager_client.post("/api/missions", json={"insured_email": "a@b.c"})
        assert resp.status_code == 422
        body = resp.get_json()
        assert body["error"] == "validation_error"
        assert "insured_name" in body["fields"]

    def test_non_object_body_rejected(self, manager_client) -> None:
        resp = manager_client.post("/api/missions", json=["not", "an", "object"])
        assert resp.status_code == 422

    def test_unknown_mission_404(self, manager_client) -> None:
        resp = manager_client.get("/api/missions/999")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"

    def test_agent_visibility(self, mission, agent_client, other_agent_client) -> None:
        assert len(agent_client.get("/api/missions").get_json()["missions"]) == 1
        assert other_agent_client.get("/api/missions").get_json()["missions"] == []
        assert other_agent_client.get(f"/api/missions/{mission['id']}").status_code == 403

    def test_delete(self, mission, manager_client, agent_client) -> None:
        assert agent_client.delete(f"/api/missions/{mission['id']}").status_code == 403
        assert manager_client.delete(f"/api/missions/{mission['id']}").status_code == 204
        assert manager_client.get(f"/api/missions/{mission['id']}").status_code == 404


class TestStatusRoute:
    def test_lifecycle(self, mission, manager_client, agent_client) -> None:
        url = f"/api/missions/{mission['id']}/status"

        resp = agent_client.patch(url, json={"status": "en_cours"})
        assert resp.status_code == 200
        assert resp.get_json()["mission"]["status"] == "in_progress"

        resp = agent_client.patch(url, json={"status": "completed"})
        assert resp.status_code == 403

        resp = manager_client.patch(url, json={"status": "assigned"})
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "invalid_transition"

        resp = manager_client.patch(url, json={"status": "completed"})
        assert resp.status_code == 200
        assert resp.get_json()["allowed_statuses"] == ["completed"]

    def test_missing_status(self, mission, manager_client) -> None:
        resp = manager_client.patch(f"/api/missions/{mission['id']}/status", json={})
        assert resp.status_code == 422


    def test_first_version_statut_key(self, mission, agent_client) -> None:
        resp = agent_client.patch(f"/api/missions/{mission['id']}/status", json={"statut": "en_cours"})
        assert resp.status_code == 200
        assert resp.get_json()["mission"]["status"] == "in_progress"


class TestValuationFlow:
    def _fill(self, client, mission_id: int) -> None:
        base = f"/api/missions/{mission_id}"
        assert client.put(
            base,
            json={"guarantee_type": "TIERCE", "franchise_rate_percent": "10", "franchise_fixed_amount": "200"},
        ).status_code == 200
        resp = client.post(
            f"{base}/damages",
            json={"piece": "Pare-brise", "piece_type": "origine", "price_ht": "1000", "vetuste_percent": "20"},
        )
        assert resp.status_code == 201
        resp = client.put(
            f"{base}/labors",
            json={
                "entries": [{"category": "tolerie", "hours": "10", "hourly_rate": "500"}],
                "supplies": {"ht": "300", "ttc": "360"},
            },
        )
        assert resp.status_code == 200
        assert resp.get_json()["totals"]["grand_total_ttc"] == "6360.00"

    def test_settlement(self, mission, manager_client, agent_client) -> None:
        self._fill(manager_client, mission["id"])

        valuation = agent_client.get(f"/api/missions/{mission['id']}/valuation").get_json()
        assert valuation["vetuste_loss_ttc"] == "240.00"
        assert valuation["net_evaluation_ttc"] == "6120.00"
        assert valuation["franchise_amount"] == "636.00"
        assert valuation["recommended_indemnisation"] == "5484.00"
        assert valuation["final_indemnisation"] is None

    def test_override_and_recalculate(self, mission, manager_client) -> None:
        base = f"/api/missions/{mission['id']}"
        self._fill(manager_client, mission["id"])

        resp = manager_client.put(f"{base}/indemnisation", json={"final_indemnisation": "5000,50"})
        assert resp.status_code == 200
        assert resp.get_json()["final_indemnisation"] == "5000.50"

        manager_client.put(f"{base}/labors/peinture", json={"hours": "1", "hourly_rate": "100"})
        valuation = manager_client.get(f"{base}/valuation").get_json()
        assert valuation["final_indemnisation"] == "5000.50"
        assert valuation["recommended_indemnisation"] == "5592.00"
        assert valuation["payable_indemnisation"] == "5000.50"

        resp = manager_client.post(f"{base}/indemnisation/recalculate")
        assert resp.get_json()["final_indemnisation"] == "5592.00"

    def test_agent_cannot_edit_ledgers(self, mission, agent_client) -> None:
        base = f"/api/missions/{mission['id']}"
        assert agent_client.post(f"{base}/damages", json={"piece": "A", "price_ht": "1"}).status_code == 403
        assert agent_client.put(f"{base}/supplies", json={"ht": "1", "ttc": "1"}).status_code == 403
        assert agent_client.post(f"{base}/indemnisation/recalculate").status_code == 403

    def test_oversized_price_rejected_without_change(self, mission, manager_client) -> None:
        base = f"/api/missions/{mission['id']}/damages"
        resp = manager_client.post(base, json={"piece": "Moteur", "price_ht": "10000000000"})
        assert resp.status_code == 422
        assert "price_ht" in resp.get_json()["fields"]
        assert manager_client.get(base).get_json()["lines"] == []

    def test_sub_cent_price_stored_rounded(self, mission, manager_client) -> None:
        base = f"/api/missions/{mission['id']}/damages"
        manager_client.post(base, json={"piece": "Agrafe", "price_ht": "0.125", "vat_applicable": False})
        line = manager_client.get(base).get_json()["lines"][0]
        assert line["price_ht"] == "0.13"
        assert line["price_ttc"] == "0.13"

    def test_damage_line_update_delete(self, mission, manager_client) -> None:
        base = f"/api/missions/{mission['id']}/damages"
        line_id = manager_client.post(base, json={"piece": "Retro", "price_ht": "80"}).get_json()["lines"][0]["id"]

        resp = manager_client.put(f"{base}/{line_id}", json={"piece": "Retro", "price_ht": "80", "vat_applicable": False})
        assert resp.get_json()["lines"][0]["price_ttc"] == "80.00"

        resp = manager_client.delete(f"{base}/{line_id}")
        assert resp.get_json()["lines"] == []
        assert manager_client.delete(f"{base}/{line_id}").status_code == 404


class TestAttachmentRoutes:
    def test_assigned_agent_manages_photos(self, mission, agent_client) -> None:
        url = f"/api/missions/{mission['id']}/photos"
        resp = agent_client.post(url, json={"phase": "avant", "files": [{"filename": "p.jpg", "url": "/f/p.jpg"}]})
        assert resp.status_code == 201
        photo_id = resp.get_json()["photos"][0]["id"]
        assert agent_client.delete(f"{url}/{photo_id}").get_json()["photos"] == []

    def test_unassigned_agent_forbidden(self, mission, other_agent_client) -> None:
        url = f"/api/missions/{mission['id']}/documents"
        resp = other_agent_client.post(url, json={"original_name": "devis.pdf", "url": "/f/devis.pdf"})
        assert resp.status_code == 403

    def test_manager_manages_documents(self, mission, manager_client) -> None:
        url = f"/api/missions/{mission['id']}/documents"
        resp = manager_client.post(
            url, json={"original_name": "devis.pdf", "mime_type": "application/pdf", "url": "/f/devis.pdf"}
        )
        assert resp.status_code == 201
        assert manager_client.get(url).get_json()["documents"][0]["mime_type"] == "application/pdf"
