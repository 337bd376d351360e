"""
Integration token lifecycle and the read-only export.

Verifies:
- Admin endpoints require the admin secret
- Rotation returns the plaintext once; only a hash is stored
- Export answers 403 when disabled, 401 for bad or expired tokens
- Every authorized read is logged and counted
"""

from datetime import timedelta

import pytest

from boxcount.errors import IntegrationDisabledError, InvalidInputError
from boxcount.models import IntegrationAccessLog, IntegrationConfig
from boxcount.services import availability_service, count_service, integration_service
from boxcount.services.integration_service import hash_token
from boxcount.time_utils import utcnow


def rotate(client, admin_headers):
    resp = client.put("/integration/token", headers=admin_headers)
    assert resp.status_code == 200
    return resp.json["token"]


def enable(client, admin_headers, enabled=True):
    return client.post("/integration/token", json={"enabled": enabled}, headers=admin_headers)


def export(client, token, query=""):
    return client.get(
        f"/integration/export{query}",
        headers={"Authorization": f"Bearer {token}", "User-Agent": "erp-sync/1.0"},
    )


@pytest.fixture
def live_token(client, catalog, admin_headers):
    token = rotate(client, admin_headers)
    assert enable(client, admin_headers).status_code == 200
    return token


class TestTokenAdmin:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/integration/token"),
            ("POST", "/integration/token"),
            ("PUT", "/integration/token"),
            ("GET", "/integration/logs"),
        ],
    )
    def test_requires_admin_secret(self, client, catalog, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401

    def test_rotation_stores_only_hash(self, client, catalog, db_session, admin_headers):
        resp = client.put("/integration/token", headers=admin_headers)
        token = resp.json["token"]
        assert len(token) >= 40
        assert resp.json["expiresAt"].endswith("Z")

        config = db_session.get(IntegrationConfig, 1)
        assert config.token_hash == hash_token(token)
        assert token not in (config.token_hint or "")

        masked = client.get("/integration/token", headers=admin_headers).json
        assert masked["token"] == f"{token[:4]}...{token[-4:]}"
        assert masked["enabled"] is False

    def test_rotation_expires_in_a_day(self, client, catalog, db_session, admin_headers):
        before = utcnow()
        rotate(client, admin_headers)
        config = db_session.get(IntegrationConfig, 1)
        assert timedelta(hours=23, minutes=59) < config.expires_at - before <= timedelta(hours=24, minutes=1)

    def test_enable_while_blocked_is_refused(self, client, catalog, db_session, admin_headers):
        availability_service.set_manual(True)
        db_session.commit()

        resp = enable(client, admin_headers)
        assert resp.status_code == 403
        assert resp.json["code"] == "SYSTEM_BLOCKED"
        assert enable(client, admin_headers, enabled=False).status_code == 200

    def test_enable_requires_boolean(self, client, catalog, admin_headers):
        resp = client.post("/integration/token", json={"enabled": "on"}, headers=admin_headers)
        assert resp.status_code == 400


class TestExport:
    def test_missing_bearer(self, client, catalog):
        assert client.get("/integration/export").status_code == 401

    def test_disabled_integration(self, client, catalog, admin_headers):
        token = rotate(client, admin_headers)
        resp = export(client, token)
        assert resp.status_code == 403
        assert resp.json["code"] == "INTEGRATION_DISABLED"

    def test_wrong_token(self, client, live_token):
        resp = export(client, live_token + "x")
        assert resp.status_code == 401
        assert resp.json["code"] == "UNAUTHORIZED"

    def test_rotated_token_stops_working(self, client, live_token, admin_headers):
        rotate(client, admin_headers)
        assert export(client, live_token).status_code == 401

    def test_expired_token(self, client, db_session, live_token):
        config = db_session.get(IntegrationConfig, 1)
        config.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        resp = export(client, live_token)
        assert resp.status_code == 401
        assert resp.json["code"] == "TOKEN_EXPIRED"

    def test_export_returns_records(self, client, live_token):
        client.post("/counts", json={"storeId": "1", "email": "ana@example.com", "quantities": {"CX-P": 5}})
        client.post("/counts", json={"storeId": "2", "email": "bia@example.com"})

        resp = export(client, live_token)
        assert resp.status_code == 200
        assert resp.json["count"] == 6
        assert resp.json["timestamp"].endswith("Z")
        assert {r["storeId"] for r in resp.json["data"]} == {"1", "2"}

        filtered = export(client, live_token, "?storeId=1&assetId=CX-P")
        assert filtered.json["count"] == 1
        assert filtered.json["data"][0]["quantity"] == 5

    def test_since_in_the_future(self, client, live_token):
        client.post("/counts", json={"storeId": "1", "email": "ana@example.com"})
        tomorrow = (utcnow() + timedelta(days=1)).isoformat() + "Z"
        assert export(client, live_token, f"?since={tomorrow}").json["count"] == 0

    def test_invalid_since(self, client, live_token):
        assert export(client, live_token, "?since=yesterday").status_code == 400

    def test_access_is_logged(self, client, db_session, live_token, admin_headers):
        export(client, live_token)
        export(client, live_token)

        config = db_session.get(IntegrationConfig, 1)
        assert config.connection_count == 2
        assert config.last_used_at is not None

        log = db_session.query(IntegrationAccessLog).first()
        assert log.user_agent == "erp-sync/1.0"
        assert log.token_hint == config.token_hint

        resp = client.get("/integration/logs", headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.json["logs"]) == 2
        assert resp.json["stats"] == {"lastHour": 2, "lastDay": 2}

    def test_refused_access_is_not_logged(self, client, db_session, live_token):
        export(client, "nope")
        assert db_session.query(IntegrationAccessLog).count() == 0


class TestIntegrationService:
    def test_check_order_disabled_before_token(self, catalog, db_session):
        integration_service.generate_token()
        db_session.commit()
        with pytest.raises(IntegrationDisabledError):
            integration_service.authorize(None)

    def test_since_is_exclusive(self, catalog, db_session):
        recorded_at = utcnow().replace(microsecond=0)
        count_service.submit_count("1", "ana@example.com", {}, now=recorded_at)
        db_session.commit()

        assert integration_service.export_records(since=recorded_at) == []
        earlier = recorded_at - timedelta(seconds=1)
        assert len(integration_service.export_records(since=earlier)) == 3

    def test_list_logs_rejects_bad_limit(self, catalog, db_session):
        with pytest.raises(InvalidInputError):
            integration_service.list_access_logs(limit=0)
