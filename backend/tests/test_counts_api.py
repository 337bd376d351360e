"""
Count submission and admin record management.

Verifies:
- Blocked system rejects every submission (403)
- Each store submits once; a repeat is 409 and changes nothing
- One record per asset, omitted assets recorded as 0, negatives clamped
- Transit counts are limited to distribution centers and guarded separately
- Admin list/edit/delete/stats require the admin secret
"""

import pytest
from sqlalchemy.exc import OperationalError

from boxcount.extensions import db
from boxcount.models import CountRecord, TransitCountRecord, Store
from boxcount.services import availability_service, count_service


def submit(client, store_id="1", email="ana@example.com", quantities=None, path="/counts"):
    body = {"storeId": store_id, "email": email}
    if quantities is not None:
        body["quantities"] = quantities
    return client.post(path, json=body)


def block_system(db_session, blocked=True):
    availability_service.set_manual(blocked)
    db_session.commit()


# =============================================================================
# AVAILABILITY GATE
# =============================================================================


class TestBlockedSystem:
    @pytest.mark.parametrize(
        "body",
        [
            {"storeId": "1", "email": "ana@example.com", "quantities": {"CX-P": 3}},
            {"storeId": "does-not-exist"},
            {},
        ],
    )
    def test_blocked_rejects_any_payload(self, client, catalog, db_session, body):
        block_system(db_session)
        resp = client.post("/counts", json=body)
        assert resp.status_code == 403
        assert resp.json["code"] == "SYSTEM_BLOCKED"
        assert db_session.query(CountRecord).count() == 0

    def test_blocked_rejects_transit(self, client, catalog, db_session):
        block_system(db_session)
        resp = submit(client, store_id="CD1", path="/transit")
        assert resp.status_code == 403

    def test_unblocking_reopens_submissions(self, client, catalog, db_session):
        block_system(db_session)
        block_system(db_session, blocked=False)
        assert submit(client).status_code == 201


# =============================================================================
# SUBMISSION
# =============================================================================


class TestSubmission:
    def test_creates_one_record_per_asset(self, client, catalog, db_session):
        resp = submit(client, quantities={"CX-P": 4, "PAL": 2})
        assert resp.status_code == 201

        records = resp.json["records"]
        assert [r["assetId"] for r in records] == ["CX-P", "CX-G", "PAL"]
        assert {r["assetId"]: r["quantity"] for r in records} == {"CX-P": 4, "CX-G": 0, "PAL": 2}
        assert all(r["storeName"] == "Loja 1" for r in records)
        assert all(r["email"] == "ana@example.com" for r in records)
        assert len({r["recordedAt"] for r in records}) == 1
        assert db_session.query(CountRecord).count() == 3

    def test_email_is_normalized(self, client, catalog):
        resp = submit(client, email="  Ana@Example.COM ")
        assert resp.json["records"][0]["email"] == "ana@example.com"

    def test_negative_quantity_is_clamped(self, client, catalog):
        resp = submit(client, quantities={"CX-P": -5})
        assert resp.status_code == 201
        assert resp.json["records"][0]["quantity"] == 0

    def test_numeric_string_quantity_is_accepted(self, client, catalog):
        resp = submit(client, quantities={"CX-G": "12"})
        assert resp.status_code == 201
        assert resp.json["records"][1]["quantity"] == 12

    def test_second_submission_is_rejected_and_original_kept(self, client, catalog, db_session):
        first = submit(client, quantities={"CX-P": 1, "CX-G": 2, "PAL": 3})
        assert first.status_code == 201

        second = submit(client, email="bia@example.com", quantities={"CX-P": 99})
        assert second.status_code == 409
        assert second.json["code"] == "ALREADY_SUBMITTED"

        rows = db_session.query(CountRecord).order_by(CountRecord.id).all()
        assert [(r.asset_id, r.quantity) for r in rows] == [("CX-P", 1), ("CX-G", 2), ("PAL", 3)]
        assert {r.submitter_email for r in rows} == {"ana@example.com"}

    def test_other_store_is_unaffected_by_guard(self, client, catalog):
        assert submit(client, store_id="1").status_code == 201
        assert submit(client, store_id="2").status_code == 201

    def test_concurrent_duplicate_hits_unique_constraint(self, client, catalog, db_session, monkeypatch):
        assert submit(client, quantities={"CX-P": 1}).status_code == 201

        # Simulate a second request that passed the guard before the first committed
        monkeypatch.setattr(count_service, "has_submitted", lambda store_id, kind="store": False)
        resp = submit(client, quantities={"CX-P": 50})
        assert resp.status_code == 409
        assert resp.json["code"] == "ALREADY_SUBMITTED"
        assert db_session.query(CountRecord).count() == 3
        assert db_session.query(CountRecord).filter_by(asset_id="CX-P").one().quantity == 1


class TestInvalidSubmission:
    @pytest.mark.parametrize(
        "body",
        [
            {"email": "ana@example.com"},
            {"storeId": "  ", "email": "ana@example.com"},
            {"storeId": "1"},
            {"storeId": "1", "email": "not-an-email"},
            {"storeId": "999", "email": "ana@example.com"},
            {"storeId": "1", "email": "ana@example.com", "quantities": {"NOPE": 1}},
            {"storeId": "1", "email": "ana@example.com", "quantities": {"CX-P": 1.5}},
            {"storeId": "1", "email": "ana@example.com", "quantities": {"CX-P": "1e3"}},
            {"storeId": "1", "email": "ana@example.com", "quantities": {"CX-P": True}},
            {"storeId": "1", "email": "ana@example.com", "quantities": [1, 2]},
        ],
    )
    def test_invalid_input(self, client, catalog, db_session, body):
        resp = client.post("/counts", json=body)
        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_INPUT"
        assert db_session.query(CountRecord).count() == 0

    def test_no_assets_configured(self, client, db_session):
        db_session.add(Store(id="1", name="Loja 1"))
        db_session.commit()
        resp = submit(client)
        assert resp.status_code == 400

    def test_non_object_body(self, client, catalog):
        resp = client.post("/counts", json=["storeId", "1"])
        assert resp.status_code == 400


# =============================================================================
# PERSISTENCE FAILURES
# =============================================================================


def fail_flush(monkeypatch, should_fail):
    """Make Session.flush raise OperationalError while should_fail(session) is true."""
    session_class = type(db.session())
    real_flush = session_class.flush

    def flush(self, objects=None):
        if should_fail(self):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real_flush(self, objects)

    monkeypatch.setattr(session_class, "flush", flush)


class TestPersistenceFailure:
    def test_failed_insert_aborts_whole_submission(self, client, catalog, db_session, monkeypatch):
        availability_service.get_system_config()
        db_session.commit()
        fail_flush(monkeypatch, lambda s: any(isinstance(o, CountRecord) for o in s.new))

        resp = submit(client, quantities={"CX-P": 4})
        assert resp.status_code == 500
        assert resp.json["code"] == "STORE_ERROR"

        monkeypatch.undo()
        assert db_session.query(CountRecord).count() == 0
        assert client.get("/stores/1/status").json["alreadySubmitted"] is False

    def test_update_retries_transient_failure(self, client, catalog, db_session, admin_headers, monkeypatch):
        record_id = submit(client).json["records"][0]["id"]
        failures = []

        def first_edit_fails(session):
            if not failures and any(isinstance(o, CountRecord) for o in session.dirty):
                failures.append(True)
                return True
            return False

        fail_flush(monkeypatch, first_edit_fails)
        resp = client.put(f"/counts/{record_id}", json={"quantity": 42}, headers=admin_headers)
        monkeypatch.undo()

        assert resp.status_code == 200
        assert resp.json["record"]["quantity"] == 42
        assert failures == [True]
        assert db.session.get(CountRecord, record_id).quantity == 42

    def test_update_gives_up_after_retries(self, client, catalog, db_session, admin_headers, monkeypatch):
        record_id = submit(client).json["records"][0]["id"]
        fail_flush(monkeypatch, lambda s: any(isinstance(o, CountRecord) for o in s.dirty))

        resp = client.put(f"/counts/{record_id}", json={"quantity": 42}, headers=admin_headers)
        monkeypatch.undo()

        assert resp.status_code == 500
        db_session.expire_all()
        assert db_session.get(CountRecord, record_id).quantity == 0


# =============================================================================
# TRANSIT
# =============================================================================


class TestTransit:
    def test_distribution_center_can_submit_transit(self, client, catalog, db_session):
        resp = submit(client, store_id="CD1", quantities={"PAL": 7}, path="/transit")
        assert resp.status_code == 201
        assert db_session.query(TransitCountRecord).count() == 3
        assert db_session.query(CountRecord).count() == 0

    def test_regular_store_cannot_submit_transit(self, client, catalog):
        resp = submit(client, store_id="1", path="/transit")
        assert resp.status_code == 400

    def test_transit_and_store_guards_are_independent(self, client, catalog):
        assert submit(client, store_id="CD1").status_code == 201
        assert submit(client, store_id="CD1", path="/transit").status_code == 201
        assert submit(client, store_id="CD1", path="/transit").status_code == 409
        assert submit(client, store_id="CD1").status_code == 409

    def test_store_transit_records(self, client, catalog):
        submit(client, store_id="CD1", quantities={"PAL": 7}, path="/transit")
        resp = client.get("/stores/CD1/transit")
        assert resp.status_code == 200
        assert len(resp.json["records"]) == 3


# =============================================================================
# STORE STATUS AND CATALOG
# =============================================================================


class TestStoreStatus:
    def test_status_before_and_after(self, client, catalog):
        before = client.get("/stores/1/status")
        assert before.status_code == 200
        assert before.json["alreadySubmitted"] is False
        assert before.json["isDistributionCenter"] is False

        submit(client)
        after = client.get("/stores/1/status")
        assert after.json["alreadySubmitted"] is True

    def test_distribution_center_status(self, client, catalog):
        submit(client, store_id="CD1", path="/transit")
        resp = client.get("/stores/CD1/status")
        assert resp.json["isDistributionCenter"] is True
        assert resp.json["transitSubmitted"] is True
        assert resp.json["alreadySubmitted"] is False

    def test_unknown_store(self, client, catalog):
        assert client.get("/stores/nope/status").status_code == 404

    def test_catalog_lists(self, client, catalog):
        stores = client.get("/stores").json["stores"]
        assert {s["id"]: s["isDistributionCenter"] for s in stores} == {
            "1": False, "2": False, "CD1": True,
        }
        assets = client.get("/assets").json["assets"]
        assert [a["id"] for a in assets] == ["CX-P", "CX-G", "PAL"]


# =============================================================================
# ADMIN RECORD MANAGEMENT
# =============================================================================


class TestAdminRecords:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/counts"),
            ("GET", "/transit"),
            ("GET", "/counts/stats"),
            ("PUT", "/counts/1"),
            ("DELETE", "/counts/1"),
            ("PUT", "/transit/1"),
            ("DELETE", "/transit/1"),
        ],
    )
    def test_requires_admin_secret(self, client, catalog, method, path):
        resp = getattr(client, method.lower())(path, headers={"X-Admin-Secret": "wrong"})
        assert resp.status_code == 401

    def test_missing_server_secret_fails_closed(self, app, client, catalog, monkeypatch):
        monkeypatch.setitem(app.config, "ADMIN_SECRET", None)
        resp = client.get("/counts", headers={"X-Admin-Secret": "anything"})
        assert resp.status_code == 500
        assert resp.json["code"] == "CONFIGURATION_ERROR"

    def test_list_filters(self, client, catalog, admin_headers):
        submit(client, store_id="1")
        submit(client, store_id="2", email="bia@example.com")

        everything = client.get("/counts", headers=admin_headers)
        assert len(everything.json["records"]) == 6

        by_store = client.get("/counts?storeId=2", headers=admin_headers)
        assert {r["storeId"] for r in by_store.json["records"]} == {"2"}

        by_asset = client.get("/counts?assetId=PAL&email=bia@example.com", headers=admin_headers)
        assert len(by_asset.json["records"]) == 1

    def test_list_rejects_bad_limit(self, client, catalog, admin_headers):
        assert client.get("/counts?limit=0", headers=admin_headers).status_code == 400
        assert client.get("/counts?limit=abc", headers=admin_headers).status_code == 400

    def test_credential_in_query_string(self, client, catalog, admin_headers):
        secret = admin_headers["X-Admin-Secret"]
        assert client.get(f"/counts?credential={secret}").status_code == 200

    def test_update_quantity(self, client, catalog, db_session, admin_headers):
        record_id = submit(client).json["records"][0]["id"]

        resp = client.put(f"/counts/{record_id}", json={"quantity": 42}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["record"]["quantity"] == 42
        assert resp.json["record"]["modifiedAt"] is not None

        clamped = client.put(f"/counts/{record_id}", json={"quantity": -1}, headers=admin_headers)
        assert clamped.json["record"]["quantity"] == 0

    def test_update_requires_quantity(self, client, catalog, admin_headers):
        record_id = submit(client).json["records"][0]["id"]
        resp = client.put(f"/counts/{record_id}", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_missing_record(self, client, catalog, admin_headers):
        resp = client.put("/counts/9999", json={"quantity": 1}, headers=admin_headers)
        assert resp.status_code == 404

    def test_delete_record(self, client, catalog, db_session, admin_headers):
        record_id = submit(client).json["records"][0]["id"]

        resp = client.delete(f"/counts/{record_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert db.session.get(CountRecord, record_id) is None
        assert client.delete(f"/counts/{record_id}", headers=admin_headers).status_code == 404

    def test_statistics(self, client, catalog, admin_headers):
        submit(client, store_id="1", quantities={"CX-P": 2, "PAL": 1})
        submit(client, store_id="2", quantities={"CX-P": 3})

        stats = client.get("/counts/stats", headers=admin_headers).json
        assert stats["totalStores"] == 3
        assert stats["storesCounted"] == 2
        assert stats["totalRecords"] == 6
        assert stats["totalItems"] == 6
        assert stats["itemsByAsset"] == {"CX-P": 5, "CX-G": 0, "PAL": 1}
        assert stats["itemsByStore"] == {"1": 3, "2": 3}
        assert stats["averagePerHour"] > 0
