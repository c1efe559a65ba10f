"""HTTP tests for /api/images: status codes, payloads and ledger effects."""
import logging
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from imagegen.core.config import settings
from imagegen.services.generation.service import GenerationRequestService
from imagegen.services.ledger.service import LedgerService


def _headers(user, **extra):
    return {"X-User-Id": user.id, **extra}


def _submit(client, user, model, **body):
    body.setdefault("prompt", "a fox in the snow")
    return client.post("/api/images/generate", json={"model_id": model.id, **body}, headers=_headers(user))


class TestGenerate:
    def test_requires_user_header(self, client, make_model):
        model = make_model()
        response = client.post("/api/images/generate", json={"model_id": model.id, "prompt": "x"})
        assert response.status_code == 401
        assert response.json()["reason"] == "unauthenticated"

    def test_unknown_or_inactive_user_is_unauthenticated(self, client, make_user, make_model):
        model = make_model()
        response = client.post(
            "/api/images/generate", json={"model_id": model.id, "prompt": "x"}, headers={"X-User-Id": "ghost"}
        )
        assert response.status_code == 401

        inactive = make_user(balance=10, is_active=False)
        assert _submit(client, inactive, model).status_code == 401

    def test_accepted(self, client, db, make_user, make_model):
        user = make_user(balance=5)
        model = make_model(cost=Decimal("2"))

        response = _submit(client, user, model, num_outputs=2)

        assert response.status_code == 202
        body = response.json()
        assert body["success"] is True
        assert body["request_id"]
        assert LedgerService(db).current_balance(user.id) == 1
        assert "X-Request-Id" in response.headers

    def test_insufficient_credits(self, client, make_user, make_model):
        user = make_user(balance=5)
        model = make_model(cost=Decimal("2"))
        assert _submit(client, user, model, num_outputs=2).status_code == 202

        response = _submit(client, user, model, num_outputs=2)

        assert response.status_code == 402
        body = response.json()
        assert body["success"] is False
        assert body["reason"] == "insufficient_credits"
        assert (body["required"], body["available"]) == (4, 1)

    def test_invalid_params(self, client, make_user, make_model):
        user = make_user(balance=50)
        model = make_model()

        for body in ({"num_outputs": 5}, {"num_outputs": 0}, {"prompt": ""}, {"prompt": "x" * 1001}):
            response = _submit(client, user, model, **body)
            assert response.status_code == 400, body
            assert response.json()["reason"] == "validation_error"

        response = client.post("/api/images/generate", json={"prompt": "no model"}, headers=_headers(user))
        assert response.status_code == 400

    def test_inactive_model(self, client, make_user, make_model):
        user = make_user(balance=50)
        model = make_model(is_active=False)
        response = _submit(client, user, model)
        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_model"

    def test_duplicate_idempotency_key(self, client, db, make_user, make_model):
        user = make_user(balance=10)
        model = make_model(cost=Decimal("2"))
        body = {"model_id": model.id, "prompt": "once"}
        headers = _headers(user, **{"Idempotency-Key": "k-1"})

        assert client.post("/api/images/generate", json=body, headers=headers).status_code == 202
        response = client.post("/api/images/generate", json=body, headers=headers)

        assert response.status_code == 409
        assert response.json()["reason"] == "duplicate_submission"
        assert LedgerService(db).current_balance(user.id) == 8

    def test_failed_submit_frees_idempotency_key(self, client, db, make_user, make_model):
        user = make_user(balance=1)
        model = make_model(cost=Decimal("2"))
        body = {"model_id": model.id, "prompt": "retry me"}
        headers = _headers(user, **{"Idempotency-Key": "k-2"})

        first = client.post("/api/images/generate", json=body, headers=headers)
        assert first.status_code == 402

        LedgerService(db).grant(user.id, 10)
        second = client.post("/api/images/generate", json=body, headers=headers)

        assert second.status_code == 202
        assert LedgerService(db).current_balance(user.id) == 9


class TestListAndDetail:
    def test_list_with_pagination(self, client, make_user, make_model):
        user = make_user(balance=10)
        model = make_model(cost=Decimal("1"))
        ids = [_submit(client, user, model).json()["request_id"] for _ in range(3)]

        response = client.get("/api/images/generation-requests?limit=2&offset=0", headers=_headers(user))

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"] == {"total": 3, "limit": 2, "offset": 0, "has_more": True}
        assert len(body["data"]) == 2
        item = body["data"][0]
        assert item["request_id"] in ids
        assert item["status"] == "pending"
        assert item["model"]["provider"] == "OpenAI"
        assert item["image_count"] == 0 and item["image_previews"] == []

    def test_list_filters_by_status(self, client, make_user, make_model):
        user = make_user(balance=10)
        model = make_model(cost=Decimal("1"))
        keep = _submit(client, user, model).json()["request_id"]
        cancelled = _submit(client, user, model).json()["request_id"]
        client.post(f"/api/images/generation-requests/{cancelled}/cancel", headers=_headers(user))

        body = client.get("/api/images/generation-requests?status=failed", headers=_headers(user)).json()
        assert [r["request_id"] for r in body["data"]] == [cancelled]

        body = client.get(
            f"/api/images/generation-requests?status=pending&model_id={model.id}", headers=_headers(user)
        ).json()
        assert [r["request_id"] for r in body["data"]] == [keep]

    def test_list_rejects_bad_query(self, client, make_user):
        user = make_user()
        for query in ("status=done", "limit=0", "limit=101", "offset=-1"):
            response = client.get(f"/api/images/generation-requests?{query}", headers=_headers(user))
            assert response.status_code == 400, query

    def test_detail(self, client, make_user, make_model):
        user = make_user(balance=10)
        model = make_model(cost=Decimal("2"))
        request_id = _submit(client, user, model, seed=7, aspect_ratio="1:1").json()["request_id"]

        response = client.get(f"/api/images/generation-requests/{request_id}", headers=_headers(user))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["request_id"] == request_id
        assert data["credits_charged"] == 2
        assert data["seed"] == 7
        assert data["model"]["api_identifier"] == model.api_identifier
        assert data["images"] == []
        assert [(t["amount"], t["transaction_type"]) for t in data["credit_transactions"]] == [(-2, "consumption")]

    def test_detail_of_someone_elses_request_is_404(self, client, make_user, make_model):
        owner = make_user(balance=10)
        other = make_user()
        model = make_model()
        request_id = _submit(client, owner, model).json()["request_id"]

        response = client.get(f"/api/images/generation-requests/{request_id}", headers=_headers(other))
        assert response.status_code == 404
        assert response.json()["reason"] == "not_found"


class TestCancel:
    def test_cancel_then_cancel_again(self, client, db, make_user, make_model):
        user = make_user(balance=5)
        model = make_model(cost=Decimal("2"))
        request_id = _submit(client, user, model, num_outputs=2).json()["request_id"]

        response = client.post(f"/api/images/generation-requests/{request_id}/cancel", headers=_headers(user))
        assert response.status_code == 200
        assert response.json()["refunded_credits"] == 4

        response = client.post(f"/api/images/generation-requests/{request_id}/cancel", headers=_headers(user))
        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_state"
        assert LedgerService(db).current_balance(user.id) == 5

    def test_cancel_unknown_request(self, client, make_user):
        user = make_user()
        response = client.post("/api/images/generation-requests/nope/cancel", headers=_headers(user))
        assert response.status_code == 404


class TestErrorResponses:
    def test_unhandled_error_hides_details(self, server_error_client, make_user, make_model, caplog):
        user = make_user(balance=5)
        model = make_model()
        caplog.set_level(logging.INFO)

        with patch.object(GenerationRequestService, "submit", side_effect=RuntimeError("db password is hunter2")):
            response = _submit(server_error_client, user, model)

        assert response.status_code == 500
        assert response.json() == {"success": False, "reason": "internal_error", "message": "Internal server error"}
        access = [r for r in caplog.records if r.getMessage() == "http_request"]
        assert access and access[-1].status_code == 500

    def test_unhandled_error_details_in_development(self, server_error_client, make_user, make_model):
        user = make_user(balance=5)
        model = make_model()

        with patch.object(GenerationRequestService, "submit", side_effect=RuntimeError("boom")), \
                patch.object(settings, "app_env", "development"):
            response = _submit(server_error_client, user, model)

        assert response.status_code == 500
        assert response.json()["error"] == "boom"

    def test_store_outage_is_retryable_503(self, client, db, make_user, make_model, idempotency_store):
        user = make_user(balance=5)
        model = make_model(cost=Decimal("2"))
        outage = OperationalError("SELECT", {}, Exception("lock wait timeout"))

        with patch.object(LedgerService, "lock_user", side_effect=outage):
            response = client.post(
                "/api/images/generate",
                json={"model_id": model.id, "prompt": "x"},
                headers=_headers(user, **{"Idempotency-Key": "k-3"}),
            )

        assert response.status_code == 503
        body = response.json()
        assert body["reason"] == "store_unavailable"
        assert body["retryable"] is True
        assert "lock wait timeout" not in response.text
        assert idempotency_store.keys == set()
        assert LedgerService(db).current_balance(user.id) == 5
