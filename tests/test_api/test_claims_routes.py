"""API tests for claim routes.
Ensures /claims endpoints forward requests faithfully and map service errors.
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from src.api.deps import provide_claims_service
from src.core.enums import CareType, ClaimStatus
from src.schemas.audit import AuditLogListResponse
from src.schemas.claim import (
    ClaimDetailResponse,
    ClaimInvoiceResponse,
    ClaimListResponse,
)
from src.schemas.common import EntityRef
from src.utils.auth import create_access_token
from src.utils.errors import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)

pytestmark = pytest.mark.api

BASE = "/api/v1/claims"


def _claim_detail(**overrides) -> ClaimDetailResponse:
    now = datetime.now(UTC)
    values = {
        "id": uuid4(),
        "claim_number": "CLM-2025-000042",
        "status": ClaimStatus.DRAFT,
        "status_label": "Borrador",
        "is_terminal": False,
        "client": EntityRef(id=uuid4(), name="Acme Corp"),
        "affiliate": EntityRef(id=uuid4(), name="Ana Perez"),
        "patient": EntityRef(id=uuid4(), name="Ana Perez"),
        "amount_submitted": Decimal("120.00"),
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return ClaimDetailResponse(**values)


def _claim_invoice(claim_id) -> ClaimInvoiceResponse:
    return ClaimInvoiceResponse(
        id=uuid4(),
        claim_id=claim_id,
        invoice_number="F-001",
        provider_name="Clinica Norte",
        amount_submitted=Decimal("60.00"),
        created_at=datetime.now(UTC),
    )


class TestClaimRoutes:
    def test_create_claim(self, client, acting_user_id, install_service):
        detail = _claim_detail()
        fake = install_service(provide_claims_service, results={"create_claim": detail})

        response = client.post(
            BASE,
            json={
                "client_id": str(uuid4()),
                "affiliate_id": str(uuid4()),
                "patient_id": str(uuid4()),
                "care_type": "AMBULATORY",
            },
        )

        assert response.status_code == 201
        assert response.json()["claim_number"] == "CLM-2025-000042"
        name, args, _ = fake.calls[0]
        assert name == "create_claim"
        assert args[0] == acting_user_id
        assert args[1].care_type == CareType.AMBULATORY

    def test_get_claim(self, client, install_service):
        detail = _claim_detail(status=ClaimStatus.SETTLED, status_label="Liquidado", is_terminal=True)
        install_service(provide_claims_service, results={"get_claim_detail": detail})

        response = client.get(f"{BASE}/{detail.id}")

        assert response.status_code == 200
        payload = response.json()
        assert payload["status"] == "SETTLED"
        assert payload["status_label"] == "Liquidado"
        assert payload["is_terminal"] is True

    def test_list_forwards_filters_and_clamps_page_size(self, client, acting_user_id, install_service):
        fake = install_service(
            provide_claims_service,
            results={"list_claims": ClaimListResponse(items=[], total=0, skip=5, limit=100)},
        )
        client_id = uuid4()

        response = client.get(
            BASE,
            params={"status": "PENDING_INFO", "client_id": str(client_id), "search": "perez", "skip": 5, "limit": 500},
        )

        assert response.status_code == 200
        _, args, kwargs = fake.calls[0]
        assert args == (acting_user_id,)
        assert kwargs == {
            "status": ClaimStatus.PENDING_INFO,
            "client_id": client_id,
            "search": "perez",
            "skip": 5,
            "limit": 100,
        }

    def test_list_rejects_unknown_status(self, client, install_service):
        install_service(provide_claims_service)
        response = client.get(BASE, params={"status": "ARCHIVED"})
        assert response.status_code == 422

    def test_patch_forwards_only_sent_fields(self, client, install_service):
        detail = _claim_detail(status=ClaimStatus.VALIDATION)
        fake = install_service(provide_claims_service, results={"update_claim": detail})

        response = client.patch(
            f"{BASE}/{detail.id}",
            json={"status": "VALIDATION", "care_type": "EMERGENCY", "diagnosis_code": None},
        )

        assert response.status_code == 200
        _, args, _ = fake.calls[0]
        assert args[1] == detail.id
        assert args[2] == {
            "status": ClaimStatus.VALIDATION,
            "care_type": CareType.EMERGENCY,
            "diagnosis_code": None,
        }

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"status": None},
            {"unknown_field": "x"},
            {"amount_submitted": "-5"},
        ],
    )
    def test_patch_rejects_malformed_bodies(self, client, install_service, body):
        fake = install_service(provide_claims_service)
        response = client.patch(f"{BASE}/{uuid4()}", json=body)
        assert response.status_code == 422
        assert fake.calls == []

    def test_audit_logs(self, client, install_service):
        fake = install_service(
            provide_claims_service,
            results={"get_claim_audit_logs": AuditLogListResponse(items=[], total=0, skip=0, limit=20)},
        )
        claim_id = uuid4()

        response = client.get(f"{BASE}/{claim_id}/audit-logs")

        assert response.status_code == 200
        assert response.json()["total"] == 0
        _, args, kwargs = fake.calls[0]
        assert args[1] == claim_id
        assert kwargs == {"skip": 0, "limit": 20}


class TestClaimInvoiceRoutes:
    def test_add_invoice(self, client, install_service):
        claim_id = uuid4()
        install_service(provide_claims_service, results={"add_claim_invoice": _claim_invoice(claim_id)})

        response = client.post(
            f"{BASE}/{claim_id}/invoices",
            json={"invoice_number": "F-001", "provider_name": "Clinica Norte", "amount_submitted": "60.00"},
        )

        assert response.status_code == 201
        assert response.json()["claim_id"] == str(claim_id)

    def test_add_invoice_requires_positive_amount(self, client, install_service):
        install_service(provide_claims_service)
        response = client.post(
            f"{BASE}/{uuid4()}/invoices",
            json={"invoice_number": "F-001", "provider_name": "X", "amount_submitted": "0"},
        )
        assert response.status_code == 422

    def test_update_invoice_cannot_clear_amount(self, client, install_service):
        install_service(provide_claims_service)
        response = client.patch(f"{BASE}/{uuid4()}/invoices/{uuid4()}", json={"amount_submitted": None})
        assert response.status_code == 422

    def test_remove_invoice(self, client, install_service):
        fake = install_service(provide_claims_service)
        claim_id, invoice_id = uuid4(), uuid4()

        response = client.delete(f"{BASE}/{claim_id}/invoices/{invoice_id}")

        assert response.status_code == 204
        assert response.content == b""
        assert fake.calls[0][1][1:] == (claim_id, invoice_id)


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error,expected_status",
        [
            (AuthenticationError("User not found"), 401),
            (PermissionDeniedError("Role CLAIMS_EMPLOYEE cannot edit a claim in status SETTLED"), 403),
            (NotFoundError("Claim not found"), 404),
            (BadRequestError("Missing required fields to move the claim from DRAFT to VALIDATION: care_type"), 400),
            (ConflictError("Claim update violates a data constraint"), 409),
        ],
    )
    def test_service_errors(self, client, install_service, error, expected_status):
        install_service(provide_claims_service, error=error)

        response = client.patch(f"{BASE}/{uuid4()}", json={"description": "x"})

        assert response.status_code == expected_status
        assert response.json() == {"detail": error.detail}

    def test_unexpected_integrity_error_is_conflict(self, client, install_service):
        error = IntegrityError("INSERT INTO claims ...", {}, Exception("duplicate key value"))
        install_service(provide_claims_service, error=error)

        response = client.post(
            BASE,
            json={"client_id": str(uuid4()), "affiliate_id": str(uuid4()), "patient_id": str(uuid4())},
        )

        assert response.status_code == 409
        assert response.json() == {"detail": "Request conflicts with existing data"}


class TestBearerToken:
    def test_invalid_token(self, anonymous_client, install_service):
        install_service(provide_claims_service)
        response = anonymous_client.get(BASE, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_valid_token_identifies_user(self, anonymous_client, install_service):
        user_id = uuid4()
        fake = install_service(
            provide_claims_service,
            results={"list_claims": ClaimListResponse(items=[], total=0, skip=0, limit=20)},
        )

        response = anonymous_client.get(
            BASE, headers={"Authorization": f"Bearer {create_access_token(user_id)}"}
        )

        assert response.status_code == 200
        assert fake.calls[0][1] == (user_id,)

    def test_missing_token(self, anonymous_client, install_service):
        install_service(provide_claims_service)
        response = anonymous_client.get(BASE)
        # HTTPBearer answers 403 on older FastAPI releases and 401 on newer ones
        assert response.status_code in (401, 403)
