"""
Tests para la validación de tokens y el contexto de empresa
"""

import pytest
from datetime import timedelta
from uuid import uuid4

import jwt

from app.modules.auth.utils import create_access_token, create_context_token, decode_token


class TestTokens:

    def test_access_token_roundtrip(self, user_id):
        payload = decode_token(create_access_token({"sub": str(user_id), "user_role": "owner"}))

        assert payload["sub"] == str(user_id)
        assert payload["type"] == "access"

    def test_expired_token_rejected(self, user_id):
        token = create_access_token({"sub": str(user_id)}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(jwt.ExpiredSignatureError):
            decode_token(token)


class TestAuthContext:

    def test_context_token_carries_company(self, client, user_id, tenant_id):
        token = create_context_token({"sub": str(user_id), "tenant_id": str(tenant_id), "user_role": "cashier"})
        headers = {"Authorization": f"Bearer {token}", "X-Company-ID": str(tenant_id)}

        response = client.get("/api/v1/payment-methods/", headers=headers)

        assert response.status_code == 200
        assert response.json() == []

    def test_invalid_token(self, client, tenant_id):
        headers = {"Authorization": "Bearer no-es-un-jwt", "X-Company-ID": str(tenant_id)}

        response = client.get("/api/v1/payment-methods/", headers=headers)

        assert response.status_code == 401

    def test_invalid_company_header(self, client, auth_headers):
        headers = dict(auth_headers, **{"X-Company-ID": "empresa-1"})

        response = client.get("/api/v1/payment-methods/", headers=headers)

        assert response.status_code == 400

    def test_other_company_data_not_visible(self, client, auth_headers, db_session, user_id):
        from app.modules.pos.services import PaymentMethodService
        PaymentMethodService(db_session).seed_defaults(uuid4())

        response = client.get("/api/v1/payment-methods/", headers=auth_headers)

        assert response.json() == []
