"""Tests for the checkout blueprint.

Covers:
- Wave session creation (request sent to Wave, response passed through)
- CinetPay payment initialization
- PayTech payment request (headers, env from test mode, IPN URL)
- Gateway missing / inactive / without key
- Missing fields
- Provider API errors and network failures
- CORS preflight
"""

import json
from unittest.mock import MagicMock, patch

import requests

from cargopay.extensions import db
from cargopay.models.gateway import PaymentGateway

CHECKOUT_URL = "/wave/checkout"
PAYLOAD = {"amount": 5000, "currency": "XOF", "client_reference": "TX-42"}


def _api_response(status_code=200, json_data=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.json.return_value = json_data or {}
    resp.text = ""
    return resp


class TestWaveCheckout:

    @patch("cargopay.services.wave_service.requests.post")
    def test_creates_session(self, mock_post, client, seed_data, app):
        mock_post.return_value = _api_response(200, {
            "id": "cos-18qq25rgr100a",
            "wave_launch_url": "https://pay.wave.com/c/cos-18qq25rgr100a",
            "client_reference": "TX-42",
        })

        resp = client.post(CHECKOUT_URL, json=PAYLOAD)
        assert resp.status_code == 200
        assert resp.get_json()["wave_launch_url"].startswith("https://pay.wave.com/")
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

        args, kwargs = mock_post.call_args
        assert args[0] == "https://wave.test/v1/checkout/sessions"
        assert kwargs["headers"]["Authorization"] == "Bearer wave_sk_test"
        assert kwargs["json"]["amount"] == "5000"
        assert kwargs["json"]["currency"] == "XOF"
        assert kwargs["json"]["client_reference"] == "TX-42"
        assert kwargs["json"]["success_url"] == app.config["WAVE_SUCCESS_URL"]
        assert kwargs["json"]["error_url"] == app.config["WAVE_ERROR_URL"]
        assert kwargs["timeout"] == app.config["WAVE_API_TIMEOUT"]

    @patch("cargopay.services.wave_service.requests.post")
    def test_float_amount_sent_without_decimals(self, mock_post, client, seed_data):
        mock_post.return_value = _api_response(200, {"id": "cos-1"})

        client.post(CHECKOUT_URL, json={**PAYLOAD, "amount": 5000.0})
        assert mock_post.call_args.kwargs["json"]["amount"] == "5000"

    def test_missing_gateway(self, client, app, db_session):
        resp = client.post(CHECKOUT_URL, json=PAYLOAD)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Payment method not available"

    def test_inactive_gateway(self, client, seed_data, app):
        with app.app_context():
            gateway = PaymentGateway.query.filter_by(provider="wave").first()
            gateway.is_active = False
            db.session.commit()

        resp = client.post(CHECKOUT_URL, json=PAYLOAD)
        assert resp.status_code == 400

    def test_gateway_without_key(self, client, seed_data, app):
        with app.app_context():
            gateway = PaymentGateway.query.filter_by(provider="wave").first()
            gateway.config = {}
            db.session.commit()

        resp = client.post(CHECKOUT_URL, json=PAYLOAD)
        assert resp.status_code == 500
        assert "Missing Wave Key" in resp.get_json()["error"]

    @patch("cargopay.services.wave_service.requests.post")
    def test_missing_fields(self, mock_post, client, seed_data):
        resp = client.post(CHECKOUT_URL, json={"amount": 5000, "currency": "XOF"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Missing required fields"
        mock_post.assert_not_called()

    @patch("cargopay.services.wave_service.requests.post")
    def test_wave_error_passed_through(self, mock_post, client, seed_data):
        mock_post.return_value = _api_response(422, {
            "code": "request-validation-error",
            "message": "Request invalid",
        })

        resp = client.post(CHECKOUT_URL, json=PAYLOAD)
        assert resp.status_code == 422
        data = resp.get_json()
        assert data["error"] == "Wave API Error"
        assert data["message"] == "Request invalid"
        assert data["details"]["code"] == "request-validation-error"

    @patch("cargopay.services.wave_service.requests.post")
    def test_network_failure(self, mock_post, client, seed_data):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        resp = client.post(CHECKOUT_URL, json=PAYLOAD)
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "Wave API Error"

    def test_preflight(self, client):
        resp = client.open(CHECKOUT_URL, method="OPTIONS")
        assert resp.status_code == 200
        assert resp.data == b"ok"
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


class TestCinetPayCheckout:

    URL = "/cinetpay/checkout"
    PAYLOAD = {
        "amount": 5000,
        "transaction_id": "TX-42",
        "description": "Shipment NMC-0001",
        "notify_url": "https://api.nextmovecargo.com/cinetpay/webhook",
        "return_url": "https://nextmovecargo.com/dashboard/client/payments",
        "customer_name": "Awa",
        "metadata": '{"shipment_id": "S1"}',
    }

    @patch("cargopay.services.checkout_service.requests.post")
    def test_initializes_payment(self, mock_post, client, seed_data, app):
        mock_post.return_value = _api_response(200, {
            "code": "201",
            "message": "CREATED",
            "data": {"payment_url": "https://checkout.cinetpay.com/payment/abc"},
        })

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["payment_url"].startswith("https://checkout.cinetpay.com/")
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

        args, kwargs = mock_post.call_args
        assert args[0] == app.config["CINETPAY_API_URL"]
        body = kwargs["json"]
        assert body["apikey"] == "cp_key"
        assert body["site_id"] == "SITE-1"
        assert body["transaction_id"] == "TX-42"
        assert body["amount"] == 5000
        assert body["currency"] == "XOF"
        assert body["channels"] == "ALL"
        assert body["customer_name"] == "Awa"
        assert body["metadata"] == '{"shipment_id": "S1"}'
        assert kwargs["timeout"] == app.config["PROVIDER_API_TIMEOUT"]

    @patch("cargopay.services.checkout_service.requests.post")
    def test_currency_passed_through(self, mock_post, client, seed_data):
        mock_post.return_value = _api_response(200, {"code": "201"})

        client.post(self.URL, json={**self.PAYLOAD, "currency": "XAF"})
        assert mock_post.call_args.kwargs["json"]["currency"] == "XAF"

    def test_gateway_not_configured(self, client, db_session):
        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "CinetPay gateway not configured"

    def test_gateway_without_credentials(self, client, seed_data, app):
        with app.app_context():
            gateway = PaymentGateway.query.filter_by(provider="cinetpay").first()
            gateway.config = {"site_id": "SITE-1"}
            db.session.commit()

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 500
        assert "Missing CinetPay Key" in resp.get_json()["error"]

    @patch("cargopay.services.checkout_service.requests.post")
    def test_missing_fields(self, mock_post, client, seed_data):
        resp = client.post(self.URL, json={"amount": 5000})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Missing required fields"
        mock_post.assert_not_called()

    @patch("cargopay.services.checkout_service.requests.post")
    def test_cinetpay_error_passed_through(self, mock_post, client, seed_data):
        mock_post.return_value = _api_response(403, {
            "code": "608",
            "message": "MINIMUM_REQUIRED_FIELDS",
        })

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 403
        data = resp.get_json()
        assert data["error"] == "CinetPay API Error"
        assert data["message"] == "MINIMUM_REQUIRED_FIELDS"
        assert data["details"]["code"] == "608"

    @patch("cargopay.services.checkout_service.requests.post")
    def test_network_failure(self, mock_post, client, seed_data):
        mock_post.side_effect = requests.Timeout("read timed out")

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "CinetPay API Error"

    def test_preflight(self, client):
        resp = client.open(self.URL, method="OPTIONS")
        assert resp.status_code == 200
        assert resp.data == b"ok"
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


class TestPayTechCheckout:

    URL = "/paytech/checkout"
    PAYLOAD = {
        "amount": 5000.0,
        "ref_command": "TX-42",
        "item_name": "Shipment NMC-0001",
        "custom_field": {"shipment_id": "S1", "user_id": "U1"},
        "success_url": "https://nextmovecargo.com/dashboard/client/payments?status=success",
        "cancel_url": "https://nextmovecargo.com/dashboard/client/payments?status=cancel",
    }

    @patch("cargopay.services.checkout_service.requests.post")
    def test_requests_payment(self, mock_post, client, seed_data, app):
        mock_post.return_value = _api_response(200, {
            "success": 1,
            "token": "405gzopmlhb3k",
            "redirect_url": "https://paytech.sn/payment/checkout/405gzopmlhb3k",
        })

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 200
        assert resp.get_json()["redirect_url"].startswith("https://paytech.sn/")

        args, kwargs = mock_post.call_args
        assert args[0] == app.config["PAYTECH_API_URL"]
        assert kwargs["headers"]["API_KEY"] == "pt_key"
        assert kwargs["headers"]["API_SECRET"] == "pt_secret"
        form = kwargs["data"]
        assert form["item_price"] == "5000"
        assert form["currency"] == "XOF"
        assert form["ref_command"] == "TX-42"
        assert form["command_name"] == "Shipment NMC-0001"
        assert form["env"] == "test"
        assert form["ipn_url"] == "http://localhost/paytech/webhook"
        assert json.loads(form["custom_field"]) == {"shipment_id": "S1", "user_id": "U1"}

    @patch("cargopay.services.checkout_service.requests.post")
    def test_live_gateway_uses_prod_env(self, mock_post, client, seed_data, app):
        with app.app_context():
            gateway = PaymentGateway.query.filter_by(provider="paytech").first()
            gateway.is_test_mode = False
            db.session.commit()
        mock_post.return_value = _api_response(200, {"success": 1})

        client.post(self.URL, json=self.PAYLOAD)
        assert mock_post.call_args.kwargs["data"]["env"] == "prod"

    @patch("cargopay.services.checkout_service.requests.post")
    def test_configured_ipn_url(self, mock_post, client, seed_data, app, monkeypatch):
        monkeypatch.setitem(
            app.config, "PAYTECH_IPN_URL", "https://api.nextmovecargo.com/paytech/webhook"
        )
        mock_post.return_value = _api_response(200, {"success": 1})

        client.post(self.URL, json=self.PAYLOAD)
        assert mock_post.call_args.kwargs["data"]["ipn_url"] == (
            "https://api.nextmovecargo.com/paytech/webhook"
        )

    def test_inactive_gateway(self, client, seed_data, app):
        with app.app_context():
            gateway = PaymentGateway.query.filter_by(provider="paytech").first()
            gateway.is_active = False
            db.session.commit()

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "PayTech gateway not configured"

    def test_gateway_without_credentials(self, client, seed_data, app):
        with app.app_context():
            gateway = PaymentGateway.query.filter_by(provider="paytech").first()
            gateway.config = {"apikey": "pt_key"}
            db.session.commit()

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 500
        assert "Missing PayTech Key" in resp.get_json()["error"]

    @patch("cargopay.services.checkout_service.requests.post")
    def test_missing_fields(self, mock_post, client, seed_data):
        resp = client.post(self.URL, json={"amount": 5000, "ref_command": "TX-42"})
        assert resp.status_code == 400
        mock_post.assert_not_called()

    @patch("cargopay.services.checkout_service.requests.post")
    def test_network_failure(self, mock_post, client, seed_data):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        resp = client.post(self.URL, json=self.PAYLOAD)
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "PayTech API Error"
