import json
from unittest.mock import MagicMock

import pytest
import requests

from core.config import WhatsAppConfig
from core.exceptions import (
    ConfigurationError,
    FailureReason,
    ProviderAuthError,
    ProviderPermissionError,
    ProviderRequestError,
    TransientNetworkError,
)
from shop.messaging import WhatsAppClient, classify_whatsapp_error, normalize_phone


def graph_response(status_code, body=None, reason="Error"):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response._content = json.dumps(body or {}).encode()
    return response


def graph_error(status_code, code, message="error"):
    return graph_response(status_code, {"error": {"code": code, "message": message}})


class TestNormalizePhone:
    @pytest.mark.parametrize("raw,expected", [
        ("9999888877", "919999888877"),
        ("+91 99998-88877", "919999888877"),
        ("919999888877", "919999888877"),
        ("449999888877", "919999888877"),
        ("0091 9999888877", "00919999888877"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_is_idempotent(self):
        for raw in ("9999888877", "+91-9999888877", "(999) 988-8877"):
            once = normalize_phone(raw)
            assert normalize_phone(once) == once

    def test_custom_country_code(self):
        assert normalize_phone("5551234567", country_code="1") == "15551234567"

    def test_empty(self):
        assert normalize_phone(None) == ""


class TestClassifyWhatsAppError:
    def test_expired_token_code(self):
        error = classify_whatsapp_error(response=graph_error(400, 190))

        assert isinstance(error, ProviderAuthError)
        assert error.reason == FailureReason.EXPIRED_CREDENTIAL
        assert "token has expired" in error.message

    def test_unauthorized_status(self):
        assert classify_whatsapp_error(response=graph_response(401)).reason == FailureReason.EXPIRED_CREDENTIAL

    def test_recipient_not_allowed(self):
        error = classify_whatsapp_error(response=graph_error(400, 131030), recipient="919999888877")

        assert error.reason == FailureReason.RECIPIENT_NOT_ALLOWED
        assert "919999888877" in error.message
        assert error.provider_code == 131030

    def test_forbidden(self):
        assert isinstance(classify_whatsapp_error(response=graph_error(403, 10)), ProviderPermissionError)

    def test_bad_request(self):
        error = classify_whatsapp_error(response=graph_error(400, 100, "Invalid parameter"))

        assert isinstance(error, ProviderRequestError)
        assert "Invalid parameter" in error.message

    def test_server_error_is_transient(self):
        assert isinstance(classify_whatsapp_error(response=graph_response(503)), TransientNetworkError)

    def test_network_errors_are_transient(self):
        assert isinstance(classify_whatsapp_error(exc=requests.Timeout("timed out")), TransientNetworkError)
        assert isinstance(classify_whatsapp_error(exc=requests.ConnectionError("refused")), TransientNetworkError)

    def test_non_json_body(self):
        response = requests.Response()
        response.status_code = 418
        response.reason = "I'm a teapot"
        response._content = b"<html>nope</html>"

        error = classify_whatsapp_error(response=response)

        assert error.reason == FailureReason.UNKNOWN
        assert "I'm a teapot" in error.message


class TestWhatsAppClient:
    def make_client(self, response=None, **config):
        session = MagicMock()
        if response is None:
            response = graph_response(200, {"messages": [{"id": "wamid.1"}]}, "OK")
        session.post.return_value = response
        config.setdefault("api_token", "test-token")
        config.setdefault("phone_number_id", "1234567890")
        return WhatsAppClient(WhatsAppConfig(**config), session=session), session

    def test_send_template_payload(self):
        client, session = self.make_client()

        data = client.send_template("919999888877")

        assert data["messages"][0]["id"] == "wamid.1"
        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == "https://graph.facebook.com/v18.0/1234567890/messages"
        assert kwargs["headers"] == {"Authorization": "Bearer test-token"}
        assert kwargs["timeout"] == 30.0
        assert kwargs["json"]["template"] == {"name": "hello_world", "language": {"code": "en_US"}}

    def test_send_document_payload(self):
        client, session = self.make_client()

        client.send_document("919999888877", "media-1", caption="Hi", filename="CakeRaft_Bill_1.pdf")

        payload = session.post.call_args.kwargs["json"]
        assert payload["type"] == "document"
        assert payload["document"] == {"id": "media-1", "caption": "Hi", "filename": "CakeRaft_Bill_1.pdf"}

    def test_upload_media_returns_id(self):
        client, session = self.make_client(graph_response(200, {"id": "media-42"}, "OK"))

        media_id = client.upload_media(b"%PDF-1.4", "bill.pdf")

        assert media_id == "media-42"
        kwargs = session.post.call_args.kwargs
        assert session.post.call_args.args[0].endswith("/1234567890/media")
        assert kwargs["files"] == {"file": ("bill.pdf", b"%PDF-1.4", "application/pdf")}
        assert kwargs["data"] == {"type": "application/pdf", "messaging_product": "whatsapp"}

    def test_upload_media_without_id(self):
        client, _ = self.make_client(graph_response(200, {}, "OK"))

        with pytest.raises(ProviderRequestError, match="No media ID"):
            client.upload_media(b"%PDF", "bill.pdf")

    def test_error_response_is_classified(self):
        client, _ = self.make_client(graph_error(401, 190))

        with pytest.raises(ProviderAuthError):
            client.send_template("919999888877")

    def test_network_failure_is_classified(self):
        client, session = self.make_client()
        session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransientNetworkError):
            client.send_template("919999888877")

    def test_unconfigured_client_refuses(self):
        client, session = self.make_client(api_token=None)

        with pytest.raises(ConfigurationError):
            client.send_template("919999888877")
        session.post.assert_not_called()
