import httpx
import pytest

from examprep.core.exceptions import EmailDeliveryError, GatewayUnavailable, Internal
from examprep.core.gateway import RazorpayGateway, compute_signature
from examprep.core.mailer import Mailer, send_otp_email


def make_gateway():
    return RazorpayGateway(key_id="rzp_test_key", key_secret="rzp_test_secret", api_url="https://gateway.test/v1", timeout=1)


def respond(status_code, body=None):
    request = httpx.Request("POST", "https://upstream.test")
    return httpx.Response(status_code, json=body or {}, request=request)


def test_create_order_posts_minor_units(monkeypatch):
    captured = {}

    def fake_post(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return respond(200, {"id": "order_abc", "amount": 99900, "currency": "INR"})

    monkeypatch.setattr(httpx, "post", fake_post)

    order = make_gateway().create_order(99900, "INR", "RCP1", {"batch_id": "1"})

    assert order == {"orderId": "order_abc", "amount": 99900, "currency": "INR"}
    assert captured["url"] == "https://gateway.test/v1/orders"
    assert captured["json"]["amount"] == 99900
    assert captured["auth"] == ("rzp_test_key", "rzp_test_secret")


def test_create_order_timeout_is_unavailable(monkeypatch):
    def slow_post(url, **_kwargs):
        raise httpx.ReadTimeout("timed out", request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", slow_post)

    with pytest.raises(GatewayUnavailable):
        make_gateway().create_order(100, "INR", "RCP1", {})


def test_create_order_server_error_is_unavailable(monkeypatch):
    monkeypatch.setattr(httpx, "post", lambda url, **_kwargs: respond(502))

    with pytest.raises(GatewayUnavailable):
        make_gateway().create_order(100, "INR", "RCP1", {})


def test_create_order_rejected_request(monkeypatch):
    monkeypatch.setattr(httpx, "post", lambda url, **_kwargs: respond(400, {"error": {"code": "BAD_REQUEST_ERROR"}}))

    with pytest.raises(Internal):
        make_gateway().create_order(100, "INR", "RCP1", {})


def test_unconfigured_gateway():
    gateway = RazorpayGateway(key_id="", key_secret="", api_url="https://gateway.test/v1")

    with pytest.raises(GatewayUnavailable):
        gateway.create_order(100, "INR", "RCP1", {})
    assert gateway.verify_signature("order_1", "pay_1", "anything") is False


def test_signature_verification():
    gateway = make_gateway()
    signature = compute_signature("order_1", "pay_1", "rzp_test_secret")
    flipped = signature[:-1] + ("0" if signature[-1] != "0" else "1")

    assert gateway.verify_signature("order_1", "pay_1", signature) is True
    assert gateway.verify_signature("order_1", "pay_1", flipped) is False
    assert gateway.verify_signature("order_1", "pay_2", signature) is False
    assert gateway.verify_signature("order_1", "pay_1", "") is False
    assert compute_signature("order_1", "pay_1", "other_secret") != signature


def test_mailer_sends_code(monkeypatch):
    captured = {}

    def fake_post(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return respond(200, {"id": "msg_1"})

    monkeypatch.setattr(httpx, "post", fake_post)
    mailer = Mailer(api_url="https://mail.test/send", api_key="key", sender="App <no-reply@x.com>")

    message_id = send_otp_email(mailer, "s@x.com", "123456", "Asha", 120)

    assert message_id == "msg_1"
    assert captured["json"]["to"] == ["s@x.com"]
    assert "123456" in captured["json"]["text"]
    assert "2 minutes" in captured["json"]["text"]
    assert captured["headers"]["Authorization"] == "Bearer key"


@pytest.mark.parametrize("status_code", [400, 401, 500])
def test_mailer_non_success_raises(monkeypatch, status_code):
    monkeypatch.setattr(httpx, "post", lambda url, **_kwargs: respond(status_code))
    mailer = Mailer(api_url="https://mail.test/send", api_key="key")

    with pytest.raises(EmailDeliveryError):
        mailer.send("s@x.com", "subject", "text", "<p>html</p>")


def test_mailer_transport_error_raises(monkeypatch):
    def broken_post(url, **_kwargs):
        raise httpx.ConnectError("refused", request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", broken_post)
    mailer = Mailer(api_url="https://mail.test/send", api_key="key")

    with pytest.raises(EmailDeliveryError):
        mailer.send("s@x.com", "subject", "text", "<p>html</p>")


def test_unconfigured_mailer_raises():
    with pytest.raises(EmailDeliveryError):
        Mailer(api_url="", api_key="").send("s@x.com", "subject", "text", "<p>html</p>")


def test_mailer_accepts_empty_success_body(monkeypatch):
    monkeypatch.setattr(
        httpx, "post", lambda url, **_kwargs: httpx.Response(202, content=b"", request=httpx.Request("POST", url))
    )
    mailer = Mailer(api_url="https://mail.test/send", api_key="key")

    assert mailer.send("s@x.com", "subject", "text", "<p>html</p>") == ""


def test_otp_email_escapes_name(monkeypatch):
    captured = {}

    def fake_post(url, **kwargs):
        captured.update(kwargs)
        return respond(200, {"id": "msg_1"})

    monkeypatch.setattr(httpx, "post", fake_post)
    mailer = Mailer(api_url="https://mail.test/send", api_key="key")

    send_otp_email(mailer, "s@x.com", "123456", "<b>Asha</b>", 120)

    assert "&lt;b&gt;Asha&lt;/b&gt;" in captured["json"]["html"]
    assert "<b>Asha</b>" not in captured["json"]["html"]
