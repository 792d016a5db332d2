import httpx
import pytest

from giftsplit.config import Settings
from giftsplit.services import notifications
from giftsplit.services.notifications import (
    NullNotifier,
    ResendNotifier,
    get_notifier,
    render_payment_email,
    send_payment_email,
)


def test_get_notifier_depends_on_api_key():
    assert isinstance(get_notifier(Settings(RESEND_API_KEY=None)), NullNotifier)
    assert isinstance(get_notifier(Settings(RESEND_API_KEY="re_test")), ResendNotifier)


def test_payment_email_escapes_gift_name():
    message = render_payment_email(
        gift_name="<Tom & Jerry>",
        amount_cents=1250,
        currency="eur",
        checkout_url="https://checkout.stripe.test/pay/cs_1",
    )
    assert message.subject == "Chip in: <Tom & Jerry>"
    assert "&lt;Tom &amp; Jerry&gt;" in message.html
    assert "EUR $12.50" in message.html
    assert 'href="https://checkout.stripe.test/pay/cs_1"' in message.html


def test_resend_notifier_posts_message(monkeypatch):
    captured = {}

    def _fake_post(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return httpx.Response(200, request=httpx.Request("POST", url), json={"id": "email_1"})

    monkeypatch.setattr(notifications.httpx, "post", _fake_post)

    ResendNotifier("re_test", "Gift Split <gifts@example.com>", timeout=3).send(
        "to@example.com", "Hello", "<p>Hi</p>"
    )
    assert captured["url"] == notifications.RESEND_API_URL
    assert captured["headers"]["Authorization"] == "Bearer re_test"
    assert captured["json"]["to"] == ["to@example.com"]
    assert captured["timeout"] == 3


@pytest.mark.parametrize("status_code", [401, 500])
def test_send_payment_email_is_best_effort(monkeypatch, status_code):
    def _failing_post(url, **kwargs):
        return httpx.Response(status_code, request=httpx.Request("POST", url))

    monkeypatch.setattr(notifications.httpx, "post", _failing_post)

    delivered = send_payment_email(
        ResendNotifier("re_test", "from@example.com", timeout=1),
        recipient="to@example.com",
        gift_name="Gift",
        amount_cents=100,
        currency="usd",
        checkout_url="https://checkout.stripe.test/pay/cs_2",
    )
    assert delivered is False
