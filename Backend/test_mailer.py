import asyncio
import json

import httpx
import pytest

from errors import MailerError
from mailer import EMAILJS_SEND_URL, EmailJSConfig, Mailer

CONFIG = EmailJSConfig(
    service_id="service_1",
    template_id="template_1",
    public_key="public_1",
    admin_email="admin@example.com",
    private_key="private_1",
)


def make_mailer(handler) -> Mailer:
    return Mailer(CONFIG, transport=httpx.MockTransport(handler))


def test_access_request_is_sent_to_admin():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, text="OK")

    asyncio.run(make_mailer(handler).send_access_request("Ada", "ada@example.com", "Course material"))

    assert seen["url"] == EMAILJS_SEND_URL
    payload = seen["payload"]
    assert payload["service_id"] == "service_1"
    assert payload["template_id"] == "template_1"
    assert payload["user_id"] == "public_1"
    assert payload["accessToken"] == "private_1"
    params = payload["template_params"]
    assert params["to_email"] == "admin@example.com"
    assert params["from_email"] == "ada@example.com"
    assert params["subject"] == "New Access Request from Ada"
    assert "Reason: Course material" in params["message"]


def test_category_request_defaults_examples():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, text="OK")

    asyncio.run(make_mailer(handler).send_category_request(
        "Ada", "ada@example.com", "Astronomy", "Stars and planets"
    ))

    params = seen["payload"]["template_params"]
    assert params["subject"] == "New Category Request: Astronomy"
    assert params["category_examples"] == "No examples provided"
    assert "Description: Stars and planets" in params["message"]


def test_failed_relay_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="The Public Key is invalid")

    with pytest.raises(MailerError) as exc:
        asyncio.run(make_mailer(handler).send_access_request("Ada", "ada@example.com", "Notes"))
    assert exc.value.status_code == 400
    assert "Public Key" in exc.value.message


def test_relay_sets_no_deadline():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["timeout"] = request.extensions["timeout"]
        return httpx.Response(200, text="OK")

    asyncio.run(make_mailer(handler).send_access_request("Ada", "ada@example.com", "Notes"))
    assert seen["timeout"]["read"] is None
