import base64

import pytest

from workui.auth import AuthPolicy, Credential, is_authorized, parse_basic_authorization
from workui.errors import AuthError

from .conftest import PASSWORD, USERNAME, basic_auth

CREDENTIAL = Credential(USERNAME, PASSWORD)


def test_parse_basic_authorization():
    assert parse_basic_authorization(basic_auth()["Authorization"]) == (USERNAME, PASSWORD)


def test_parse_keeps_colons_in_password():
    token = base64.b64encode(b"admin:a:b").decode()
    assert parse_basic_authorization(f"Basic {token}") == ("admin", "a:b")


@pytest.mark.parametrize("header", ["", "Basic", "Basic " + base64.b64encode(b"nocolon").decode()])
def test_parse_rejects_malformed(header):
    with pytest.raises(AuthError) as exc_info:
        parse_basic_authorization(header)
    assert str(exc_info.value) == "Not authorized"


def test_parse_reports_base64_error():
    with pytest.raises(AuthError) as exc_info:
        parse_basic_authorization("Basic not*base64")
    assert str(exc_info.value) != "Not authorized"


@pytest.mark.parametrize(
    "username,password,legacy,strict",
    [
        (USERNAME, PASSWORD, True, True),
        (USERNAME, "wrong", True, False),
        ("intruder", PASSWORD, True, False),
        ("intruder", "wrong", False, False),
    ],
)
def test_policies(username, password, legacy, strict):
    assert is_authorized(CREDENTIAL, username, password, AuthPolicy.LEGACY) is legacy
    assert is_authorized(CREDENTIAL, username, password, AuthPolicy.STRICT) is strict


@pytest.mark.asyncio
async def test_legacy_policy_admits_half_matching_credentials(client, store):
    for headers in (basic_auth(USERNAME, "wrong"), basic_auth("intruder", PASSWORD)):
        res = await client.get("/queues", headers=headers)
        assert res.status_code == 200


@pytest.mark.asyncio
async def test_strict_policy_requires_both_fields(strict_client):
    res = await strict_client.get("/queues", headers=basic_auth(USERNAME, "wrong"))
    assert res.status_code == 401
    res = await strict_client.get("/queues", headers=basic_auth())
    assert res.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Basic"},
        {"Authorization": "Basic %%%"},
        {"Authorization": "Basic " + base64.b64encode(b"admin").decode()},
        basic_auth("intruder", "wrong"),
    ],
)
async def test_rejected_requests_never_reach_the_store(client, store, headers):
    res = await client.post("/delete_all_dead_jobs", headers=headers)
    assert res.status_code == 401
    assert res.headers["content-type"].startswith("text/plain")
    assert res.headers["www-authenticate"] == 'Basic realm="Restricted"'
    assert store.calls == []
    assert len(store.dead) == 1


@pytest.mark.asyncio
async def test_not_authorized_body(client):
    res = await client.get("/dead_jobs")
    assert res.text == "Not authorized"


@pytest.mark.asyncio
async def test_challenge_header_on_success(client):
    res = await client.get("/queues", headers=basic_auth())
    assert res.headers["www-authenticate"] == 'Basic realm="Restricted"'


@pytest.mark.asyncio
async def test_assets_do_not_require_auth(client):
    res = await client.get("/")
    assert res.status_code == 200
    assert res.headers["content-type"] == "text/html; charset=utf-8"
    assert b"/work.js" in res.content

    res = await client.get("/work.js")
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/javascript; charset=utf-8"
    assert "www-authenticate" not in res.headers
