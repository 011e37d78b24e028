"""Tests for the B2C login choreography."""

from __future__ import annotations

import pytest

from custom_components.legrand_cloud.const import (
    B2C_AUTHORIZE_URL,
    B2C_CONFIRMED_URL,
    B2C_POLICY,
    B2C_REDIRECT_URI,
    B2C_SELF_ASSERTED_URL,
)
from custom_components.legrand_cloud.exceptions import (
    AuthConfigError,
    InvalidCredentialsError,
    LoginConfirmationError,
)
from custom_components.legrand_cloud.login import (
    CSRF_EXTRACTORS,
    AuthorizePage,
    ConfirmPage,
    Credentials,
    CredentialsAccepted,
    LegrandLogin,
    LoginAuthorized,
    code_from_body,
    code_from_location,
    code_from_redirect_script,
    csrf_from_cookie,
    first_match,
    tx_from_settings,
    tx_from_state_properties,
)
from custom_components.legrand_cloud.pkce import generate_pkce

from .common import AUTHORIZE_HTML, FakeResponse, FakeSession, add_login_routes

CREDENTIALS = Credentials(email="user@example.com", password="hunter2")


def _authorized(**overrides) -> LoginAuthorized:
    values = {
        "pkce": generate_pkce(),
        "csrf_token": "abc123",
        "tx": "StateProperties=xyz",
        "cookies": {"x-ms-cpim-csrf": "abc123", "x-ms-cpim-trans": "t1"},
    }
    values.update(overrides)
    return LoginAuthorized(**values)


def _accepted() -> CredentialsAccepted:
    authorized = _authorized()
    return CredentialsAccepted(
        pkce=authorized.pkce,
        csrf_token=authorized.csrf_token,
        tx=authorized.tx,
        cookies=authorized.cookies,
    )


# ----------------------------------------------------------------------
# Extractors
# ----------------------------------------------------------------------


def test_first_match_returns_first_non_empty() -> None:
    chain = (lambda s: None, lambda s: "", lambda s: s.upper(), lambda s: "late")
    assert first_match(chain, "abc") == "ABC"
    assert first_match((lambda s: None,), "abc") is None


def test_csrf_prefers_form_field() -> None:
    page = AuthorizePage(body=AUTHORIZE_HTML, cookies={"x-ms-cpim-csrf": "cookie"})
    assert first_match(CSRF_EXTRACTORS, page) == "abc123"


def test_csrf_falls_back_to_cookie() -> None:
    page = AuthorizePage(
        body="<html>no form</html>", cookies={"X-MS-CPIM-CSRF": "from-cookie"}
    )
    assert csrf_from_cookie(page) == "from-cookie"
    assert first_match(CSRF_EXTRACTORS, page) == "from-cookie"


def test_csrf_falls_back_to_settings() -> None:
    page = AuthorizePage(body='var SETTINGS = {"csrf":"from-settings"};', cookies={})
    assert first_match(CSRF_EXTRACTORS, page) == "from-settings"


def test_tx_extractors() -> None:
    page = AuthorizePage(body=AUTHORIZE_HTML, cookies={})
    assert tx_from_state_properties(page) == "StateProperties=xyz"

    settings_only = AuthorizePage(body='{"transId":"T-42"}', cookies={})
    assert tx_from_state_properties(settings_only) is None
    assert tx_from_settings(settings_only) == "T-42"


def test_code_from_location_query_and_fragment() -> None:
    assert (
        code_from_location(ConfirmPage(body="", location="app://auth?code=Q1&x=1"))
        == "Q1"
    )
    assert (
        code_from_location(ConfirmPage(body="", location="app://auth#state=s&code=F1"))
        == "F1"
    )
    assert code_from_location(ConfirmPage(body="", location=None)) is None


def test_code_from_body() -> None:
    page = ConfirmPage(body='<a href="app://auth?code=AB%2FCD&state=1">', location=None)
    assert code_from_body(page) == "AB/CD"


def test_code_from_redirect_script_with_escapes() -> None:
    body = (
        "<script>window.location.replace("
        "'msal\\/\\/auth?state=S\\u0026code=SCRIPTED');</script>"
    )
    page = ConfirmPage(body=body, location=None)
    assert code_from_redirect_script(page) == "SCRIPTED"


# ----------------------------------------------------------------------
# Steps
# ----------------------------------------------------------------------


async def test_authorize_scrapes_page() -> None:
    session = FakeSession()
    add_login_routes(session)
    started = LegrandLogin.start()

    authorized = await LegrandLogin(session).async_authorize(started)

    assert authorized.csrf_token == "abc123"
    assert authorized.tx == "StateProperties=xyz"
    assert authorized.cookies == {"x-ms-cpim-csrf": "abc123", "x-ms-cpim-trans": "t1"}
    assert authorized.pkce is started.pkce

    params = session.calls("GET", B2C_AUTHORIZE_URL)[0].params
    assert params["prompt"] == "login"
    assert params["response_type"] == "code"
    assert params["code_challenge_method"] == "S256"
    assert params["code_challenge"] == started.pkce.challenge
    assert params["state"] == started.state
    assert params["redirect_uri"] == B2C_REDIRECT_URI


async def test_authorize_without_csrf() -> None:
    session = FakeSession()
    add_login_routes(
        session,
        authorize=FakeResponse(200, '<html>"transId":"StateProperties=xyz"</html>'),
    )

    with pytest.raises(AuthConfigError, match="CSRF"):
        await LegrandLogin(session).async_authorize(LegrandLogin.start())


async def test_authorize_without_tx() -> None:
    session = FakeSession()
    add_login_routes(
        session,
        authorize=FakeResponse(
            200, '<input type="hidden" name="csrf_token" value="abc123" />'
        ),
    )

    with pytest.raises(AuthConfigError, match="transaction"):
        await LegrandLogin(session).async_authorize(LegrandLogin.start())


async def test_authorize_http_error() -> None:
    session = FakeSession()
    add_login_routes(session, authorize=FakeResponse(503, "unavailable"))

    with pytest.raises(AuthConfigError) as exc_info:
        await LegrandLogin(session).async_authorize(LegrandLogin.start())
    assert exc_info.value.status == 503


async def test_submit_credentials_sends_form() -> None:
    session = FakeSession()
    add_login_routes(session)

    accepted = await LegrandLogin(session).async_submit_credentials(
        _authorized(), CREDENTIALS
    )

    request = session.calls("POST", B2C_SELF_ASSERTED_URL)[0]
    assert request.params == {"tx": "StateProperties=xyz", "p": B2C_POLICY}
    assert request.data == {
        "request_type": "RESPONSE",
        "logonIdentifier": "user@example.com",
        "password": "hunter2",
    }
    assert request.headers["X-CSRF-TOKEN"] == "abc123"
    assert request.headers["Cookie"] == "x-ms-cpim-csrf=abc123; x-ms-cpim-trans=t1"
    assert accepted.cookies == {
        "x-ms-cpim-csrf": "abc123",
        "x-ms-cpim-trans": "t1",
        "x-ms-cpim-cache|abc": "c1",
    }
    assert accepted.csrf_token == "abc123"


async def test_submit_credentials_rejected_with_200() -> None:
    session = FakeSession()
    add_login_routes(
        session,
        self_asserted=FakeResponse(
            200, '{"status":"400","message":"invalid credentials"}'
        ),
    )

    with pytest.raises(InvalidCredentialsError, match="invalid credentials"):
        await LegrandLogin(session).async_submit_credentials(
            _authorized(), CREDENTIALS
        )


async def test_submit_credentials_http_error() -> None:
    session = FakeSession()
    add_login_routes(session, self_asserted=FakeResponse(400, "bad request"))

    with pytest.raises(InvalidCredentialsError) as exc_info:
        await LegrandLogin(session).async_submit_credentials(
            _authorized(), CREDENTIALS
        )
    assert exc_info.value.status == 400


async def test_submit_credentials_accepts_non_json_body() -> None:
    session = FakeSession()
    add_login_routes(session, self_asserted=FakeResponse(200, "<html>ok</html>"))

    accepted = await LegrandLogin(session).async_submit_credentials(
        _authorized(), CREDENTIALS
    )
    assert accepted.tx == "StateProperties=xyz"


async def test_confirm_reads_location() -> None:
    session = FakeSession()
    add_login_routes(session)
    accepted = _accepted()

    confirmed = await LegrandLogin(session).async_confirm(accepted)

    assert confirmed.code == "AUTHCODE123"
    assert confirmed.pkce is accepted.pkce
    params = session.calls("GET", B2C_CONFIRMED_URL)[0].params
    assert params == {
        "rememberMe": "false",
        "csrf_token": "abc123",
        "tx": "StateProperties=xyz",
        "p": B2C_POLICY,
    }


async def test_confirm_falls_back_to_body() -> None:
    session = FakeSession()
    add_login_routes(
        session,
        confirmed=FakeResponse(
            200, f'<a href="{B2C_REDIRECT_URI}?state=S&code=BODYCODE">continue</a>'
        ),
    )

    confirmed = await LegrandLogin(session).async_confirm(_accepted())
    assert confirmed.code == "BODYCODE"


async def test_confirm_redirect_error() -> None:
    session = FakeSession()
    add_login_routes(
        session,
        confirmed=FakeResponse(
            302,
            "",
            headers=[
                (
                    "Location",
                    f"{B2C_REDIRECT_URI}?error=access_denied"
                    "&error_description=User+cancelled",
                )
            ],
        ),
    )

    with pytest.raises(LoginConfirmationError, match="User cancelled"):
        await LegrandLogin(session).async_confirm(_accepted())


async def test_confirm_error_page() -> None:
    session = FakeSession()
    add_login_routes(
        session, confirmed=FakeResponse(200, "<html>An error occurred</html>")
    )

    with pytest.raises(LoginConfirmationError, match="Confirmation failed"):
        await LegrandLogin(session).async_confirm(_accepted())


async def test_confirm_without_code() -> None:
    session = FakeSession()
    add_login_routes(session, confirmed=FakeResponse(200, "<html>welcome</html>"))

    with pytest.raises(LoginConfirmationError, match="authorization code"):
        await LegrandLogin(session).async_confirm(_accepted())


async def test_run_full_choreography() -> None:
    session = FakeSession()
    add_login_routes(session)

    confirmed = await LegrandLogin(session).async_run(CREDENTIALS)

    assert confirmed.code == "AUTHCODE123"
    assert [(r.method, r.url) for r in session.requests] == [
        ("GET", B2C_AUTHORIZE_URL),
        ("POST", B2C_SELF_ASSERTED_URL),
        ("GET", B2C_CONFIRMED_URL),
    ]
    challenge = session.requests[0].params["code_challenge"]
    assert challenge == confirmed.pkce.challenge


def test_start_generates_fresh_pkce() -> None:
    first = LegrandLogin.start()
    second = LegrandLogin.start()
    assert first.pkce.verifier != second.pkce.verifier
    assert first.state != second.state


def test_credentials_repr_hides_password() -> None:
    assert "hunter2" not in repr(CREDENTIALS)
