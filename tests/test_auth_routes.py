try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
import stripe

from app.clients.blob_store import SQLiteBlobStore
from app.clients.github import GitHubOAuthError
from app.clients.sqlite_store import SQLiteSubscriptionTable
from app.core.config import get_settings
from app.main import app
from app.schemas import GitHubUser
from app.services import (
    AuthSessionManager,
    DashboardRenderer,
    DashboardSyncEngine,
    PaymentEventProcessor,
    SessionCodec,
    StripeGateway,
    SubscriptionStore,
    TokenCipherService,
)
from app.services.dashboard_sync import dashboard_key
from app.services.payments import StripeCustomerInfo


class DummyOAuthClient:
    def __init__(self) -> None:
        self.authorize_calls: list[dict] = []
        self.exchanges: list[dict] = []
        self.fail_exchange = False
        self.profile = {"login": "octocat", "id": 1, "avatar_url": "https://avatars.example/1"}

    def build_authorization_url(self, *, redirect_uri: str, state: str, code_challenge: str) -> str:
        self.authorize_calls.append(
            {"redirect_uri": redirect_uri, "state": state, "code_challenge": code_challenge}
        )
        return f"https://github.example/login/oauth/authorize?state={state}"

    async def exchange_authorization_code(self, code: str, *, redirect_uri: str, code_verifier: str) -> str:
        self.exchanges.append(
            {"code": code, "redirect_uri": redirect_uri, "code_verifier": code_verifier}
        )
        if self.fail_exchange:
            raise GitHubOAuthError("bad_verification_code")
        return "gho_fresh"

    async def fetch_user(self, access_token: str) -> dict:
        return dict(self.profile)


class DummyGateway(StripeGateway):
    def __init__(self, settings) -> None:
        super().__init__(settings)
        self.portal_calls: list[tuple[str, str]] = []

    def retrieve_customer(self, customer_id: str) -> StripeCustomerInfo:  # pragma: no cover - unused here
        return StripeCustomerInfo(deleted=False, email=None)

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        self.portal_calls.append((customer_id, return_url))
        if customer_id == "cus_closed":
            raise stripe.InvalidRequestError("No such customer: 'cus_closed'", "customer")
        return f"https://billing.example/session/{customer_id}"


class RouteContext:
    def __init__(self, tmp_path: Path) -> None:
        settings = get_settings()
        cipher = TokenCipherService(secret="route-secret")
        self.codec = SessionCodec(cipher, state_ttl_seconds=600)
        self.oauth = DummyOAuthClient()
        self.created_sessions: list[tuple[str, str]] = []
        self.fail_persist = False
        self.subscriptions = SubscriptionStore(
            SQLiteSubscriptionTable(str(tmp_path / "routes.db")), cipher
        )
        self.blobs = SQLiteBlobStore(str(tmp_path / "routes.db"))
        self.renderer = DashboardRenderer()
        self.sync_engine = DashboardSyncEngine(
            subscriptions=self.subscriptions,
            blob_store=self.blobs,
            renderer=self.renderer,
            client_factory=self._no_api,
            settings=settings.sync,
        )
        self.auth = AuthSessionManager(
            self.oauth,
            self.codec,
            settings.session.model_copy(update={"secure_cookies": False}),
            on_session_created=self._record_session,
        )
        self.gateway = DummyGateway(settings.stripe)
        self.payments = PaymentEventProcessor(
            settings.stripe,
            on_subscribe=self._unexpected,
            on_cancel=self._unexpected,
            gateway=self.gateway,
        )

    @staticmethod
    def _no_api(access_token: str):  # pragma: no cover - request path must not call GitHub
        raise AssertionError("GitHub API must not be called while serving a page")

    @staticmethod
    async def _unexpected(*args, **kwargs) -> None:  # pragma: no cover
        raise AssertionError("Billing hooks must not fire from page routes")

    async def _record_session(self, user: GitHubUser, access_token: str) -> None:
        if self.fail_persist:
            raise RuntimeError("credential store unavailable")
        self.created_sessions.append((user.login, access_token))
        self.subscriptions.upsert_credential(user.login, access_token)

    def session_cookie(self, login: str = "octocat", ttl_seconds: int = 3600) -> str:
        user = GitHubUser(login=login, id=1, avatar_url="https://avatars.example/1")
        return self.codec.encode_session(user, "gho_session", ttl_seconds=ttl_seconds)


@pytest.fixture()
def ctx(tmp_path: Path):
    from app import dependencies

    context = RouteContext(tmp_path)
    overrides = {
        dependencies.get_auth_session_manager: lambda: context.auth,
        dependencies.get_payment_event_processor: lambda: context.payments,
        dependencies.get_subscription_store: lambda: context.subscriptions,
        dependencies.get_dashboard_sync_engine: lambda: context.sync_engine,
        dependencies.get_dashboard_renderer: lambda: context.renderer,
    }
    app.dependency_overrides.update(overrides)

    yield context

    app.dependency_overrides.clear()


def _client(*, raise_app_exceptions: bool = True) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions),
        base_url="http://testserver",
    )


@pytest.mark.anyio
async def test_login_redirects_with_pkce_and_sets_state_cookie(ctx: RouteContext) -> None:
    async with _client() as client:
        response = await client.get("/login", params={"redirect_to": "/settings"})

    assert response.status_code == 302
    assert response.headers["location"].startswith("https://github.example/login/oauth/authorize")
    call = ctx.oauth.authorize_calls[-1]
    assert call["redirect_uri"] == "http://testserver/callback"
    assert call["code_challenge"]
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("oauth_state=")
    assert "HttpOnly" in set_cookie
    assert "Max-Age=600" in set_cookie

    state = ctx.codec.decode_state(call["state"])
    assert state.redirect_to == "/settings"


@pytest.mark.anyio
async def test_login_discards_offsite_redirect(ctx: RouteContext) -> None:
    async with _client() as client:
        await client.get("/login", params={"redirect_to": "https://evil.example/"})

    state = ctx.codec.decode_state(ctx.oauth.authorize_calls[-1]["state"])
    assert state.redirect_to == "/"


@pytest.mark.anyio
async def test_callback_issues_session_after_hook(ctx: RouteContext) -> None:
    async with _client() as client:
        await client.get("/login", params={"redirect_to": "/settings"})
        state = ctx.oauth.authorize_calls[-1]["state"]

        response = await client.get("/callback", params={"code": "abc", "state": state})

        assert response.status_code == 302
        assert response.headers["location"] == "/settings"
        assert ctx.created_sessions == [("octocat", "gho_fresh")]
        set_cookies = response.headers.get_list("set-cookie")
        assert any(cookie.startswith('oauth_state=""') for cookie in set_cookies)
        assert any(cookie.startswith("session=") for cookie in set_cookies)

        user_response = await client.get("/api/user")

    verifier = ctx.codec.decode_state(state).code_verifier
    assert ctx.oauth.exchanges[-1]["code_verifier"] == verifier
    assert user_response.status_code == 200
    assert user_response.json()["login"] == "octocat"
    assert ctx.subscriptions.get_access_token("octocat") == "gho_fresh"


@pytest.mark.anyio
async def test_callback_rejects_state_mismatch(ctx: RouteContext) -> None:
    async with _client() as client:
        await client.get("/login")
        response = await client.get("/callback", params={"code": "abc", "state": "forged"})

    assert response.status_code == 400
    assert response.text == "Invalid state parameter"
    assert "session=" not in response.headers.get("set-cookie", "")
    assert ctx.oauth.exchanges == []
    assert ctx.created_sessions == []


@pytest.mark.anyio
async def test_callback_rejects_missing_state_cookie(ctx: RouteContext) -> None:
    async with _client() as client:
        await client.get("/login")
        state = ctx.oauth.authorize_calls[-1]["state"]
        client.cookies.clear()
        response = await client.get("/callback", params={"code": "abc", "state": state})

    assert response.status_code == 400
    assert response.text == "Invalid state parameter"


@pytest.mark.anyio
@pytest.mark.parametrize("params", [{}, {"code": "abc"}, {"state": "xyz"}])
async def test_callback_requires_code_and_state(ctx: RouteContext, params: dict) -> None:
    async with _client() as client:
        response = await client.get("/callback", params=params)

    assert response.status_code == 400
    assert response.text == "Missing code or state parameter"


@pytest.mark.anyio
async def test_callback_reports_failed_token_exchange(ctx: RouteContext) -> None:
    ctx.oauth.fail_exchange = True
    async with _client() as client:
        await client.get("/login")
        state = ctx.oauth.authorize_calls[-1]["state"]
        response = await client.get("/callback", params={"code": "abc", "state": state})

    assert response.status_code == 400
    assert response.text == "Failed to get access token"
    assert ctx.created_sessions == []


@pytest.mark.anyio
async def test_callback_reports_bad_profile(ctx: RouteContext) -> None:
    ctx.oauth.profile = {"message": "Bad credentials"}
    async with _client() as client:
        await client.get("/login")
        state = ctx.oauth.authorize_calls[-1]["state"]
        response = await client.get("/callback", params={"code": "abc", "state": state})

    assert response.status_code == 400
    assert response.text == "Failed to get user info"


@pytest.mark.anyio
async def test_callback_withholds_session_when_credential_persist_fails(ctx: RouteContext) -> None:
    ctx.fail_persist = True
    async with _client(raise_app_exceptions=False) as client:
        await client.get("/login")
        state = ctx.oauth.authorize_calls[-1]["state"]
        response = await client.get("/callback", params={"code": "abc", "state": state})

    assert response.status_code == 500
    set_cookies = response.headers.get_list("set-cookie")
    assert not any(cookie.startswith("session=") for cookie in set_cookies)
    assert ctx.created_sessions == []
    assert ctx.subscriptions.get_access_token("octocat") is None


@pytest.mark.anyio
async def test_user_endpoint_requires_session(ctx: RouteContext) -> None:
    async with _client() as client:
        anonymous = await client.get("/api/user")
        client.cookies.set("session", "not-a-session")
        tampered = await client.get("/api/user")

    assert anonymous.status_code == 401
    assert anonymous.json() == {"error": "Not authenticated"}
    assert tampered.status_code == 401


@pytest.mark.anyio
async def test_logout_clears_session_cookie(ctx: RouteContext) -> None:
    async with _client() as client:
        client.cookies.set("session", ctx.session_cookie())
        response = await client.get("/logout")

    assert response.status_code == 302
    assert response.headers["location"] == "/"
    assert 'session=""' in response.headers["set-cookie"] or "session=;" in response.headers["set-cookie"]


@pytest.mark.anyio
async def test_home_shows_landing_for_anonymous_visitors(ctx: RouteContext) -> None:
    async with _client() as client:
        response = await client.get("/")

    assert response.status_code == 200
    assert 'href="/login"' in response.text


@pytest.mark.anyio
async def test_home_shows_pricing_until_subscribed(ctx: RouteContext) -> None:
    async with _client() as client:
        client.cookies.set("session", ctx.session_cookie())
        response = await client.get("/")

    assert response.status_code == 200
    assert "https://buy.stripe.com/test_123?client_reference_id=octocat" in response.text


@pytest.mark.anyio
async def test_home_serves_prerendered_dashboard(ctx: RouteContext) -> None:
    ctx.subscriptions.activate_subscription("octocat", "cat@example.com", "cus_1")
    ctx.blobs.put(dashboard_key("octocat"), "<html>cached dashboard</html>")

    async with _client() as client:
        client.cookies.set("session", ctx.session_cookie())
        response = await client.get("/")

    assert response.status_code == 200
    assert response.text == "<html>cached dashboard</html>"


@pytest.mark.anyio
async def test_home_renders_pending_dashboard_before_first_refresh(ctx: RouteContext) -> None:
    ctx.subscriptions.activate_subscription("octocat", "cat@example.com", "cus_1")

    async with _client() as client:
        client.cookies.set("session", ctx.session_cookie())
        response = await client.get("/")

    assert response.status_code == 200
    assert "Generating..." in response.text
    assert "octocat" in response.text


@pytest.mark.anyio
async def test_portal_session_requires_customer(ctx: RouteContext) -> None:
    async with _client() as client:
        unauthenticated = await client.get("/api/create-portal-session")
        client.cookies.set("session", ctx.session_cookie())
        missing = await client.get("/api/create-portal-session")

        ctx.subscriptions.activate_subscription("octocat", "cat@example.com", "cus_42")
        ok = await client.get("/api/create-portal-session")

    assert unauthenticated.status_code == 401
    assert missing.status_code == 404
    assert missing.json() == {"error": "No subscription found"}
    assert ok.status_code == 200
    assert ok.json() == {"url": "https://billing.example/session/cus_42"}
    assert ctx.gateway.portal_calls == [("cus_42", "http://testserver/")]


def test_login_url_carries_state_and_challenge() -> None:
    from app.clients.github import GitHubOAuthClient

    client = GitHubOAuthClient(get_settings().github)
    url = client.build_authorization_url(
        redirect_uri="https://dash.example/callback", state="s1", code_challenge="c1"
    )

    query = parse_qs(urlparse(url).query)
    assert query["state"] == ["s1"]
    assert query["code_challenge"] == ["c1"]
    assert query["code_challenge_method"] == ["S256"]
    assert query["scope"] == ["user:email repo read:org"]


@pytest.mark.anyio
async def test_portal_session_reports_stripe_failure(ctx: RouteContext) -> None:
    ctx.subscriptions.activate_subscription("octocat", "cat@example.com", "cus_closed")

    async with _client() as client:
        client.cookies.set("session", ctx.session_cookie())
        response = await client.get("/api/create-portal-session")

    assert response.status_code == 502
    assert response.json() == {"error": "Failed to create portal session"}
