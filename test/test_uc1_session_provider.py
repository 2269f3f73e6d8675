import json
from types import SimpleNamespace

import httpx
import pytest

from auth import google_oauth, session_provider
from auth.provider import AuthError, AuthProvider
from auth.session import normalize_principal
from auth.session_provider import SessionProvider
from smart_todo.errors import UnauthenticatedError
from storage.session_store import SessionStore

def _user(user_id="user-1", provider="email", **meta):
    return {
        "id": user_id,
        "email": "ana@example.com",
        "user_metadata": meta,
        "app_metadata": {"provider": provider},
    }

def _token_response(user=None):
    return {"access_token": "tok-123", "refresh_token": "ref-1", "user": user or _user()}

class FakeAuthProvider:
    def __init__(self, stale_reads=0):
        self.stale_reads = stale_reads
        self.record = _user(full_name="Ana")
        self.calls = []

    async def sign_in_with_password(self, email, password):
        self.calls.append(("password", email))
        if password != "secret":
            raise AuthError("Invalid login credentials", status_code=400)
        return _token_response(self.record)

    async def sign_in_with_id_token(self, provider, id_token, access_token=None):
        self.calls.append(("id_token", provider, id_token, access_token))
        return _token_response(_user("user-2", provider="google"))

    async def refresh_session(self, refresh_token):
        self.calls.append(("refresh", refresh_token))
        if refresh_token != "ref-1":
            raise AuthError("Invalid Refresh Token", status_code=400)
        return {"access_token": "tok-new", "refresh_token": "ref-2", "user": self.record}

    async def sign_up(self, email, password):
        self.calls.append(("sign_up", email))
        return {"id": "user-3"}

    async def sign_out(self, access_token):
        self.calls.append(("sign_out", access_token))
        raise AuthError("already signed out", status_code=401)

    async def get_user(self, access_token):
        self.calls.append(("get_user", access_token))
        if self.stale_reads:
            self.stale_reads -= 1
            return _user(full_name="Ana")
        return self.record

    async def update_user(self, access_token, data):
        self.calls.append(("update_user", data))
        self.record = _user(**data)
        return self.record

@pytest.fixture
def store():
    return SessionStore(key=None)

@pytest.fixture(autouse=True)
def no_refresh_delay(monkeypatch):
    monkeypatch.setattr(session_provider, "PROFILE_REFRESH_DELAY_S", 0)

@pytest.mark.asyncio
async def test_sign_in_establishes_session(store):
    provider = SessionProvider(store, FakeAuthProvider())
    result = await provider.sign_in("ana@example.com", "secret")

    assert result.ok
    assert provider.loading is False
    assert provider.user.full_name == "Ana"
    assert store.user_id(provider.session_id) == "user-1"

@pytest.mark.asyncio
async def test_sign_in_failure_returns_error_message(store):
    provider = SessionProvider(store, FakeAuthProvider())
    result = await provider.sign_in("ana@example.com", "wrong")

    assert result.error == "Invalid login credentials"
    assert provider.session is None
    assert len(store) == 0

@pytest.mark.asyncio
async def test_sign_out_clears_user_id_even_if_revoke_fails(store):
    provider = SessionProvider(store, FakeAuthProvider())
    await provider.sign_in("ana@example.com", "secret")
    sid = provider.session_id

    await provider.sign_out()

    assert provider.session_id is None
    assert store.get(sid) is None
    with pytest.raises(UnauthenticatedError):
        store.user_id(sid)

@pytest.mark.asyncio
async def test_update_profile_merges_metadata(store):
    auth = FakeAuthProvider()
    provider = SessionProvider(store, auth)
    await provider.sign_in("ana@example.com", "secret")

    result = await provider.update_profile(avatar_url="https://img/ana.png")

    assert result.ok
    assert auth.calls[-2] == ("update_user", {"full_name": "Ana", "avatar_url": "https://img/ana.png"})
    assert provider.user.avatar_url == "https://img/ana.png"
    assert provider.user.full_name == "Ana"

@pytest.mark.asyncio
async def test_update_profile_waits_for_provider_to_converge(store):
    auth = FakeAuthProvider(stale_reads=2)
    provider = SessionProvider(store, auth)
    await provider.sign_in("ana@example.com", "secret")

    await provider.update_profile(full_name="Ana Lopez")

    reads = [c for c in auth.calls if c[0] == "get_user"]
    assert len(reads) == 3
    assert provider.user.full_name == "Ana Lopez"

@pytest.mark.asyncio
async def test_update_profile_patches_locally_when_provider_stays_stale(store):
    auth = FakeAuthProvider(stale_reads=100)
    provider = SessionProvider(store, auth)
    await provider.sign_in("ana@example.com", "secret")

    await provider.update_profile(full_name="Ana Lopez")

    assert len([c for c in auth.calls if c[0] == "get_user"]) == session_provider.PROFILE_REFRESH_ATTEMPTS
    assert provider.user.full_name == "Ana Lopez"

@pytest.mark.asyncio
async def test_google_sign_in_round_trip(store, monkeypatch):
    monkeypatch.setattr(
        google_oauth, "authorization_url", lambda: ("https://accounts.google.com/o/oauth2/auth?x=1", "st-1", "ver-1")
    )
    seen = {}

    def fake_exchange(code, state, verifier):
        seen.update(code=code, state=state, verifier=verifier)
        return SimpleNamespace(id_token="id-tok", token="g-token", refresh_token="g-refresh")

    monkeypatch.setattr(google_oauth, "exchange_code", fake_exchange)
    auth = FakeAuthProvider()
    provider = SessionProvider(store, auth)

    url = provider.sign_in_with_google()
    result = await provider.complete_google_sign_in("code-1", "st-1")

    assert url.startswith("https://accounts.google.com/")
    assert result.ok
    assert seen == {"code": "code-1", "state": "st-1", "verifier": "ver-1"}
    assert auth.calls[-1] == ("id_token", "google", "id-tok", "g-token")
    assert provider.session.is_google
    assert provider.session.provider_token == "g-token"
    assert provider.session.provider_refresh_token == "g-refresh"

@pytest.mark.asyncio
async def test_google_callback_with_unknown_state(store):
    provider = SessionProvider(store, FakeAuthProvider())
    result = await provider.complete_google_sign_in("code-1", "never-issued")
    assert not result.ok
    assert provider.session is None

@pytest.mark.asyncio
async def test_resolve_refreshes_expired_access_token(store):
    class Expiring(FakeAuthProvider):
        async def get_user(self, access_token):
            if access_token == "tok-123":
                raise AuthError("JWT expired", status_code=401)
            return await super().get_user(access_token)

    auth = Expiring()
    provider = SessionProvider(store, auth)
    await provider.sign_in("ana@example.com", "secret")
    sid = provider.session_id

    principal = await provider.resolve()

    assert principal.id == "user-1"
    assert ("refresh", "ref-1") in auth.calls
    assert provider.session_id == sid
    assert store.get(sid).access_token == "tok-new"
    assert store.get(sid).refresh_token == "ref-2"
    assert store.user_id(sid) == "user-1"

@pytest.mark.asyncio
async def test_resolve_drops_session_when_refresh_fails(store):
    class Rejecting(FakeAuthProvider):
        async def get_user(self, access_token):
            raise AuthError("JWT expired", status_code=401)

        async def refresh_session(self, refresh_token):
            self.calls.append(("refresh", refresh_token))
            raise AuthError("Invalid Refresh Token", status_code=400)

    provider = SessionProvider(store, FakeAuthProvider())
    await provider.sign_in("ana@example.com", "secret")
    sid = provider.session_id
    provider.auth = rejecting = Rejecting()

    assert await provider.resolve() is None
    assert ("refresh", "ref-1") in rejecting.calls
    assert provider.session is None
    with pytest.raises(UnauthenticatedError):
        store.user_id(sid)

def test_cookie_codec(store):
    token = store.encode_session_id("sid-42")
    assert token != "sid-42"
    assert store.decode_session_id(token) == "sid-42"
    assert store.decode_session_id("garbage") is None
    assert SessionStore().decode_session_id(token) is None

def test_invalid_key_falls_back_to_generated_one():
    store = SessionStore(key="not-a-fernet-key")
    assert store.decode_session_id(store.encode_session_id("x")) == "x"

def test_oauth_state_is_single_use(store):
    store.remember_oauth_state("st", "ver")
    assert store.pop_oauth_verifier("st") == "ver"
    with pytest.raises(KeyError):
        store.pop_oauth_verifier("st")

class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

def test_abandoned_oauth_handshakes_are_evicted():
    clock = FakeClock()
    store = SessionStore(oauth_state_ttl_s=600, clock=clock)
    for i in range(1000):
        store.remember_oauth_state(f"st-{i}", "ver")

    clock.now += 601
    store.remember_oauth_state("fresh", "ver-2")

    assert len(store._oauth_verifiers) == 1
    with pytest.raises(KeyError):
        store.pop_oauth_verifier("st-0")
    assert store.pop_oauth_verifier("fresh") == "ver-2"

def test_expired_oauth_state_is_rejected_on_callback():
    clock = FakeClock()
    store = SessionStore(oauth_state_ttl_s=600, clock=clock)
    store.remember_oauth_state("st", "ver")
    clock.now += 601
    with pytest.raises(KeyError):
        store.pop_oauth_verifier("st")

def test_idle_sessions_expire_and_are_evicted(session, google_session):
    clock = FakeClock()
    store = SessionStore(session_ttl_s=3600, clock=clock)
    store.save(session)

    clock.now += 3601
    assert store.get(session.session_id) is None
    with pytest.raises(UnauthenticatedError):
        store.user_id(session.session_id)

    store.save(session)
    clock.now += 3601
    store.save(google_session)
    assert len(store) == 1
    assert store.get(google_session.session_id) is not None

def test_saving_a_session_keeps_it_alive(session):
    clock = FakeClock()
    store = SessionStore(session_ttl_s=3600, clock=clock)
    store.save(session)
    clock.now += 3000
    store.save(session)
    clock.now += 3000
    assert store.user_id(session.session_id) == "user-1"

def test_normalize_principal_prefers_user_metadata():
    principal = normalize_principal(
        {
            "id": 9,
            "email": "x@example.com",
            "user_metadata": {"name": "From Google"},
            "raw_user_meta_data": {"avatar_url": "https://img/x.png"},
            "app_metadata": {"provider": "google"},
        }
    )
    assert principal.id == "9"
    assert principal.full_name == "From Google"
    assert principal.avatar_url == "https://img/x.png"
    assert principal.provider == "google"

@pytest.mark.asyncio
async def test_auth_provider_error_message_and_grant_type():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})

    auth = AuthProvider(base_url="http://auth.test", api_key="anon", transport=httpx.MockTransport(handler))
    with pytest.raises(AuthError) as exc:
        await auth.sign_in_with_password("a@example.com", "x")

    assert exc.value.message == "Invalid login credentials"
    assert exc.value.status_code == 400
    assert seen[0].url.path == "/auth/v1/token"
    assert seen[0].url.params["grant_type"] == "password"
    assert seen[0].headers["apikey"] == "anon"

@pytest.mark.asyncio
async def test_auth_provider_refresh_grant():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=_token_response())

    auth = AuthProvider(base_url="http://auth.test", api_key="anon", transport=httpx.MockTransport(handler))
    payload = await auth.refresh_session("ref-1")

    assert payload["access_token"] == "tok-123"
    assert seen[0].url.params["grant_type"] == "refresh_token"
    assert json.loads(seen[0].content) == {"refresh_token": "ref-1"}
