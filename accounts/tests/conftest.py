import json

import httpx
import pytest
from fastapi.testclient import TestClient

from accounts.config import Settings, get_settings
from accounts.main import app, get_http_client

SUPABASE_URL = "https://project.supabase.co"
RESEND_URL = "https://api.resend.com"
GOOD_TOKEN = "good-token"


class FakeBackend:
    """
    In-memory stand-in for Supabase (Auth, Storage, RPC) and Resend,
    served through httpx.MockTransport.
    """

    def __init__(self):
        self.tokens = {GOOD_TOKEN: {"id": "user-1", "email": "pat@example.com"}}
        self.auth_users = {"user-1"}
        self.objects = {}
        self.calls = []
        self.removed = []
        self.sent = []
        self.list_error = None
        # Raw 2xx bodies that replace the normal reply when set.
        self.user_raw = None
        self.list_raw = None
        self.rpc_raw = None
        self.remove_error = None
        self.otp_code = "482913"
        self.otp_error = None
        self.email_status = 200
        self.email_body = '{"id": "email-1"}'

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.host, path, body))

        if request.url.host == "api.resend.com":
            if path == "/emails":
                self.sent.append({"body": body, "headers": dict(request.headers)})
                return httpx.Response(self.email_status, text=self.email_body)
            return httpx.Response(404)

        if path == "/auth/v1/user":
            token = request.headers.get("Authorization", "").split(" ", 1)[-1]
            user = self.tokens.get(token)
            if user is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            if self.user_raw is not None:
                return httpx.Response(200, text=self.user_raw)
            return httpx.Response(200, json=user)

        if path.startswith("/storage/v1/object/list/"):
            if self.list_error:
                return httpx.Response(400, json={"message": self.list_error})
            if self.list_raw is not None:
                return httpx.Response(200, text=self.list_raw)
            # Listing is static: removals do not shift later objects to lower
            # offsets, so the paging offsets stay 0, 100, 200, ...
            names = sorted(self.objects.get(body["prefix"], []))
            page = names[body["offset"]:body["offset"] + body["limit"]]
            return httpx.Response(200, json=[{"name": name, "id": name} for name in page])

        if request.method == "DELETE" and path.startswith("/storage/v1/object/"):
            if self.remove_error:
                return httpx.Response(500, json={"message": self.remove_error})
            self.removed.extend(body["prefixes"])
            return httpx.Response(200, json=[{"name": p} for p in body["prefixes"]])

        if request.method == "DELETE" and path.startswith("/auth/v1/admin/users/"):
            user_id = path.rsplit("/", 1)[-1]
            if user_id not in self.auth_users:
                return httpx.Response(404, json={"msg": "User not found"})
            self.auth_users.discard(user_id)
            return httpx.Response(200, json={})

        if path.startswith("/rest/v1/rpc/"):
            if self.otp_error:
                return httpx.Response(400, json={"message": self.otp_error})
            if self.rpc_raw is not None:
                return httpx.Response(200, text=self.rpc_raw)
            return httpx.Response(200, json=self.otp_code)

        return httpx.Response(404)

    def paths_called(self, prefix: str):
        return [call for call in self.calls if call[2].startswith(prefix)]


def make_settings(**overrides) -> Settings:
    values = {
        "SUPABASE_URL": SUPABASE_URL,
        "SUPABASE_ANON_KEY": "anon-key",
        "SUPABASE_SERVICE_ROLE_KEY": "service-role-key",
        "RESEND_API_KEY": "re_test_key",
        "RESEND_API_URL": RESEND_URL,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(settings, backend):
    async def override_http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)) as http:
            yield http

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_http_client] = override_http_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {GOOD_TOKEN}"}
