# tests/conftest.py
"""
Fixtures communes: une fausse API REST (httpx.MockTransport) branchée sur
l'application Flask, et des helpers de connexion par rôle.
"""
import json
import uuid

import httpx
import pytest

from parcinfo import create_app

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SESSION_COOKIE = "api_session"

USERS = {
    "admin": {"id": "u-admin", "email": "admin@parc.fr", "firstName": "Alice", "lastName": "Martin", "role": "admin"},
    "technicien": {"id": "u-tech", "email": "tech@parc.fr", "firstName": "Tom", "lastName": "Durand", "role": "technicien"},
    "utilisateur": {"id": "u-user", "email": "user@parc.fr", "firstName": "Léa", "lastName": "Petit", "role": "utilisateur"},
}


class FakeApi:
    """API en mémoire: collections génériques sous /api/<nom>, plus quelques routes dédiées."""

    def __init__(self):
        self.calls = []
        self.data = {
            "equipment": [], "employees": [], "users": list(USERS.values()), "tickets": [],
            "inventory": [], "licenses": [], "maintenance": [], "alerts": [],
        }
        self.user = None
        self.expired = False
        self.fail = {}
        self.stats = {"totalEquipment": 3, "openTickets": 2, "activeUsers": 5, "expiringLicenses": 1}

    # ---- helpers de test ----

    def expire(self):
        self.expired = True

    def sent(self, method, path):
        return [c for c in self.calls if c["method"] == method and c["path"] == path]

    def paths(self, method=None):
        return [c["path"] for c in self.calls if method is None or c["method"] == method]

    # ---- transport ----

    def handler(self, request):
        path = request.url.path
        method = request.method
        body = None
        ctype = request.headers.get("content-type", "")
        if request.content and ctype.startswith("application/json"):
            body = json.loads(request.content)
        self.calls.append({"method": method, "path": path, "json": body,
                           "content_type": ctype, "content": request.content})

        if (method, path) in self.fail:
            status, message = self.fail[(method, path)]
            return httpx.Response(status, json={"message": message})

        if path.startswith("/api/auth/"):
            return self._auth(request, method, path, body)
        if not self._logged_in(request):
            return httpx.Response(401, json={"message": "Non authentifié"})
        return self._route(method, path, body)

    def _logged_in(self, request):
        return not self.expired and self.user is not None and SESSION_COOKIE in request.headers.get("cookie", "")

    def _auth(self, request, method, path, body):
        if path == "/api/auth/login":
            if body.get("password") != "secret":
                return httpx.Response(401, json={"message": "Identifiants invalides"})
            return httpx.Response(200, json={"user": self.user},
                                  headers={"set-cookie": f"{SESSION_COOKIE}=tok123; Path=/"})
        if path == "/api/auth/user":
            if not self._logged_in(request):
                return httpx.Response(401, json={"message": "Non authentifié"})
            return httpx.Response(200, json=self.user)
        if path == "/api/auth/logout":
            return httpx.Response(200, json={"ok": True})
        if path == "/api/auth/register":
            self.user = {"id": "u-new", "role": "utilisateur", **{k: v for k, v in body.items() if k != "password"}}
            return httpx.Response(201, json={"user": self.user},
                                  headers={"set-cookie": f"{SESSION_COOKIE}=tok456; Path=/"})
        if not self._logged_in(request):
            return httpx.Response(401, json={"message": "Non authentifié"})
        if path == "/api/auth/profile":
            self.user = {**self.user, **body}
            return httpx.Response(200, json=self.user)
        return httpx.Response(200, json={"ok": True})

    def _route(self, method, path, body):
        parts = path.strip("/").split("/")[1:]
        if path == "/api/dashboard/stats":
            return httpx.Response(200, json=self.stats)
        if path.startswith("/api/licenses/expiring/"):
            return httpx.Response(200, json=[])
        if parts[0] == "settings":
            return self._settings(method, parts)
        if len(parts) == 3 and parts[2] == "history":
            return httpx.Response(200, json=[
                {"id": "h1", "action": "assignation", "description": "Remis à Jean", "date": "2024-03-01T09:00:00.000Z"},
            ])
        name = parts[0]
        rows = self.data.setdefault(name, [])
        if len(parts) == 1:
            if method == "GET":
                return httpx.Response(200, json=rows)
            if method == "POST":
                entity = {"id": str(uuid.uuid4()), **body}
                rows.append(entity)
                return httpx.Response(201, json=entity)
        item_id = parts[1]
        for i, row in enumerate(rows):
            if row["id"] == item_id:
                if method == "PUT":
                    rows[i] = {**row, **body}
                    return httpx.Response(200, json=rows[i])
                if method == "DELETE":
                    del rows[i]
                    return httpx.Response(204)
                return httpx.Response(200, json=row)
        return httpx.Response(404, json={"message": "Introuvable"})

    def _settings(self, method, parts):
        if parts[1] in ("export", "template") and method == "GET":
            return httpx.Response(
                200, content=b"PK-fake-xlsx",
                headers={"content-type": XLSX_MIME,
                         "content-disposition": f'attachment; filename="{parts[2]}.xlsx"'},
            )
        if parts[1] == "import" and method == "POST":
            return httpx.Response(200, json={"imported": 1})
        return httpx.Response(404, json={"message": "Introuvable"})


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def app(api):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "API_BASE_URL": "http://api.test",
        "API_TRANSPORT": httpx.MockTransport(api.handler),
        "SCHEDULER_ENABLED": False,
        "LOG_LEVEL": "WARNING",
    })
    yield app
    app.extensions["parcinfo"].close_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client, api):
    """login("technicien") -> connecte le client de test avec ce rôle via /auth/login."""
    def _login(role="admin"):
        api.user = dict(USERS[role])
        resp = client.post("/auth/login", data={"email": api.user["email"], "password": "secret"})
        assert resp.status_code == 302, resp.get_data(as_text=True)
        return api.user
    return _login
