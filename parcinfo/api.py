import logging
import threading
import time
from collections import namedtuple

import httpx

log = logging.getLogger(__name__)

_MISS = object()

Download = namedtuple("Download", "content content_type filename")


class ApiError(Exception):
    """Réponse non-2xx ou échec réseau. `status` vaut None si le serveur n'a pas répondu."""

    def __init__(self, status, message):
        super().__init__(f"{status}: {message}" if status else message)
        self.status = status
        self.message = message

    @property
    def unauthorized(self):
        return self.status == 401


def error_message(response):
    """Message lisible extrait d'une réponse en erreur."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list):
            msgs = [e.get("message") for e in errors if isinstance(e, dict) and e.get("message")]
            if msgs:
                return msgs[0]
        for key in ("message", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return response.reason_phrase or f"HTTP {response.status_code}"


class QueryCache:
    """Cache des lectures GET, indexé par chemin de ressource."""

    def __init__(self, ttl=300, clock=time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            stored_at, value = entry
            if self.clock() - stored_at >= self.ttl:
                del self._entries[key]
                return default
            return value

    def set(self, key, value):
        with self._lock:
            self._entries[key] = (self.clock(), value)

    def invalidate(self, prefix):
        # "/api/licenses" invalide aussi "/api/licenses/expiring/30"
        prefix = prefix.rstrip("/")
        with self._lock:
            for key in [k for k in self._entries if k == prefix or k.startswith(prefix + "/")]:
                del self._entries[key]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, key):
        return self.get(key, _MISS) is not _MISS


class ApiClient:
    def __init__(self, base_url, cookies=None, cache=None, transport=None, timeout=10.0, query_retries=1):
        self.cache = cache if cache is not None else QueryCache()
        self.query_retries = query_retries
        self.http = httpx.Client(
            base_url=base_url,
            cookies=cookies,
            transport=transport,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    # ---- bas niveau ----

    def request(self, method, path, json=None, files=None, data=None, headers=None):
        log.debug("API %s %s", method, path)
        try:
            resp = self.http.request(method, path, json=json, files=files, data=data, headers=headers)
        except httpx.HTTPError as e:
            log.warning("API %s %s injoignable: %s", method, path, e)
            raise ApiError(None, "Serveur injoignable") from e
        if resp.is_error:
            msg = error_message(resp)
            log.warning("API %s %s -> %s %s", method, path, resp.status_code, msg)
            raise ApiError(resp.status_code, msg)
        return resp

    def cookie_dict(self):
        return {c.name: c.value for c in self.http.cookies.jar}

    @property
    def closed(self):
        return self.http.is_closed

    def close(self):
        self.cache.clear()
        self.http.close()

    # ---- lectures ----

    def query(self, path, force=False):
        if not force:
            cached = self.cache.get(path, _MISS)
            if cached is not _MISS:
                return cached
        attempts = 1 + max(self.query_retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                resp = self.request("GET", path)
                break
            except ApiError as e:
                retriable = e.status is None or e.status >= 500
                if not retriable or attempt == attempts:
                    raise
                log.info("Nouvelle tentative GET %s (%s/%s)", path, attempt + 1, attempts)
        value = _json(resp)
        self.cache.set(path, value)
        return value

    def item(self, resource, item_id):
        return self.query(f"{resource}/{item_id}")

    # ---- mutations (pas de retry) ----

    def create(self, resource, payload):
        resp = self.request("POST", resource, json=payload)
        self.cache.invalidate(resource)
        return _json(resp)

    def update(self, resource, item_id, payload):
        resp = self.request("PUT", f"{resource}/{item_id}", json=payload)
        self.cache.invalidate(resource)
        return _json(resp)

    def delete(self, resource, item_id):
        self.request("DELETE", f"{resource}/{item_id}")
        self.cache.invalidate(resource)

    def set_status(self, resource, item_id, payload):
        """Mise à jour partielle (statut d'une alerte, d'un ticket...)."""
        return self.put(f"{resource}/{item_id}", payload, invalidate=resource)

    def post(self, path, payload=None, invalidate=None):
        resp = self.request("POST", path, json=payload)
        if invalidate:
            self.cache.invalidate(invalidate)
        return _json(resp)

    def put(self, path, payload, invalidate=None):
        resp = self.request("PUT", path, json=payload)
        if invalidate:
            self.cache.invalidate(invalidate)
        return _json(resp)

    # ---- fichiers ----

    def download(self, path, accept="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"):
        resp = self.request("GET", path, headers={"Accept": accept})
        return Download(resp.content, resp.headers.get("content-type", accept), _filename(resp))

    def upload(self, path, files, data=None, invalidate=None):
        resp = self.request("POST", path, files=files, data=data)
        if invalidate:
            self.cache.invalidate(invalidate)
        return _json(resp)


def _json(resp):
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


def _filename(resp):
    disp = resp.headers.get("content-disposition") or ""
    for part in disp.split(";"):
        part = part.strip()
        if part.lower().startswith("filename="):
            return part.split("=", 1)[1].strip('"') or None
    return None
