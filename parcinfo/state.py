"""État de session côté console.

Chaque navigateur connecté possède un `ClientState` (client API avec ses
cookies, cache de lectures, thème). Le registre est créé par `create_app`,
une entrée est ouverte au login et fermée au logout.
"""
import logging
import threading
import time
import uuid

from flask import current_app, g, session

from .api import ApiClient, QueryCache

log = logging.getLogger(__name__)

THEMES = ("light", "dark")


class ClientState:
    def __init__(self, sid, client, theme="light"):
        self.sid = sid
        self.client = client
        self.theme = theme if theme in THEMES else "light"
        self.last_seen = time.monotonic()

    def touch(self):
        self.last_seen = time.monotonic()

    def idle_for(self):
        return time.monotonic() - self.last_seen


class SessionRegistry:
    def __init__(self, base_url, stale_seconds=300, timeout=10.0, transport=None):
        self.base_url = base_url
        self.stale_seconds = stale_seconds
        self.timeout = timeout
        self.transport = transport
        self._states = {}
        self._closers = []
        self._lock = threading.Lock()

    def _build(self, sid, cookies=None, theme="light"):
        client = ApiClient(
            self.base_url,
            cookies=cookies,
            cache=QueryCache(ttl=self.stale_seconds),
            transport=self.transport,
            timeout=self.timeout,
        )
        return ClientState(sid, client, theme=theme)

    def open(self, theme="light"):
        state = self._build(uuid.uuid4().hex, theme=theme)
        with self._lock:
            self._states[state.sid] = state
        return state

    def get(self, sid, cookies=None, theme="light"):
        """Entrée existante, ou reconstruite à partir des cookies stockés en session."""
        with self._lock:
            state = self._states.get(sid)
            if state is None:
                state = self._build(sid, cookies=cookies, theme=theme)
                self._states[sid] = state
        state.touch()
        return state

    def find(self, sid):
        with self._lock:
            return self._states.get(sid)

    def on_close(self, fn):
        self._closers.append(fn)
        return fn

    def close(self, sid):
        with self._lock:
            state = self._states.pop(sid, None)
        if state is None:
            return
        for fn in self._closers:
            fn(sid)
        state.client.close()
        log.debug("Session %s fermée", sid)

    def sweep(self, max_idle):
        with self._lock:
            idle = [sid for sid, st in self._states.items() if st.idle_for() > max_idle]
        for sid in idle:
            self.close(sid)
        if idle:
            log.info("%s session(s) inactive(s) libérée(s)", len(idle))
        return len(idle)

    def close_all(self):
        with self._lock:
            sids = list(self._states)
        for sid in sids:
            self.close(sid)

    def __len__(self):
        return len(self._states)


def registry():
    return current_app.extensions["parcinfo"]


def current_state():
    """État de la requête en cours; None si aucune session API."""
    if "parcinfo_state" not in g:
        sid = session.get("sid")
        g.parcinfo_state = None
        if sid:
            g.parcinfo_state = registry().get(
                sid, cookies=session.get("api_cookies"), theme=session.get("theme", "light"))
    return g.parcinfo_state


def start_session(state):
    session["sid"] = state.sid
    session["api_cookies"] = state.client.cookie_dict()
    session["theme"] = state.theme
    g.parcinfo_state = state


def end_session():
    sid = session.get("sid")
    if sid:
        registry().close(sid)
    for key in ("sid", "api_cookies"):
        session.pop(key, None)
    g.parcinfo_state = None


def persist_cookies(response):
    """Les cookies de l'API peuvent tourner: on recopie le jar en session."""
    state = g.get("parcinfo_state")
    if state is not None and session.get("sid") == state.sid:
        cookies = state.client.cookie_dict()
        if cookies != session.get("api_cookies"):
            session["api_cookies"] = cookies
    return response
