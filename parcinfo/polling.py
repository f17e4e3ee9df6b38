import logging
import time

from .api import ApiError

log = logging.getLogger(__name__)

DASHBOARD_FEEDS = {
    "stats": "/api/dashboard/stats",
    "alerts": "/api/alerts",
}

# flux propres à la page du tableau de bord; les alertes alimentent le badge de chaque page
VIEW_FEEDS = ("stats",)


class Poller:
    """Rafraîchit périodiquement des lectures dans le cache d'une session.

    Un job APScheduler par (session, flux). Les jobs s'arrêtent au logout,
    après `idle_timeout` secondes sans requête de la session, ou sur 401.
    Les flux de VIEW_FEEDS s'arrêtent aussi quand le tableau de bord n'a pas
    été affiché depuis deux intervalles.
    """

    def __init__(self, scheduler, interval=30, idle_timeout=300, enabled=True, clock=time.monotonic):
        self.scheduler = scheduler
        self.interval = interval
        self.idle_timeout = idle_timeout
        self.enabled = enabled
        self.clock = clock
        self._viewed = {}

    @staticmethod
    def job_id(sid, name):
        return f"poll:{sid}:{name}"

    def watch(self, state, feeds=DASHBOARD_FEEDS):
        if not self.enabled:
            return []
        ids = []
        for name, path in feeds.items():
            jid = self.job_id(state.sid, name)
            self._viewed[jid] = self.clock()
            if self.scheduler.get_job(jid) is None:
                self.scheduler.add_job(
                    self.refresh, "interval",
                    seconds=self.interval, id=jid, replace_existing=True,
                    args=[state, path, jid],
                )
                log.debug("Polling %s démarré (%ss)", jid, self.interval)
            ids.append(jid)
        return ids

    def refresh(self, state, path, jid):
        if state.client.closed:
            log.debug("Polling %s arrêté: session fermée", jid)
            self._remove(jid)
            return
        if state.idle_for() > self.idle_timeout:
            log.info("Polling %s arrêté: session inactive", jid)
            self._remove(jid)
            return
        if jid.rsplit(":", 1)[-1] in VIEW_FEEDS and self.unviewed_for(jid) > 2 * self.interval:
            log.debug("Polling %s arrêté: tableau de bord quitté", jid)
            self._remove(jid)
            return
        try:
            state.client.query(path, force=True)
        except ApiError as e:
            if e.unauthorized:
                log.info("Polling %s arrêté: session expirée", jid)
                self._remove(jid)
            else:
                log.warning("Polling %s en échec: %s", jid, e.message)
        except RuntimeError:
            # client fermé par le logout pendant la requête
            log.debug("Polling %s arrêté: session fermée", jid)
            self._remove(jid)

    def unviewed_for(self, jid):
        viewed = self._viewed.get(jid)
        return 0 if viewed is None else self.clock() - viewed

    def stop(self, sid):
        prefix = f"poll:{sid}:"
        for job in self.scheduler.get_jobs():
            if job.id.startswith(prefix):
                self._remove(job.id)
        for jid in [j for j in list(self._viewed) if j.startswith(prefix)]:
            self._viewed.pop(jid, None)

    def _remove(self, jid):
        self._viewed.pop(jid, None)
        if self.scheduler.get_job(jid) is not None:
            self.scheduler.remove_job(jid)
