"""
Planificateur APScheduler : fermeture des sessions de scan abandonnées.

Une session restée ouverte (application mise en arrière-plan, réseau coupé...)
garderait la caméra de l'appareil. Le job s'exécute toutes les minutes et ferme
les sessions inactives depuis plus de SCAN_SESSION_IDLE_MINUTES.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _close_idle_scan_sessions() -> None:
    """
    Tâche planifiée : libère les caméras des sessions inactives.
    Import local pour éviter les imports circulaires.
    """
    from app.services.scan_session import scan_sessions

    try:
        closed = scan_sessions.close_idle(settings.SCAN_SESSION_IDLE_MINUTES * 60)
        if closed:
            logger.info("%d session(s) de scan inactive(s) fermée(s).", closed)
    except Exception as exc:
        logger.error("Erreur lors de la fermeture des sessions de scan inactives : %s", exc)


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _close_idle_scan_sessions,
        trigger="interval",
        minutes=1,
        id="close_idle_scan_sessions",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler démarré — contrôle des sessions de scan toutes les minutes.")


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
