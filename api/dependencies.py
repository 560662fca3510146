# api/dependencies.py

import logging
from typing import Optional

from fastapi import HTTPException

from services.query_coordinator import QueryCoordinator
from services.notification_service import NotificationCenter, notification_center

log = logging.getLogger(__name__)

# Единственный координатор процесса (создаётся в startup, см. api/router.py)
_coordinator: Optional[QueryCoordinator] = None


def set_coordinator(coordinator: Optional[QueryCoordinator]):
    global _coordinator
    _coordinator = coordinator


def get_coordinator() -> QueryCoordinator:
    if _coordinator is None:
        log.error("[API] Координатор не инициализирован (startup не выполнен).")
        raise HTTPException(status_code=503, detail="Coordinator is not initialized")
    return _coordinator


def get_notification_center() -> NotificationCenter:
    return notification_center
