# services/notification_service.py

import logging
from collections import deque
from typing import List

import config
from .models import Notification

log = logging.getLogger(__name__)

_LOG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "success": logging.INFO,
}


class NotificationCenter:
    """
    Хранит последние уведомления для пользователя (кольцевой буфер).
    Фронтенд забирает их через GET /notifications.
    """

    def __init__(self, max_items=None):
        self.max_items = config.NOTIFICATIONS_MAX if max_items is None else max_items
        self._items = deque(maxlen=self.max_items)

    def notify(self, kind: str, title: str, message: str) -> Notification:
        notification = Notification(kind=kind, title=title, message=message)
        self._items.append(notification)

        level = _LOG_LEVELS.get(kind, logging.INFO)
        log.log(level, f"[Notify] 🔔 ({kind}) {title}: {message}")
        return notification

    def latest(self, limit: int = 20) -> List[Notification]:
        """Возвращает последние уведомления (новые первыми)."""
        if limit <= 0:
            return []
        return list(reversed(self._items))[:limit]

    def clear(self) -> int:
        count = len(self._items)
        self._items.clear()
        return count

    def __len__(self):
        return len(self._items)


# Глобальный экземпляр (singleton)
notification_center = NotificationCenter()
