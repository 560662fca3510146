# api/security.py

import logging
from fastapi import HTTPException, Request
import config

# --- Настройка ---
log = logging.getLogger(__name__)


def verify_token(request: Request):
    """
    Проверяет X-Auth-Token.
    Вызывается через Depends() в эндпоинтах, меняющих состояние.
    Если SECRET_TOKEN не задан (локальный запуск), доступ открыт.
    """
    if not config.SECRET_TOKEN:
        return True

    token = request.headers.get("X-Auth-Token")
    if not token or token != config.SECRET_TOKEN:
        log.warning("Доступ запрещен: Неверный X-Auth-Token.")
        raise HTTPException(status_code=401, detail="Неверный X-Auth-Token")
    return True
