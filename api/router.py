# api/router.py

import logging
import functools
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

import config
from .endpoints import (
    health_router,
    query_router,
    results_router,
    notifications_router
)
from .dependencies import set_coordinator, get_coordinator

from services.bitquery_api import fetch_trades
from services.notification_service import notification_center
from services.query_coordinator import QueryCoordinator

# --- Настройка ---
log = logging.getLogger(__name__)
app = FastAPI(title="DeX Tools API")

# HTTP-клиент к Bitquery (один на процесс)
_http_client: Optional[httpx.AsyncClient] = None

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- ГРУППА РОУТЕРОВ API (БЕЗ ПРЕФИКСА) ---
app.include_router(health_router, tags=["Health"])
app.include_router(query_router, tags=["Query"])
app.include_router(results_router, tags=["Results"])
app.include_router(notifications_router, tags=["Notifications"])


# --- События Startup / Shutdown ---

@app.on_event("startup")
async def startup():
    """
    Выполняется при старте приложения.
    """
    global _http_client
    log.info("...Событие Startup...")

    # 1. Клиент Bitquery
    _http_client = httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT_SECONDS)

    # 2. Координатор + первичная загрузка списка пар
    coordinator = QueryCoordinator(
        fetcher=functools.partial(fetch_trades, client=_http_client),
        notifier=notification_center.notify,
    )
    set_coordinator(coordinator)
    coordinator.refresh()

    log.info("...Событие Startup завершено...")


@app.on_event("shutdown")
async def shutdown():
    """
    Выполняется при остановке приложения.
    """
    global _http_client
    log.info("...Событие Shutdown...")

    try:
        await get_coordinator().close()
    except Exception as e:
        log.error(f"[Shutdown] Ошибка при остановке координатора: {e}", exc_info=True)
    set_coordinator(None)

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None

    log.info("...Событие Shutdown завершено...")


# --- Точка входа для Uvicorn (если запускается напрямую) ---
def run_api_server(host=None, port=None):
    """Запускает Uvicorn сервер."""
    host = host or config.API_HOST
    port = port or config.API_PORT
    log.info(f"Запуск Uvicorn-сервера на {host}:{port}")
    uvicorn.run(app, host=host, port=port)
