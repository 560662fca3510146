# services/__init__.py
"""
Модуль Services (Фасад).

Собирает публичные функции и классы из модулей (bitquery_api,
query_coordinator, notification_service, export_service) в единый
неймспейс 'services', например:
from services import QueryCoordinator, fetch_trades
"""

# --- Из models.py ---
from .models import (
    DexProtocol,
    DexQuery,
    Pagination,
    TradeRequest,
    EphemeralState,
    Notification,
    CoordinatorSnapshot
)

# --- Из bitquery_api.py ---
from .bitquery_api import (
    FetchFailed,
    fetch_trades,
    build_graphql_payload
)

# --- Из notification_service.py ---
from .notification_service import (
    NotificationCenter,
    notification_center
)

# --- Из query_coordinator.py ---
from .query_coordinator import QueryCoordinator

# --- Из export_service.py ---
from .export_service import results_to_csv
