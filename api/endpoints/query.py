# api/endpoints/query.py

import logging
import re
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from services.models import DexProtocol
from services.query_coordinator import QueryCoordinator

from api.security import verify_token
from api.dependencies import get_coordinator

# --- Setup ---
log = logging.getLogger(__name__)
query_router = APIRouter()

# Адрес вводится посимвольно, поэтому допускаем и частичный ввод ("0x", "0xA1...")
ADDRESS_REGEX = re.compile(r"^[0-9A-Za-z]{0,64}$")


# --- Тела запросов ---

class ProtocolBody(BaseModel):
    protocol: str


class AddressBody(BaseModel):
    address: str = ""


class PageBody(BaseModel):
    delta: int


def _clean_address(address: str, log_prefix: str) -> str:
    address = address.strip()
    if not ADDRESS_REGEX.match(address):
        log.warning(f"{log_prefix} Некорректный адрес: '{address}'")
        raise HTTPException(status_code=400, detail="Invalid token contract address")
    return address


# ============================================================================
# === Чтение состояния ===
# ============================================================================

@query_router.get("/state")
async def get_state(coordinator: QueryCoordinator = Depends(get_coordinator)):
    """Текущее наблюдаемое состояние координатора (фильтры, загрузка, слоты)."""
    return coordinator.snapshot().to_dict()


@query_router.get("/protocols")
async def get_protocols():
    """Список протоколов для селектора (PancakeSwap пока выключен)."""
    return {
        "protocols": [
            {"value": p.value, "label": p.label, "enabled": p.enabled}
            for p in DexProtocol
        ]
    }


# ============================================================================
# === События от UI ===
# ============================================================================

@query_router.post("/query/protocol", dependencies=[Depends(verify_token)])
async def change_protocol(body: ProtocolBody, coordinator: QueryCoordinator = Depends(get_coordinator)):
    log_prefix = "[API /query/protocol POST]"
    try:
        protocol = DexProtocol(body.protocol)
    except ValueError:
        log.warning(f"{log_prefix} Неизвестный протокол: '{body.protocol}'")
        raise HTTPException(status_code=400, detail=f"Unknown protocol: {body.protocol}")

    if not protocol.enabled:
        log.warning(f"{log_prefix} Протокол {protocol.value} отключен.")
        raise HTTPException(status_code=400, detail=f"Protocol {protocol.label} is not supported yet")

    coordinator.set_protocol(protocol)
    return coordinator.snapshot().to_dict()


@query_router.post("/query/base-currency", dependencies=[Depends(verify_token)])
async def select_base_currency(body: AddressBody, coordinator: QueryCoordinator = Depends(get_coordinator)):
    """Выбор базовой валюты (пустая строка - назад к списку пар)."""
    address = _clean_address(body.address, "[API /query/base-currency POST]")
    coordinator.set_base_currency(address)
    return coordinator.snapshot().to_dict()


@query_router.post("/query/quote-currency", dependencies=[Depends(verify_token)])
async def select_quote_currency(body: AddressBody, coordinator: QueryCoordinator = Depends(get_coordinator)):
    address = _clean_address(body.address, "[API /query/quote-currency POST]")
    coordinator.set_quote_currency(address)
    return coordinator.snapshot().to_dict()


@query_router.post("/query/page", dependencies=[Depends(verify_token)])
async def change_page(body: PageBody, coordinator: QueryCoordinator = Depends(get_coordinator)):
    coordinator.change_page(body.delta)
    return coordinator.snapshot().to_dict()


@query_router.post("/query/refresh", dependencies=[Depends(verify_token)])
async def refresh(coordinator: QueryCoordinator = Depends(get_coordinator)):
    """Повторить запрос с текущими фильтрами (например, после ошибки сети)."""
    coordinator.refresh()
    return coordinator.snapshot().to_dict()
