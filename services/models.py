# services/models.py

"""
Модели состояния запроса (фильтры, пагинация) и исходящего запроса к Bitquery.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class DexProtocol(str, Enum):
    US2 = "US2"
    US3 = "US3"
    PS = "PS"

    @property
    def label(self) -> str:
        return _PROTOCOL_META[self]["label"]

    @property
    def exchange_name(self) -> str:
        return _PROTOCOL_META[self]["exchange_name"]

    @property
    def network(self) -> str:
        return _PROTOCOL_META[self]["network"]

    @property
    def enabled(self) -> bool:
        return _PROTOCOL_META[self]["enabled"]


_PROTOCOL_META = {
    DexProtocol.US2: {"label": "UniSwap v2", "exchange_name": "Uniswap", "network": "ethereum", "enabled": True},
    DexProtocol.US3: {"label": "UniSwap v3", "exchange_name": "Uniswap v3", "network": "ethereum", "enabled": True},
    # PancakeSwap показывается в списке, но пока не поддерживается
    DexProtocol.PS: {"label": "PancakeSwap", "exchange_name": "Pancake", "network": "bsc", "enabled": False},
}


@dataclass(frozen=True)
class Pagination:
    per_page: int
    page: int = 1

    @property
    def offset(self) -> int:
        return self.per_page * (self.page - 1)


@dataclass(frozen=True)
class TradeRequest:
    """Запрос к источнику данных (то, что уходит в fetch_trades)."""
    protocol: DexProtocol
    per_page: int
    offset: int
    base_currency: str
    quote_currency: str


@dataclass(frozen=True)
class DexQuery:
    """
    Текущее намерение пользователя (фильтры + страница).
    Неизменяемый объект: каждая операция возвращает новую копию.
    """
    protocol: DexProtocol
    base_currency: str
    quote_currency: str
    pagination: Pagination

    def with_protocol(self, protocol: DexProtocol) -> "DexQuery":
        return replace(
            self,
            protocol=protocol,
            base_currency="",
            quote_currency="",
            pagination=replace(self.pagination, page=1),
        )

    def with_base_currency(self, base_currency: str) -> "DexQuery":
        return replace(
            self,
            base_currency=base_currency,
            quote_currency="",
            pagination=replace(self.pagination, page=1),
        )

    def with_quote_currency(self, quote_currency: str) -> "DexQuery":
        return replace(
            self,
            quote_currency=quote_currency,
            pagination=replace(self.pagination, page=1),
        )

    def with_page_delta(self, delta: int) -> "DexQuery":
        page = max(1, self.pagination.page + delta)
        return replace(self, pagination=replace(self.pagination, page=page))

    @property
    def is_pair_discovery(self) -> bool:
        return not self.base_currency

    def to_request(self) -> TradeRequest:
        return TradeRequest(
            protocol=self.protocol,
            per_page=self.pagination.per_page,
            offset=self.pagination.offset,
            base_currency=self.base_currency,
            quote_currency=self.quote_currency,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol": self.protocol.value,
            "baseCurrency": self.base_currency,
            "quoteCurrency": self.quote_currency,
            "pagination": {
                "perPage": self.pagination.per_page,
                "page": self.pagination.page,
            },
        }


@dataclass(frozen=True)
class EphemeralState:
    loading: bool = False


@dataclass(frozen=True)
class Notification:
    kind: str
    title: str
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class CoordinatorSnapshot:
    """Наблюдаемое состояние координатора (только для чтения)."""
    query: DexQuery
    ephemeral: EphemeralState
    pair_results: Optional[List[Dict[str, Any]]]
    transaction_results: Optional[List[Dict[str, Any]]]

    @property
    def mode(self) -> str:
        return "pairs" if self.query.is_pair_discovery else "transactions"

    @property
    def can_go_back(self) -> bool:
        return not self.ephemeral.loading and self.query.pagination.page >= 2

    @property
    def can_go_forward(self) -> bool:
        return not self.ephemeral.loading

    @property
    def active_results(self) -> Optional[List[Dict[str, Any]]]:
        if self.query.is_pair_discovery:
            return self.pair_results
        return self.transaction_results

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query.to_dict(),
            "loading": self.ephemeral.loading,
            "mode": self.mode,
            "can_go_back": self.can_go_back,
            "can_go_forward": self.can_go_forward,
            "pair_results": self.pair_results,
            "transaction_results": self.transaction_results,
        }
