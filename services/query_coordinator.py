# services/query_coordinator.py

"""
Координатор запросов (debounce + fetch).

Владеет текущим DexQuery, флагом загрузки и двумя слотами результатов
(пары / сделки). Любая правка фильтров (пере)взводит один таймер; по его
срабатыванию берётся снимок текущего состояния и уходит ровно один запрос.

Все методы вызываются из event loop (один поток), блокировки не нужны.

Устаревшие ответы: запрос, выпущенный раньше, может вернуться позже более
нового и перезаписать слот. Это поведение сохранено намеренно; такие случаи
пишутся в лог как warning. Отбрасывание включается флагом
config.DISCARD_STALE_RESPONSES.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import config
from .bitquery_api import FetchFailed
from .models import (
    CoordinatorSnapshot,
    DexProtocol,
    DexQuery,
    EphemeralState,
    Pagination,
    TradeRequest,
)

log = logging.getLogger(__name__)

Fetcher = Callable[[TradeRequest], Awaitable[List[Dict[str, Any]]]]
Notifier = Callable[[str, str, str], Any]
Subscriber = Callable[[CoordinatorSnapshot], Any]

FAILURE_TITLE = "Something Wrong"
FAILURE_MESSAGE = "Please check internet connection."


class QueryCoordinator:

    def __init__(
        self,
        fetcher: Fetcher,
        notifier: Notifier,
        per_page: Optional[int] = None,
        debounce_seconds: Optional[float] = None,
        discard_stale: Optional[bool] = None,
        protocol: DexProtocol = DexProtocol.US2,
        log_prefix: str = "[Coordinator]",
    ):
        self._fetcher = fetcher
        self._notifier = notifier
        self._debounce_seconds = config.DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self._discard_stale = config.DISCARD_STALE_RESPONSES if discard_stale is None else discard_stale
        self.log_prefix = log_prefix

        self._query = DexQuery(
            protocol=protocol,
            base_currency="",
            quote_currency="",
            pagination=Pagination(per_page=per_page or config.DEFAULT_PER_PAGE, page=1),
        )
        self._ephemeral = EphemeralState()
        self._pair_results: Optional[List[Dict[str, Any]]] = None
        self._transaction_results: Optional[List[Dict[str, Any]]] = None

        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._issued_seq = 0
        self._subscribers: List[Subscriber] = []

    # ------------------------------------------------------------------
    # Чтение состояния
    # ------------------------------------------------------------------

    @property
    def query(self) -> DexQuery:
        return self._query

    @property
    def loading(self) -> bool:
        return self._ephemeral.loading

    @property
    def pair_results(self) -> Optional[List[Dict[str, Any]]]:
        return self._pair_results

    @property
    def transaction_results(self) -> Optional[List[Dict[str, Any]]]:
        return self._transaction_results

    @property
    def has_pending_fetch(self) -> bool:
        return self._timer is not None

    def snapshot(self) -> CoordinatorSnapshot:
        return CoordinatorSnapshot(
            query=self._query,
            ephemeral=self._ephemeral,
            pair_results=self._pair_results,
            transaction_results=self._transaction_results,
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Подписка на изменения. Возвращает функцию отписки."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Операции (события от UI)
    # ------------------------------------------------------------------

    def set_protocol(self, protocol: DexProtocol):
        log.debug(f"{self.log_prefix} Протокол -> {protocol.value}")
        self._apply(self._query.with_protocol(protocol))

    def set_base_currency(self, address: str):
        log.debug(f"{self.log_prefix} Base currency -> '{address}'")
        self._apply(self._query.with_base_currency(address))

    def set_quote_currency(self, address: str):
        log.debug(f"{self.log_prefix} Quote currency -> '{address}'")
        self._apply(self._query.with_quote_currency(address))

    def change_page(self, delta: int):
        log.debug(f"{self.log_prefix} Страница {self._query.pagination.page} {delta:+d}")
        self._apply(self._query.with_page_delta(delta))

    def refresh(self):
        """Повторный запрос без изменения фильтров (старт, ручной retry)."""
        self._schedule_fetch()

    def _apply(self, query: DexQuery):
        self._query = query
        self._emit()
        self._schedule_fetch()

    # ------------------------------------------------------------------
    # Debounce
    # ------------------------------------------------------------------

    def _schedule_fetch(self):
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._debounce_seconds, self._on_timer)

    def _on_timer(self):
        self._timer = None
        # Снимок состояния в момент срабатывания таймера
        query = self._query
        task = asyncio.get_running_loop().create_task(self._fetch(query))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def _fetch(self, query: DexQuery):
        request = query.to_request()
        self._issued_seq += 1
        seq = self._issued_seq

        self._set_loading(True)
        log.info(
            f"{self.log_prefix} 🔄 Запрос #{seq}: {request.protocol.value}, "
            f"base='{request.base_currency}', quote='{request.quote_currency}', "
            f"page={query.pagination.page}, offset={request.offset}"
        )

        try:
            result = await self._fetcher(request)
        except FetchFailed as e:
            log.error(f"{self.log_prefix} ❌ Запрос #{seq} не удался: {e}")
            self._notify_failure()
        except Exception as e:
            log.error(f"{self.log_prefix} ❌ Запрос #{seq}: непредвиденная ошибка: {e}", exc_info=True)
            self._notify_failure()
        else:
            self._store_result(seq, request, result)
        finally:
            self._set_loading(False)

    def _store_result(self, seq: int, request: TradeRequest, result: List[Dict[str, Any]]):
        if seq != self._issued_seq:
            # TODO: решить с владельцем продукта, отбрасывать ли такие ответы по умолчанию
            log.warning(
                f"{self.log_prefix} ⚠️ Устаревший ответ #{seq} пришёл после запроса #{self._issued_seq}."
            )
            if self._discard_stale:
                log.info(f"{self.log_prefix} Ответ #{seq} отброшен (DISCARD_STALE_RESPONSES).")
                return

        if request.base_currency:
            self._transaction_results = result
            slot = "transactions"
        else:
            self._pair_results = result
            slot = "pairs"

        log.info(f"{self.log_prefix} ✅ Запрос #{seq}: {len(result)} записей -> слот '{slot}'.")
        self._emit()

    def _notify_failure(self):
        try:
            self._notifier("error", FAILURE_TITLE, FAILURE_MESSAGE)
        except Exception as e:
            log.error(f"{self.log_prefix} Не удалось отправить уведомление: {e}", exc_info=True)

    def _set_loading(self, loading: bool):
        self._ephemeral = EphemeralState(loading=loading)
        self._emit()

    def _emit(self):
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                log.error(f"{self.log_prefix} Ошибка в подписчике {callback!r}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Жизненный цикл
    # ------------------------------------------------------------------

    async def wait_idle(self):
        """Ждёт срабатывания таймера и завершения всех запросов в полёте."""
        loop = asyncio.get_running_loop()
        while self._timer is not None or self._in_flight:
            if self._in_flight:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)
            else:
                await asyncio.sleep(max(self._timer.when() - loop.time(), 0) + 0.001)

    async def close(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            log.info(f"{self.log_prefix} Отменено запросов в полёте: {len(pending)}")
