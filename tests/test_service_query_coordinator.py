# tests/test_service_query_coordinator.py

import pytest
import asyncio
from unittest.mock import AsyncMock, MagicMock

from services.bitquery_api import FetchFailed
from services.models import DexProtocol, TradeRequest
from services.query_coordinator import (
    QueryCoordinator,
    FAILURE_TITLE,
    FAILURE_MESSAGE
)

# Короткое окно debounce, чтобы тесты шли быстро
DEBOUNCE = 0.1

PAIRS_RESULT = [{"baseCurrency": {"symbol": "WETH"}, "quoteCurrency": {"symbol": "USDT"}, "count": 10}]
TRADES_RESULT = [{"transaction": {"hash": "0x1"}, "side": "BUY"}]

# --- Фикстуры (Настройка тестов) ---

@pytest.fixture
def fetcher():
    return AsyncMock(return_value=PAIRS_RESULT)


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def coordinator(fetcher, notifier):
    return QueryCoordinator(
        fetcher=fetcher,
        notifier=notifier,
        per_page=100,
        debounce_seconds=DEBOUNCE,
        discard_stale=False
    )


def _request(**overrides):
    values = {
        "protocol": DexProtocol.US2,
        "per_page": 100,
        "offset": 0,
        "base_currency": "",
        "quote_currency": "",
    }
    values.update(overrides)
    return TradeRequest(**values)


# --- Начальное состояние ---

@pytest.mark.asyncio
async def test_initial_fetch_lands_in_pair_results(coordinator, fetcher):
    """
    protocol=US2, base="", page=1 -> запрос с offset=0 -> результат в pair_results.
    """
    coordinator.refresh()
    await coordinator.wait_idle()

    fetcher.assert_awaited_once_with(_request())
    assert coordinator.pair_results == PAIRS_RESULT
    assert coordinator.transaction_results is None
    assert coordinator.loading is False


def test_initial_state(coordinator):
    snapshot = coordinator.snapshot()
    assert snapshot.query.protocol == DexProtocol.US2
    assert snapshot.query.base_currency == ""
    assert snapshot.query.pagination.page == 1
    assert snapshot.mode == "pairs"
    assert snapshot.can_go_back is False
    assert snapshot.can_go_forward is True


# --- Переходы состояния ---

@pytest.mark.asyncio
async def test_set_protocol_resets_currencies_and_page(coordinator):
    coordinator.set_base_currency("0xAAA")
    coordinator.set_quote_currency("0xBBB")
    coordinator.change_page(3)

    coordinator.set_protocol(DexProtocol.US3)

    query = coordinator.query
    assert query.protocol == DexProtocol.US3
    assert query.base_currency == ""
    assert query.quote_currency == ""
    assert query.pagination.page == 1
    await coordinator.close()


@pytest.mark.asyncio
async def test_set_base_currency_clears_quote_and_resets_page(coordinator):
    coordinator.set_base_currency("0xAAA")
    coordinator.set_quote_currency("0xBBB")
    coordinator.change_page(2)

    coordinator.set_base_currency("0xCCC")

    assert coordinator.query.base_currency == "0xCCC"
    assert coordinator.query.quote_currency == ""
    assert coordinator.query.pagination.page == 1
    await coordinator.close()


@pytest.mark.asyncio
async def test_set_quote_currency_resets_page_keeps_base(coordinator):
    coordinator.set_base_currency("0xAAA")
    coordinator.change_page(4)

    coordinator.set_quote_currency("0xBBB")

    assert coordinator.query.base_currency == "0xAAA"
    assert coordinator.query.quote_currency == "0xBBB"
    assert coordinator.query.pagination.page == 1
    await coordinator.close()


@pytest.mark.asyncio
async def test_change_page_preserves_currencies(coordinator):
    coordinator.set_base_currency("0xAAA")
    coordinator.set_quote_currency("0xBBB")

    coordinator.change_page(1)

    assert coordinator.query.pagination.page == 2
    assert coordinator.query.base_currency == "0xAAA"
    assert coordinator.query.quote_currency == "0xBBB"
    await coordinator.close()


@pytest.mark.asyncio
async def test_change_page_never_below_one(coordinator):
    for delta in [-1, -5, 2, -10, 1, -1, -1, 0, 3, -100]:
        coordinator.change_page(delta)
        assert coordinator.query.pagination.page >= 1

    assert coordinator.query.pagination.page == 1
    await coordinator.close()


@pytest.mark.asyncio
async def test_change_page_zero_is_noop(coordinator, fetcher):
    coordinator.change_page(2)
    await coordinator.wait_idle()
    first_request = fetcher.await_args.args[0]

    coordinator.change_page(0)
    coordinator.change_page(0)
    await coordinator.wait_idle()

    assert coordinator.query.pagination.page == 3
    assert fetcher.await_args.args[0] == first_request


# --- Debounce ---

@pytest.mark.asyncio
async def test_burst_produces_single_fetch_with_last_state(coordinator, fetcher):
    coordinator.set_protocol(DexProtocol.US3)
    coordinator.change_page(1)
    coordinator.change_page(1)
    coordinator.set_base_currency("0xAAA")
    coordinator.change_page(2)

    await coordinator.wait_idle()

    fetcher.assert_awaited_once_with(
        _request(protocol=DexProtocol.US3, offset=200, base_currency="0xAAA")
    )


@pytest.mark.asyncio
async def test_base_then_quote_within_window_single_fetch(coordinator, fetcher):
    fetcher.return_value = TRADES_RESULT

    coordinator.set_base_currency("0xAAA")
    await asyncio.sleep(DEBOUNCE / 5)
    coordinator.set_quote_currency("0xBBB")

    await coordinator.wait_idle()

    fetcher.assert_awaited_once_with(
        _request(base_currency="0xAAA", quote_currency="0xBBB")
    )
    assert coordinator.transaction_results == TRADES_RESULT
    assert coordinator.pair_results is None


@pytest.mark.asyncio
async def test_no_fetch_before_quiet_period(coordinator, fetcher):
    coordinator.change_page(1)
    await asyncio.sleep(DEBOUNCE / 5)

    assert coordinator.has_pending_fetch is True
    fetcher.assert_not_awaited()

    await coordinator.wait_idle()
    fetcher.assert_awaited_once()


@pytest.mark.asyncio
async def test_separate_bursts_produce_separate_fetches(coordinator, fetcher):
    coordinator.change_page(1)
    await coordinator.wait_idle()
    coordinator.change_page(1)
    await coordinator.wait_idle()

    assert fetcher.await_count == 2
    offsets = [call.args[0].offset for call in fetcher.await_args_list]
    assert offsets == [100, 200]


# --- Offset ---

@pytest.mark.asyncio
@pytest.mark.parametrize("pages_forward, expected_offset", [(0, 0), (1, 100), (2, 200), (9, 900)])
async def test_offset_is_per_page_times_page_minus_one(coordinator, fetcher, pages_forward, expected_offset):
    coordinator.change_page(pages_forward)
    await coordinator.wait_idle()

    assert fetcher.await_args.args[0].offset == expected_offset


# --- Маршрутизация результатов ---

@pytest.mark.asyncio
async def test_clearing_base_currency_returns_to_pair_mode(coordinator, fetcher):
    fetcher.return_value = TRADES_RESULT
    coordinator.set_base_currency("0xAAA")
    await coordinator.wait_idle()
    assert coordinator.transaction_results == TRADES_RESULT

    fetcher.return_value = PAIRS_RESULT
    coordinator.set_base_currency("")
    await coordinator.wait_idle()

    assert coordinator.snapshot().mode == "pairs"
    assert coordinator.pair_results == PAIRS_RESULT
    assert coordinator.transaction_results == TRADES_RESULT


# --- Ошибки ---

@pytest.mark.asyncio
async def test_fetch_failure_notifies_and_keeps_results(coordinator, fetcher, notifier):
    coordinator.refresh()
    await coordinator.wait_idle()
    assert coordinator.pair_results == PAIRS_RESULT

    fetcher.side_effect = FetchFailed("boom")
    coordinator.change_page(1)
    await coordinator.wait_idle()

    notifier.assert_called_once_with("error", FAILURE_TITLE, FAILURE_MESSAGE)
    assert coordinator.loading is False
    assert coordinator.pair_results == PAIRS_RESULT
    assert coordinator.transaction_results is None


@pytest.mark.asyncio
async def test_unexpected_error_is_treated_as_fetch_failure(coordinator, fetcher, notifier):
    fetcher.side_effect = RuntimeError("unexpected")

    coordinator.refresh()
    await coordinator.wait_idle()

    notifier.assert_called_once_with("error", FAILURE_TITLE, FAILURE_MESSAGE)
    assert coordinator.loading is False
    assert coordinator.pair_results is None


@pytest.mark.asyncio
async def test_no_automatic_retry_after_failure(coordinator, fetcher):
    fetcher.side_effect = FetchFailed("boom")

    coordinator.refresh()
    await coordinator.wait_idle()
    await asyncio.sleep(DEBOUNCE * 3)

    assert fetcher.await_count == 1
    assert coordinator.has_pending_fetch is False


# --- Флаг загрузки и подписка ---

@pytest.mark.asyncio
async def test_loading_flag_during_fetch(coordinator, fetcher):
    gate = asyncio.Event()

    async def slow_fetch(request):
        await gate.wait()
        return PAIRS_RESULT

    fetcher.side_effect = slow_fetch

    coordinator.refresh()
    await asyncio.sleep(DEBOUNCE * 3)

    snapshot = coordinator.snapshot()
    assert snapshot.ephemeral.loading is True
    assert snapshot.can_go_forward is False

    gate.set()
    await coordinator.wait_idle()
    assert coordinator.loading is False


@pytest.mark.asyncio
async def test_subscribers_receive_snapshots(coordinator):
    received = []
    unsubscribe = coordinator.subscribe(received.append)

    coordinator.refresh()
    await coordinator.wait_idle()

    # loading=True, запись результата (ещё loading), loading=False
    assert [s.ephemeral.loading for s in received] == [True, True, False]
    assert received[-1].pair_results == PAIRS_RESULT

    unsubscribe()
    coordinator.change_page(1)
    await coordinator.wait_idle()
    assert len(received) == 3


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_fetch(coordinator):
    coordinator.subscribe(MagicMock(side_effect=ValueError("bad subscriber")))

    coordinator.refresh()
    await coordinator.wait_idle()

    assert coordinator.pair_results == PAIRS_RESULT
    assert coordinator.loading is False


# --- Устаревшие ответы ---

def _gated_fetcher(gate):
    async def fetch(request):
        if request.base_currency:
            await gate.wait()
            return [{"for": request.base_currency}]
        return PAIRS_RESULT
    return fetch


@pytest.mark.asyncio
async def test_stale_response_overwrites_slot(notifier, caplog):
    """
    Медленный старый запрос, вернувшийся после нового, всё равно пишет в слот.
    Флаг загрузки сбрасывается первым завершившимся запросом.
    """
    gate = asyncio.Event()
    coordinator = QueryCoordinator(
        fetcher=_gated_fetcher(gate),
        notifier=notifier,
        debounce_seconds=DEBOUNCE,
        discard_stale=False
    )

    coordinator.set_base_currency("0xAAA")
    await asyncio.sleep(DEBOUNCE * 3)   # запрос #1 в полёте

    coordinator.set_base_currency("")
    await asyncio.sleep(DEBOUNCE * 3)   # запрос #2 завершён

    assert coordinator.pair_results == PAIRS_RESULT
    assert coordinator.loading is False

    gate.set()
    await coordinator.wait_idle()

    assert coordinator.transaction_results == [{"for": "0xAAA"}]
    assert "Устаревший ответ #1" in caplog.text


@pytest.mark.asyncio
async def test_stale_response_discarded_when_enabled(notifier):
    gate = asyncio.Event()
    coordinator = QueryCoordinator(
        fetcher=_gated_fetcher(gate),
        notifier=notifier,
        debounce_seconds=DEBOUNCE,
        discard_stale=True
    )

    coordinator.set_base_currency("0xAAA")
    await asyncio.sleep(DEBOUNCE * 3)
    coordinator.set_base_currency("")
    await asyncio.sleep(DEBOUNCE * 3)

    gate.set()
    await coordinator.wait_idle()

    assert coordinator.pair_results == PAIRS_RESULT
    assert coordinator.transaction_results is None


# --- Снимок состояния при срабатывании таймера ---

@pytest.mark.asyncio
async def test_fetch_uses_state_at_timer_expiry(coordinator, fetcher):
    """
    Правка, пришедшая сразу после срабатывания таймера, не попадает
    в уже выпущенный запрос, а запускает свой собственный.
    """
    coordinator.change_page(1)
    loop = asyncio.get_running_loop()
    loop.call_at(coordinator._timer.when(), coordinator.set_base_currency, "0xAAA")

    await coordinator.wait_idle()

    requests = [call.args[0] for call in fetcher.await_args_list]
    assert requests == [
        _request(offset=100),
        _request(base_currency="0xAAA"),
    ]


# --- Жизненный цикл ---

@pytest.mark.asyncio
async def test_close_cancels_pending_timer(coordinator, fetcher):
    coordinator.change_page(1)
    await coordinator.close()
    await asyncio.sleep(DEBOUNCE * 3)

    fetcher.assert_not_awaited()
    assert coordinator.has_pending_fetch is False


@pytest.mark.asyncio
async def test_close_cancels_in_flight_and_clears_loading(coordinator, fetcher):
    async def never_returns(request):
        await asyncio.Event().wait()

    fetcher.side_effect = never_returns

    coordinator.refresh()
    await asyncio.sleep(DEBOUNCE * 3)
    assert coordinator.loading is True

    await coordinator.close()
    assert coordinator.loading is False
