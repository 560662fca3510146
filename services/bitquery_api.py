# services/bitquery_api.py

import logging
from typing import List, Dict, Any, Optional

import httpx

import config
from .models import TradeRequest

log = logging.getLogger(__name__)


class FetchFailed(Exception):
    """Любая ошибка транспорта или API (без различения причин)."""


# ============================================================================
# === GraphQL запросы ===
# ============================================================================

PAIRS_QUERY = """
query ($network: EthereumNetwork!, $exchangeName: String!, $limit: Int!, $offset: Int!) {
  ethereum(network: $network) {
    dexTrades(
      options: {desc: "count", limit: $limit, offset: $offset}
      exchangeName: {is: $exchangeName}
    ) {
      count
      tradeAmount(in: USD)
      baseCurrency { symbol address }
      quoteCurrency { symbol address }
    }
  }
}
"""

TRANSACTIONS_QUERY_TEMPLATE = """
query ($network: EthereumNetwork!, $exchangeName: String!, $limit: Int!, $offset: Int!, $baseCurrency: String!{quote_var}) {{
  ethereum(network: $network) {{
    dexTrades(
      options: {{desc: "block.timestamp.time", limit: $limit, offset: $offset}}
      exchangeName: {{is: $exchangeName}}
      baseCurrency: {{is: $baseCurrency}}{quote_filter}
    ) {{
      block {{ timestamp {{ time(format: "%Y-%m-%d %H:%M:%S") }} height }}
      transaction {{ hash }}
      side
      baseCurrency {{ symbol address }}
      baseAmount
      quoteCurrency {{ symbol address }}
      quoteAmount
      quotePrice
      tradeAmount(in: USD)
    }}
  }}
}}
"""


def build_graphql_payload(request: TradeRequest) -> Dict[str, Any]:
    """
    Собирает тело GraphQL-запроса.
    Без baseCurrency - список пар (pair discovery), иначе - сделки по паре.
    Фильтр quoteCurrency добавляется только если он задан.
    """
    variables = {
        "network": request.protocol.network,
        "exchangeName": request.protocol.exchange_name,
        "limit": request.per_page,
        "offset": request.offset,
    }

    if not request.base_currency:
        return {"query": PAIRS_QUERY, "variables": variables}

    variables["baseCurrency"] = request.base_currency
    if request.quote_currency:
        variables["quoteCurrency"] = request.quote_currency
        query = TRANSACTIONS_QUERY_TEMPLATE.format(
            quote_var=", $quoteCurrency: String!",
            quote_filter="\n      quoteCurrency: {is: $quoteCurrency}",
        )
    else:
        query = TRANSACTIONS_QUERY_TEMPLATE.format(quote_var="", quote_filter="")

    return {"query": query, "variables": variables}


def _build_headers() -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if config.BITQUERY_API_KEY:
        headers["X-API-KEY"] = config.BITQUERY_API_KEY
    return headers


def _extract_dex_trades(body: Any) -> List[Dict[str, Any]]:
    if not isinstance(body, dict):
        raise FetchFailed("Неожиданный формат ответа Bitquery")

    if body.get("errors"):
        errors = body["errors"]
        if not isinstance(errors, list):
            errors = [errors]
        messages = "; ".join(
            str(err.get("message", err) if isinstance(err, dict) else err) for err in errors
        )
        raise FetchFailed(f"Bitquery вернул ошибки: {messages}")

    data = body.get("data")
    if not isinstance(data, dict):
        raise FetchFailed("В ответе Bitquery нет объекта data")

    ethereum = data.get("ethereum")
    if not isinstance(ethereum, dict):
        raise FetchFailed("В ответе Bitquery нет поля data.ethereum")

    return ethereum.get("dexTrades") or []


# ============================================================================
# === fetch_trades ===
# ============================================================================

async def fetch_trades(
    request: TradeRequest,
    client: Optional[httpx.AsyncClient] = None,
    log_prefix: str = "[Bitquery]"
) -> List[Dict[str, Any]]:
    """
    Выполняет один запрос к Bitquery и возвращает список dexTrades.
    Любая ошибка (сеть, HTTP-статус, не-JSON, GraphQL errors) -> FetchFailed.
    Повторов нет.
    """
    payload = build_graphql_payload(request)
    mode = "сделки" if request.base_currency else "пары"

    log.info(
        f"{log_prefix} 🔄 Запрос ({mode}) {request.protocol.value}: "
        f"limit={request.per_page}, offset={request.offset}"
    )

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT_SECONDS) as own_client:
                response = await own_client.post(config.BITQUERY_API_URL, json=payload, headers=_build_headers())
        else:
            response = await client.post(config.BITQUERY_API_URL, json=payload, headers=_build_headers())

        response.raise_for_status()
        body = response.json()

    except httpx.HTTPStatusError as e:
        log.warning(f"{log_prefix} ⚠️ HTTP ошибка: {e.response.status_code}")
        raise FetchFailed(f"HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        log.warning(f"{log_prefix} ⚠️ Сетевая ошибка ({type(e).__name__}): {e}")
        raise FetchFailed(str(e)) from e
    except ValueError as e:
        log.warning(f"{log_prefix} ⚠️ Ответ не является JSON: {e}")
        raise FetchFailed("Ответ не является JSON") from e

    trades = _extract_dex_trades(body)
    log.info(f"{log_prefix} ✅ Получено {len(trades)} записей.")
    return trades
