# config.py

import os
from dotenv import load_dotenv

load_dotenv()

# --- Bitquery Configuration ---
BITQUERY_API_URL = os.getenv('BITQUERY_API_URL', 'https://graphql.bitquery.io')
BITQUERY_API_KEY = os.getenv('BITQUERY_API_KEY')
REQUEST_TIMEOUT_SECONDS = 30

# --- Query Configuration ---
# Окно "тишины" (debounce) между правками фильтров и запросом
DEBOUNCE_SECONDS = 0.3
DEFAULT_PER_PAGE = 100

# Отбрасывать ответы, пришедшие после более нового запроса.
# По умолчанию выключено: ответ пишется в слот, даже если он устарел.
DISCARD_STALE_RESPONSES = False

# --- Notifications ---
NOTIFICATIONS_MAX = 50

# --- Export Configuration ---
PAIR_CSV_COLUMNS = [
    "protocol",
    "baseCurrency_symbol",
    "baseCurrency_address",
    "quoteCurrency_symbol",
    "quoteCurrency_address",
    "count",
    "tradeAmount",
]
TRANSACTION_CSV_COLUMNS = [
    "block_timestamp_time",
    "transaction_hash",
    "side",
    "baseCurrency_symbol",
    "baseAmount",
    "quoteCurrency_symbol",
    "quoteAmount",
    "quotePrice",
    "tradeAmount",
]

# --- Server ---
API_HOST = os.getenv('API_HOST', '0.0.0.0')
API_PORT = int(os.getenv('API_PORT', '8000'))

# --- Security ---
SECRET_TOKEN = os.getenv('SECRET_TOKEN')
