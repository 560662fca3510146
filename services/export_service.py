# services/export_service.py

import io
import logging
from typing import List, Dict, Any, Optional

import pandas as pd

import config

log = logging.getLogger(__name__)


def results_to_csv(
    results: Optional[List[Dict[str, Any]]],
    mode: str,
    protocol: str = "",
    log_prefix: str = "[Export]"
) -> Optional[str]:
    """
    Превращает слот результатов (вложенный JSON dexTrades) в CSV.
    Вложенные поля раскрываются через '_' (baseCurrency.symbol -> baseCurrency_symbol).
    Возвращает None, если данных нет.
    """
    if not results:
        log.warning(f"{log_prefix} Нет данных для экспорта ({mode}).")
        return None

    df = pd.json_normalize(results, sep="_")

    if mode == "pairs":
        df["protocol"] = protocol
        wanted = config.PAIR_CSV_COLUMNS
    else:
        wanted = config.TRANSACTION_CSV_COLUMNS

    columns_in_order = [col for col in wanted if col in df.columns]
    if columns_in_order:
        df = df[columns_in_order]

    log.info(f"{log_prefix} DataFrame создан ({mode}). {df.shape[0]} строк.")

    stream = io.StringIO()
    df.to_csv(stream, index=False)
    return stream.getvalue()
