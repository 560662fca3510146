# api/endpoints/results.py

import logging
from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.encoders import jsonable_encoder

from services.export_service import results_to_csv
from services.query_coordinator import QueryCoordinator

from api.dependencies import get_coordinator

# --- Setup ---
log = logging.getLogger(__name__)
results_router = APIRouter()


def _slot_response(data, slot: str, log_prefix: str):
    if data is None:
        log.warning(f"{log_prefix} Слот '{slot}' пуст.")
        raise HTTPException(status_code=404, detail=f"No {slot} loaded yet.")

    log.info(f"{log_prefix} ✅ Возвращаем {len(data)} записей.")
    return JSONResponse(content=jsonable_encoder({
        "count": len(data),
        "data": data
    }))


# ============================================================================
# === Слоты результатов (JSON) ===
# ============================================================================

@results_router.get("/results/pairs")
async def get_pair_results(coordinator: QueryCoordinator = Depends(get_coordinator)):
    """Список пар (pair-discovery, baseCurrency не задан)."""
    return _slot_response(coordinator.pair_results, "pairs", "[API /results/pairs GET]")


@results_router.get("/results/transactions")
async def get_transaction_results(coordinator: QueryCoordinator = Depends(get_coordinator)):
    """Сделки по выбранной паре (baseCurrency задан)."""
    return _slot_response(coordinator.transaction_results, "transactions", "[API /results/transactions GET]")


# ============================================================================
# === Экспорт текущего слота (CSV) ===
# ============================================================================

@results_router.get("/results/csv")
async def get_results_csv(coordinator: QueryCoordinator = Depends(get_coordinator)):
    log_prefix = "[API /results/csv GET]"
    snapshot = coordinator.snapshot()
    log.info(f"{log_prefix} Запрошен CSV (режим: {snapshot.mode})...")

    try:
        csv_text = results_to_csv(
            snapshot.active_results,
            mode=snapshot.mode,
            protocol=snapshot.query.protocol.value,
            log_prefix=f"{log_prefix} [Export]"
        )
    except Exception as e:
        log.error(f"{log_prefix} ❌ Ошибка: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    if csv_text is None:
        return Response(content="No data available", status_code=404, media_type="text/plain")

    response = StreamingResponse(iter([csv_text]), media_type="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename=dex_{snapshot.mode}.csv"
    return response
