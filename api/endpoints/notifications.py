# api/endpoints/notifications.py

import logging
from fastapi import APIRouter, Depends

from services.notification_service import NotificationCenter

from api.security import verify_token
from api.dependencies import get_notification_center

# --- Setup ---
log = logging.getLogger(__name__)
notifications_router = APIRouter()


@notifications_router.get("/notifications")
async def get_notifications(limit: int = 20, center: NotificationCenter = Depends(get_notification_center)):
    """Последние уведомления для пользователя (новые первыми)."""
    items = center.latest(limit=limit)
    return {"count": len(items), "notifications": [n.to_dict() for n in items]}


@notifications_router.post("/notifications/clear", dependencies=[Depends(verify_token)])
async def clear_notifications(center: NotificationCenter = Depends(get_notification_center)):
    deleted = center.clear()
    log.info(f"[API /notifications/clear POST] ✅ Удалено уведомлений: {deleted}")
    return {"message": "Уведомления очищены.", "notifications_deleted": deleted}
