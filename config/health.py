from __future__ import annotations

from typing import Any

from django.http import JsonResponse
from django.utils import timezone

from chat_sync.conversations.services import get_store
from chat_sync.realtime.socketio import live_room_count


def check_store() -> dict[str, Any]:
    try:
        conversations = len(get_store())
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True, "conversations": conversations}


def check_realtime() -> dict[str, Any]:
    try:
        rooms = live_room_count()
    except Exception as exc:  # noqa: BLE001 - health must degrade, not crash
        return {"ok": False, "error": str(exc)}
    else:
        return {"ok": True, "rooms": rooms}


def health(request):
    components = {"store": check_store(), "realtime": check_realtime()}

    all_ok = all(v.get("ok", False) for v in components.values())
    some_ok = any(v.get("ok", False) for v in components.values())

    status = "ok" if all_ok else ("degraded" if some_ok else "down")
    http_status = 200 if all_ok else 503

    return JsonResponse(
        {
            "status": status,
            "timestamp": timezone.now().isoformat(),
            "components": components,
        },
        status=http_status,
    )
