import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from pyfcm import FCMNotification
from pyfcm.errors import FCMError, FCMNotRegisteredError

from marketplace.core.config import FCM_PROJECT_ID, FCM_SERVICE_ACCOUNT_FILE
from marketplace.repositories.device_repository import DeviceRepository
from marketplace.utils.realtime_bus import NOTIFICATIONS_CREATED, get_bus

logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[dict] = None) -> List[str]:
        return []


class FcmPush:

    enabled = True

    def __init__(self, service_account_file: str, project_id: str) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[dict] = None) -> List[str]:
        """Push to every token; returns the tokens FCM reported as no longer registered."""
        # FCM data payloads only carry strings
        payload = {key: "" if value is None else str(value) for key, value in (data or {}).items()}
        stale = []
        for token in tokens:
            try:
                # pyfcm is sync
                await asyncio.to_thread(
                    self._client.notify,
                    fcm_token=token,
                    notification_title=title,
                    notification_body=body,
                    data_payload=payload,
                )
            except FCMNotRegisteredError:
                stale.append(token)
            except FCMError:
                logger.warning("FCM push to one device failed", exc_info=True)
        return stale


_push = None


async def get_push():
    global _push
    if _push is not None:
        return _push
    if FCM_SERVICE_ACCOUNT_FILE and FCM_PROJECT_ID:
        _push = FcmPush(FCM_SERVICE_ACCOUNT_FILE, FCM_PROJECT_ID)
    else:
        _push = NoopPush()
    return _push


class PushDispatcher:
    """
    Turns notification records published on the bus into device pushes.

    This is the delivery side of the notification handoff: services only write
    notification rows, they never call the dispatcher.
    """

    def __init__(self, device_repo: DeviceRepository, push=None) -> None:
        self._device_repo = device_repo
        self._push = push
        self._sub = None
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._push is None:
            self._push = await get_push()
        if not self._push.enabled:
            logger.info("Push delivery disabled, FCM is not configured")
            return
        bus = await get_bus()
        self._sub = await bus.subscribe(NOTIFICATIONS_CREATED, self._on_message)
        self._task = asyncio.create_task(self._sub.run())

    async def stop(self) -> None:
        if self._sub is not None:
            await self._sub.cancel()
        if self._task is not None:
            self._task.cancel()
        self._sub = None
        self._task = None

    async def _on_message(self, message: str) -> None:
        try:
            notification = json.loads(message)
        except ValueError:
            logger.warning("Dropping malformed notification event")
            return
        try:
            await self.deliver(notification)
        except Exception:
            # the subscription keeps running after a failed delivery
            logger.exception("Push delivery for notification %s failed", notification.get("_id"))

    async def deliver(self, notification: Dict[str, Any]) -> int:
        recipient_id = notification.get("recipient_id")
        if not recipient_id:
            return 0
        tokens = await self._device_repo.get_tokens(recipient_id, platform="fcm")
        if not tokens:
            return 0
        payload = dict(notification.get("payload") or {})
        payload["type"] = notification.get("type")
        payload["notification_id"] = notification.get("_id")
        stale = await self._push.send_fcm(tokens, notification.get("title", ""), payload.get("preview") or "", payload)
        for token in stale:
            await self._device_repo.remove_token(token)
        return len(tokens) - len(stale)
