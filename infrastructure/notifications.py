"""
通知通道实现

CeleryNotifier 把通知投递到 Celery 队列，由 worker 负责真正发送；
LoggingNotifier 只写日志，用于本地开发或未配置消息代理的部署。
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from kombu.exceptions import OperationalError

from application.ports.notifier import NotificationKind
from core.logging_config import get_logger


logger = get_logger(__name__)


class CeleryNotifier:
    def __init__(self, dispatcher: Optional[Any] = None):
        if dispatcher is None:
            from infrastructure.tasks import TaskDispatcher

            dispatcher = TaskDispatcher()
        self._dispatcher = dispatcher

    async def send(self, kind: NotificationKind, recipient: str, data: dict[str, Any]) -> bool:
        try:
            # send_task 是同步的网络调用，放到线程池避免阻塞事件循环
            await asyncio.to_thread(self._dispatcher.send_notification, kind.value, recipient, data)
        except OperationalError as e:
            logger.warning("notification_enqueue_failed", kind=kind.value, recipient=recipient, error=str(e))
            return False
        logger.info("notification_enqueued", kind=kind.value, recipient=recipient)
        return True


class LoggingNotifier:
    async def send(self, kind: NotificationKind, recipient: str, data: dict[str, Any]) -> bool:
        logger.info("notification_logged", kind=kind.value, recipient=recipient, **data)
        return True
