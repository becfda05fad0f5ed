"""进行中的模型调用的取消句柄池。

键为 (session_id, message_id)，供“停止”“重试”等外部操作查找句柄。
每次对话结束（完成、失败或被取消）都必须移除对应条目。

stop / stop_all 可以在其他线程调用，ChatController.abort 会切回事件循环线程唤醒等待者。
"""

from threading import Lock
from typing import Dict, Optional, Union

from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import ChatController

MessageKey = Union[str, int]


class ChatControllerPool:
    def __init__(self) -> None:
        self._controllers: Dict[str, ChatController] = {}
        self._lock = Lock()

    @staticmethod
    def key(session_id: str, message_id: MessageKey) -> str:
        return f"{session_id},{message_id}"

    def add_controller(self, session_id: str, message_id: MessageKey, controller: ChatController) -> str:
        key = self.key(session_id, message_id)
        with self._lock:
            self._controllers[key] = controller
        return key

    def get(self, session_id: str, message_id: MessageKey) -> Optional[ChatController]:
        with self._lock:
            return self._controllers.get(self.key(session_id, message_id))

    def stop(self, session_id: str, message_id: MessageKey) -> bool:
        """中止指定调用；没有登记的句柄时静默返回 False。"""
        controller = self.get(session_id, message_id)
        if controller is None:
            return False
        controller.abort("stopped by user")
        logger.info("Stopped chat", extra={"extra": {"session_id": session_id, "message_id": message_id}})
        return True

    def stop_all(self) -> None:
        with self._lock:
            controllers = list(self._controllers.values())
        for controller in controllers:
            controller.abort("stopped by user")

    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._controllers)

    def remove(self, session_id: str, message_id: MessageKey) -> None:
        with self._lock:
            self._controllers.pop(self.key(session_id, message_id), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)


controller_pool = ChatControllerPool()
