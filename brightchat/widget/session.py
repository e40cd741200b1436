"""Widget: client-local storage and the chat session identifier."""

import json
import logging
import os
import random
import string
import time
import uuid
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SESSION_STORAGE_KEY = "brightchat_session_id"

_BASE36 = string.digits + string.ascii_lowercase


class MemoryStorage:
    """Key/value storage that lives as long as the process."""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


class FileStorage:
    """
    Key/value storage persisted as a JSON object on disk, so the session
    survives restarts of the widget. A missing or corrupt file reads as empty.
    """

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f)

    def get_item(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def clear(self) -> None:
        self._save({})


def _random_base36(length: int = 13) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def fallback_chat_id() -> str:
    """Time + random identifier for when a UUID cannot be generated."""
    return f"{int(time.time() * 1000)}-{_random_base36()}-{_random_base36()}"


def generate_chat_id() -> str:
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        # uuid4 needs os.urandom
        return fallback_chat_id()


def get_or_create_chat_id(storage) -> str:
    chat_id = storage.get_item(SESSION_STORAGE_KEY)
    if not chat_id:
        chat_id = generate_chat_id()
        storage.set_item(SESSION_STORAGE_KEY, chat_id)
    return chat_id
