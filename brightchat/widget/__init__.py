from brightchat.widget.chat import ChatSession, DisplayedMessage, Screen
from brightchat.widget.session import FileStorage, MemoryStorage, get_or_create_chat_id

__all__ = [
    "ChatSession",
    "DisplayedMessage",
    "Screen",
    "FileStorage",
    "MemoryStorage",
    "get_or_create_chat_id",
]
