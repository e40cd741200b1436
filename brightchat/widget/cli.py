"""
Terminal chat widget.

Usage:
    brightchat-widget                         # Talk to the local API
    brightchat-widget --url https://host      # Talk to a deployed API
    brightchat-widget --reset-session         # Start over with a new chat id
"""

import argparse
import asyncio
import os
import sys

import httpx

from brightchat.config import CHAT_API_URL
from brightchat.widget.chat import ChatSession, render_lines
from brightchat.widget.session import SESSION_STORAGE_KEY, FileStorage

DEFAULT_STORAGE_PATH = os.path.join(os.path.expanduser("~"), ".brightchat", "storage.json")
QUIT_COMMANDS = ("/quit", "/exit")

WELCOME_TITLE = "Get Your Personalized Quote"
WELCOME_POINTS = (
    "Answer a few quick questions",
    "Takes less than 2 minutes",
    "Our team follows up with your best options",
)
AGENT_NAME = "Mr. Bright"


class Colors:
    """ANSI color codes."""
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    GRAY = "\033[90m"
    BOLD = "\033[1m"
    END = "\033[0m"


class TerminalView:
    """Prints messages as they are appended to the session."""

    def __init__(self, color: bool = True, out=None):
        self.color = color
        self.out = out or sys.stdout
        self._shown = 0
        self._typing_shown = False

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{Colors.END}" if self.color else text

    def write(self, text: str = "") -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def welcome(self) -> None:
        self.write()
        self.write(self._paint(WELCOME_TITLE, Colors.BOLD))
        self.write()
        for point in WELCOME_POINTS:
            self.write(f"  • {point}")
        self.write()
        self.write(f"  {AGENT_NAME}  ·  Free • No commitment")
        self.write()

    def __call__(self, session: ChatSession) -> None:
        for message in session.messages[self._shown:]:
            name, color = (AGENT_NAME, Colors.BLUE) if message.sender == "agent" else ("You", Colors.GREEN)
            stamp = message.timestamp.strftime("%H:%M")
            self.write(self._paint(f"{name} [{stamp}]", color))
            for line in render_lines(message.text):
                self.write(f"  {line}")
        self._shown = len(session.messages)

        if session.is_typing and not self._typing_shown:
            self.write(self._paint(f"{AGENT_NAME} is typing…", Colors.GRAY))
        self._typing_shown = session.is_typing


async def chat_loop(session: ChatSession, view: TerminalView) -> None:
    view.welcome()
    await asyncio.to_thread(input, "Press Enter to start the conversation ")
    session.start_chat()
    try:
        while True:
            line = await asyncio.to_thread(input, "")
            if line.strip() in QUIT_COMMANDS:
                break
            await session.send(line)
    finally:
        session.close()


async def run_widget(url: str, storage: FileStorage, color: bool = True) -> None:
    view = TerminalView(color=color)
    async with httpx.AsyncClient(base_url=url) as client:
        session = ChatSession(client, storage, on_change=view)
        await chat_loop(session, view)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="BrightChat terminal widget")
    parser.add_argument("--url", default=CHAT_API_URL, help=f"Chat API base URL (default: {CHAT_API_URL})")
    parser.add_argument("--storage", default=DEFAULT_STORAGE_PATH, help="File holding the chat session id")
    parser.add_argument("--reset-session", action="store_true", help="Forget the stored chat session id")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    storage = FileStorage(args.storage)
    if args.reset_session:
        storage.remove_item(SESSION_STORAGE_KEY)
    try:
        asyncio.run(run_widget(args.url, storage, color=not args.no_color))
    except (KeyboardInterrupt, EOFError):
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
