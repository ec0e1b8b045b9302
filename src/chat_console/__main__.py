"""Thin runnable wrapper for the chat console."""

from chat_console.tui_app import main


if __name__ == "__main__":
    raise SystemExit(main())
