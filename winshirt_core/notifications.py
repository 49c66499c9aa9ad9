# =============================================================================
# winshirt_core/notifications.py
# Non-blocking user notifications (toasts)
# =============================================================================
"""
Every adapter outcome is paired with a short user-facing message.

Pages running inside Streamlit use StreamlitNotifier, which shows toasts
that never block the page. Scripts and background jobs use
LoggingNotifier so the same messages end up in the log instead.
"""

from __future__ import annotations
from typing import Protocol

from winshirt_core.logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    """Sink for success/error/info/warning messages."""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...


class StreamlitNotifier:
    """Show messages as Streamlit toasts."""

    ICONS = {
        "success": "✅",
        "error": "🚨",
        "info": "ℹ️",
        "warning": "⚠️",
    }

    def _toast(self, level: str, message: str) -> None:
        import streamlit as st

        st.toast(message, icon=self.ICONS[level])

    def success(self, message: str) -> None:
        self._toast("success", message)

    def error(self, message: str) -> None:
        self._toast("error", message)

    def info(self, message: str) -> None:
        self._toast("info", message)

    def warning(self, message: str) -> None:
        self._toast("warning", message)


class LoggingNotifier:
    """Route user-facing messages to the application log."""

    def __init__(self, name: str = "winshirt_core.notifications"):
        self._logger = get_logger(name)

    def success(self, message: str) -> None:
        self._logger.info(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)
