"""Best-effort operator notifications for mirrorsync.

This module provides:
- Notifier: Interface the orchestrator depends on
- ToastNotifier: Native desktop notification (Windows toast, macOS
  notification center, Linux notify-send)
- SoundNotifier: System beep
- EventLogNotifier: Windows event log, or the mirrorsync.events logger
- ChainNotifier: Tries notifiers in priority order until one succeeds

Notification failures are logged at DEBUG level and never propagated.
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Protocol
from xml.sax.saxutils import escape as xml_escape

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("mirrorsync.events")

APP_NAME = "MirrorSync"
TOAST_TITLE_VAR = "MIRRORSYNC_TOAST_TITLE"
TOAST_MESSAGE_VAR = "MIRRORSYNC_TOAST_MESSAGE"


class NotificationType(Enum):
    """Type of notification."""

    INFO = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass
class Notification:
    """Represents a notification to display."""

    title: str
    message: str
    type: NotificationType = NotificationType.INFO


class Notifier(Protocol):
    """Delivers a notification to the operator.

    Implementations return True when the notification was delivered.
    """

    def notify(self, notification: Notification) -> bool: ...


class NullNotifier:
    """Notifier that drops everything."""

    def notify(self, notification: Notification) -> bool:
        return False


def _creationflags() -> int:
    return getattr(subprocess, "CREATE_NO_WINDOW", 0)


class ToastNotifier:
    """Native desktop notification for the current platform."""

    def notify(self, notification: Notification) -> bool:
        system = platform.system()
        if system == "Windows":
            return self._notify_windows(notification)
        elif system == "Darwin":
            return self._notify_macos(notification)
        elif system == "Linux":
            return self._notify_linux(notification)
        logger.debug(f"Desktop notifications not supported on {system}")
        return False

    @staticmethod
    def _notify_windows(notification: Notification) -> bool:
        """Send a toast notification through PowerShell."""
        # Text reaches PowerShell through the environment: variable values are
        # not re-parsed when expanded, so $ and backticks stay literal.
        env = {
            **os.environ,
            TOAST_TITLE_VAR: xml_escape(notification.title),
            TOAST_MESSAGE_VAR: xml_escape(notification.message),
        }
        ps_script = f'''
        [Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, ContentType = WindowsRuntime] | Out-Null
        [Windows.Data.Xml.Dom.XmlDocument, Windows.Data.Xml.Dom.XmlDocument, ContentType = WindowsRuntime] | Out-Null

        $template = @"
        <toast>
            <visual>
                <binding template="ToastText02">
                    <text id="1">$($env:{TOAST_TITLE_VAR})</text>
                    <text id="2">$($env:{TOAST_MESSAGE_VAR})</text>
                </binding>
            </visual>
        </toast>
"@

        $xml = New-Object Windows.Data.Xml.Dom.XmlDocument
        $xml.LoadXml($template)
        $toast = New-Object Windows.UI.Notifications.ToastNotification $xml
        [Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier("{APP_NAME}").Show($toast)
        '''
        completed = subprocess.run(
            ["powershell", "-NoProfile", "-ExecutionPolicy", "Bypass", "-Command", ps_script],
            capture_output=True,
            check=False,
            creationflags=_creationflags(),
            env=env,
        )
        return completed.returncode == 0

    @staticmethod
    def _notify_macos(notification: Notification) -> bool:
        """Send a notification through osascript."""
        title = notification.title.replace('"', '\\"')
        message = notification.message.replace('"', '\\"')
        script = f'display notification "{message}" with title "{title}"'
        subprocess.run(["osascript", "-e", script], capture_output=True, check=True)
        return True

    @staticmethod
    def _notify_linux(notification: Notification) -> bool:
        """Send a notification through notify-send."""
        urgency = "critical" if notification.type == NotificationType.ERROR else "normal"
        subprocess.run(
            [
                "notify-send",
                "--urgency", urgency,
                "--app-name", APP_NAME,
                notification.title,
                notification.message,
            ],
            capture_output=True,
            check=True,
        )
        return True


class SoundNotifier:
    """Audible alert when no desktop notification could be shown."""

    def notify(self, notification: Notification) -> bool:
        if platform.system() == "Windows":
            import winsound

            flag = (
                winsound.MB_ICONHAND
                if notification.type == NotificationType.ERROR
                else winsound.MB_ICONASTERISK
            )
            winsound.MessageBeep(flag)
            return True

        if not sys.stderr.isatty():
            return False
        sys.stderr.write("\a")
        sys.stderr.flush()
        return True


class EventLogNotifier:
    """Records the notification in the system event log.

    On Windows this uses eventcreate; elsewhere the notification is written
    to the mirrorsync.events logger, which always succeeds.
    """

    _EVENT_TYPES = {
        NotificationType.INFO: "INFORMATION",
        NotificationType.WARNING: "WARNING",
        NotificationType.ERROR: "ERROR",
    }

    def notify(self, notification: Notification) -> bool:
        if platform.system() == "Windows":
            completed = subprocess.run(
                [
                    "eventcreate",
                    "/T", self._EVENT_TYPES[notification.type],
                    "/ID", "1000",
                    "/L", "APPLICATION",
                    "/SO", APP_NAME,
                    "/D", f"{notification.title}: {notification.message}",
                ],
                capture_output=True,
                check=False,
                creationflags=_creationflags(),
            )
            if completed.returncode == 0:
                return True

        level = logging.ERROR if notification.type == NotificationType.ERROR else logging.INFO
        event_logger.log(level, f"{notification.title}: {notification.message}")
        return True


class ChainNotifier:
    """Tries each notifier in order until one reports delivery."""

    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        self._notifiers = list(notifiers)

    def notify(self, notification: Notification) -> bool:
        for notifier in self._notifiers:
            try:
                if notifier.notify(notification):
                    return True
            except Exception as e:
                logger.debug(f"{type(notifier).__name__} failed: {e}")
        return False


def default_notifier() -> ChainNotifier:
    """Get the standard fallback chain: toast, then sound, then event log."""
    return ChainNotifier([ToastNotifier(), SoundNotifier(), EventLogNotifier()])


def send_notification(notifier: Notifier, notification: Notification) -> bool:
    """Deliver a notification, swallowing any failure.

    Returns:
        True if the notification was delivered.
    """
    try:
        return notifier.notify(notification)
    except Exception as e:
        logger.debug(f"Notification failed: {e}")
        return False


def notify_sync_complete(notifier: Notifier, destinations: int) -> bool:
    """Send a sync complete notification."""
    return send_notification(notifier, Notification(
        title=f"{APP_NAME} - Sync Complete",
        message=f"{destinations} destination(s) mirrored successfully",
        type=NotificationType.INFO,
    ))


def notify_partial_failure(
    notifier: Notifier,
    failed: Sequence[Path],
    total: int,
) -> bool:
    """Send a notification listing destinations that failed."""
    names = ", ".join(str(d) for d in failed)
    return send_notification(notifier, Notification(
        title=f"{APP_NAME} - Sync Incomplete",
        message=f"{len(failed)} of {total} destination(s) failed: {names}",
        type=NotificationType.WARNING,
    ))


def notify_validation_failed(notifier: Notifier, message: str) -> bool:
    """Send a dry-run failure notification."""
    return send_notification(notifier, Notification(
        title=f"{APP_NAME} - Dry Run Failed",
        message=message,
        type=NotificationType.ERROR,
    ))


def notify_run_error(notifier: Notifier, message: str) -> bool:
    """Send an error notification."""
    return send_notification(notifier, Notification(
        title=f"{APP_NAME} - Error",
        message=message,
        type=NotificationType.ERROR,
    ))
