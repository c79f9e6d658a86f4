"""
Windows UI Automation backend for the device application.

Wraps pywinauto's UIA wrappers in the UiElement interface and uses psutil
to track every process started from the application's executable (vendor
launchers often re-spawn themselves under a new PID).
"""
import logging
from pathlib import Path
from typing import List, Tuple

import psutil

from .ui import UiApplication, UiElement

# pywinauto and pywin32 only install on Windows
try:
    import win32clipboard
    import win32con
    from pywinauto import Application, Desktop
    from pywinauto.keyboard import send_keys
    from pywinauto.uia_defines import NoPatternInterfaceError
except ImportError:
    Application = None

CONTROL_TYPES = {
    "Button": "button",
    "SplitButton": "button",
    "Hyperlink": "button",
    "Edit": "edit",
    "Text": "text",
    "Window": "window",
    "Pane": "pane",
    "CheckBox": "checkbox",
}


class UiaElement(UiElement):
    def __init__(self, wrapper):
        self._w = wrapper

    def __eq__(self, other):
        return isinstance(other, UiaElement) and self._w.element_info == other._w.element_info

    def __hash__(self):
        return hash(self._w.element_info.runtime_id)

    @property
    def name(self) -> str:
        return self._w.window_text() or self._w.element_info.name or ""

    @property
    def control_type(self) -> str:
        ct = self._w.element_info.control_type or ""
        return CONTROL_TYPES.get(ct, ct.lower())

    @property
    def is_password(self) -> bool:
        try:
            return bool(self._w.element_info.element.CurrentIsPassword)
        except (AttributeError, OSError):
            return False

    @property
    def rectangle(self) -> Tuple[int, int, int, int]:
        r = self._w.rectangle()
        return (r.left, r.top, r.right, r.bottom)

    @property
    def supports_value(self) -> bool:
        try:
            return self._w.iface_value is not None
        except NoPatternInterfaceError:
            return False

    def children(self) -> List[UiElement]:
        return [UiaElement(c) for c in self._w.children()]

    def descendants(self) -> List[UiElement]:
        return [UiaElement(c) for c in self._w.descendants()]

    def invoke(self) -> None:
        try:
            self._w.invoke()
        except (NoPatternInterfaceError, AttributeError):
            # Owner-drawn buttons expose no invoke pattern
            self._w.click_input()

    def set_value(self, text: str) -> None:
        self._w.iface_value.SetValue(text)

    def click_input(self) -> None:
        self._w.set_focus()
        self._w.click_input()

    def paste_text(self, text: str) -> None:
        _set_clipboard(text)
        try:
            send_keys("^a^v", pause=0.05)
        finally:
            _set_clipboard("")

    def close(self) -> None:
        self._w.close()


class UiaApplication(UiApplication):
    """The device application, launched and driven through UI Automation."""

    def __init__(self):
        if Application is None:
            raise RuntimeError("pywinauto is required to drive the device application (Windows only).")
        self._app = None
        self._exe_name = ""

    def start(self, exe_path: str) -> None:
        self._exe_name = Path(exe_path).name.lower()
        self._app = Application(backend="uia").start(f'"{exe_path}"', work_dir=str(Path(exe_path).parent))

    def top_windows(self) -> List[UiElement]:
        desktop = Desktop(backend="uia")
        windows: List[UiElement] = []
        for pid in self._pids():
            try:
                windows.extend(UiaElement(w) for w in desktop.windows(process=pid, visible_only=True))
            except Exception as e:
                logging.debug(f"Window enumeration failed for pid {pid}: {e}")
        return windows

    def is_running(self) -> bool:
        return bool(self._pids())

    def request_close(self) -> None:
        for window in self.top_windows():
            try:
                window.close()
            except Exception as e:
                logging.debug(f"Close request failed for {window.name!r}: {e}")

    def kill(self) -> None:
        for pid in self._pids():
            try:
                psutil.Process(pid).kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logging.debug(f"Could not kill pid {pid}: {e}")

    def _pids(self) -> List[int]:
        pids = []
        for proc in psutil.process_iter(["name"]):
            if (proc.info.get("name") or "").lower() == self._exe_name:
                pids.append(proc.pid)
        return pids


def _set_clipboard(text: str) -> None:
    win32clipboard.OpenClipboard()
    try:
        win32clipboard.EmptyClipboard()
        if text:
            win32clipboard.SetClipboardText(text, win32con.CF_UNICODETEXT)
    finally:
        win32clipboard.CloseClipboard()
