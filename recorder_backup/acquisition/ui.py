"""
Capability-level view of the device application's window tree.

The state machine only talks to UiElement / UiApplication; the concrete
accessibility backend lives in uia_backend.py. Control lookup is done by
label matching so it keeps working across the application's translations.
"""
import logging
import math
import re
import time
import unicodedata
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional, Tuple

from .. import config
from ..polling import wait_until


class UiElement(ABC):
    """A node in an externally-owned, mutable window tree."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def control_type(self) -> str:
        """Lowercase control kind: button, edit, text, window, ..."""

    @property
    def is_password(self) -> bool:
        return False

    @property
    def rectangle(self) -> Tuple[int, int, int, int]:
        """(left, top, right, bottom) in screen coordinates."""
        return (0, 0, 0, 0)

    @property
    def supports_value(self) -> bool:
        return False

    @abstractmethod
    def children(self) -> List["UiElement"]: ...

    def descendants(self) -> List["UiElement"]:
        found: List[UiElement] = []
        stack = list(reversed(self.children()))
        while stack:
            node = stack.pop()
            found.append(node)
            stack.extend(reversed(node.children()))
        return found

    def texts(self) -> List[str]:
        """Title plus every visible text in the subtree."""
        out = [self.name] if self.name else []
        out.extend(d.name for d in self.descendants() if d.name)
        return out

    @abstractmethod
    def invoke(self) -> None: ...

    def set_value(self, text: str) -> None:
        raise NotImplementedError("value pattern not supported")

    def click_input(self) -> None:
        raise NotImplementedError("raw input not supported")

    def paste_text(self, text: str) -> None:
        raise NotImplementedError("clipboard paste not supported")

    def close(self) -> None:
        raise NotImplementedError("close not supported")


class UiApplication(ABC):
    """A launched instance of the device application."""

    @abstractmethod
    def start(self, exe_path: str) -> None: ...

    @abstractmethod
    def top_windows(self) -> List[UiElement]: ...

    @abstractmethod
    def is_running(self) -> bool: ...

    @abstractmethod
    def request_close(self) -> None:
        """Sends a close signal to every process of the application."""

    @abstractmethod
    def kill(self) -> None:
        """Forcibly terminates every remaining process of the application."""

    def main_window(self, timeout: float, interval: float = config.UI_POLL_INTERVAL,
                    clock: Callable[[], float] = time.monotonic,
                    sleep: Callable[[float], None] = time.sleep) -> Optional[UiElement]:
        def _first_window():
            windows = self.top_windows()
            return windows[0] if windows else None
        return wait_until(_first_window, timeout, interval, clock=clock, sleep=sleep)

    def terminate(self, grace: float, interval: float = config.UI_POLL_INTERVAL,
                  clock: Callable[[], float] = time.monotonic,
                  sleep: Callable[[float], None] = time.sleep) -> bool:
        """
        Closes the application gracefully, dismissing any "are you sure"
        prompt, and kills whatever is still alive after `grace` seconds.

        Returns:
            True if the application exited without being killed.
        """
        if not self.is_running():
            return True

        self.request_close()

        def _gone() -> bool:
            if not self.is_running():
                return True
            for window in self.top_windows():
                button = find_control(window, config.CONFIRM_LABELS)
                if button is not None:
                    logging.debug(f"Confirming close prompt: {window.name!r}")
                    button.invoke()
            return False

        if wait_until(_gone, grace, interval, clock=clock, sleep=sleep):
            logging.info("Device application closed.")
            return True

        logging.warning("Device application did not close in time, killing it.")
        self.kill()
        return False


# --- Label Matching ---

def normalize_label(text: str) -> str:
    """Lowercase, strip accents and '&' mnemonics, collapse whitespace."""
    text = unicodedata.normalize("NFKD", text or "")
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = text.replace("&", "")
    return " ".join(text.lower().split())


def label_matches(name: str, label: str) -> bool:
    pattern = r"(?<!\w)" + re.escape(normalize_label(label)) + r"(?!\w)"
    return re.search(pattern, normalize_label(name)) is not None


def find_control(root: UiElement,
                 labels: Iterable[str],
                 control_type: Optional[str] = "button") -> Optional[UiElement]:
    """
    Returns the first descendant of `control_type` whose name matches one
    of `labels`. Labels are tried in order so earlier ones take priority.
    """
    candidates = [d for d in root.descendants()
                  if control_type is None or d.control_type == control_type]
    for label in labels:
        for el in candidates:
            if label_matches(el.name, label):
                return el
    return None


def find_password_field(root: UiElement) -> Optional[UiElement]:
    """
    Locates the password entry using progressively weaker evidence:
      1. An edit flagged as a secret field.
      2. An edit whose own name looks like a password label.
      3. The edit nearest to a caption that looks like a password label.
      4. The last edit in the window.
    """
    descendants = root.descendants()
    edits = [d for d in descendants if d.control_type == "edit"]
    if not edits:
        return None

    for el in edits:
        if el.is_password:
            return el

    for el in edits:
        if any(label_matches(el.name, lbl) for lbl in config.PASSWORD_LABELS):
            return el

    captions = [d for d in descendants
                if d.control_type == "text"
                and any(label_matches(d.name, lbl) for lbl in config.PASSWORD_LABELS)]
    if captions:
        caption = captions[0]
        return min(edits, key=lambda el: _distance(caption.rectangle, el.rectangle))

    return edits[-1]


def enter_secret(element: UiElement, secret: str) -> str:
    """
    Puts `secret` into the entry. Prefers the structured value pattern,
    falls back to focusing the field and pasting through the clipboard.

    Returns:
        The mechanism used: "value" or "clipboard".
    """
    if element.supports_value:
        try:
            element.set_value(secret)
            return "value"
        except Exception as e:
            logging.debug(f"Value pattern rejected input, falling back to clipboard: {type(e).__name__}")

    element.click_input()
    element.paste_text(secret)
    return "clipboard"


def _distance(a: Tuple[int, int, int, int], b: Tuple[int, int, int, int]) -> float:
    ax, ay = (a[0] + a[2]) / 2, (a[1] + a[3]) / 2
    bx, by = (b[0] + b[2]) / 2, (b[1] + b[3]) / 2
    return math.hypot(ax - bx, ay - by)
