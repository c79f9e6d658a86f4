import logging
from typing import Optional, Tuple

from .. import config
from ..models import ModalKind
from .ui import UiApplication, UiElement, find_control, label_matches


def classify_modal(window: UiElement) -> ModalKind:
    """
    Classifies a transient window by the keywords in its title and text.
    Auth failures are checked before generic errors since their messages
    usually also contain "error".
    """
    texts = window.texts()
    if not texts:
        return ModalKind.NONE

    def _any(keywords) -> bool:
        return any(label_matches(t, kw) for t in texts for kw in keywords)

    if _any(config.AUTH_FAILED_KEYWORDS):
        return ModalKind.ERROR_AUTH_FAILED
    if _any(config.ALREADY_CONNECTED_KEYWORDS):
        return ModalKind.ERROR_ALREADY_CONNECTED
    if _any(config.ERROR_KEYWORDS):
        return ModalKind.ERROR_GENERIC
    if _any(config.SUCCESS_KEYWORDS):
        return ModalKind.SUCCESS
    return ModalKind.NONE


def dismiss_modal(window: UiElement) -> None:
    """Clicks the modal's confirmation button, or closes it as a last resort."""
    button = find_control(window, config.CONFIRM_LABELS)
    if button is None:
        buttons = [d for d in window.descendants() if d.control_type == "button"]
        button = buttons[0] if buttons else None

    try:
        if button is not None:
            button.invoke()
        else:
            window.close()
    except Exception as e:
        logging.warning(f"Could not dismiss dialog {window.name!r}: {e}")


def modal_summary(window: UiElement) -> str:
    return " | ".join(t.strip() for t in window.texts() if t.strip())


def scan_modals(app: UiApplication, main_window: UiElement) -> Tuple[ModalKind, Optional[UiElement]]:
    """
    Looks at every top-level window except the main one and returns the
    first that classifies as something other than NONE.
    """
    for window in app.top_windows():
        if window is main_window or window == main_window:
            continue
        kind = classify_modal(window)
        if kind is not ModalKind.NONE:
            logging.debug(f"Dialog {window.name!r} classified as {kind.value}")
            return kind, window
    return ModalKind.NONE, None
