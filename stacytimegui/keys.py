from __future__ import annotations

from PySide6.QtCore import Qt

_KEY_CODES: dict[Qt.Key, str] = {
    Qt.Key.Key_Space: "Space",
    Qt.Key.Key_Home: "Home",
    Qt.Key.Key_Left: "ArrowLeft",
    Qt.Key.Key_Right: "ArrowRight",
    Qt.Key.Key_BracketLeft: "BracketLeft",
    Qt.Key.Key_BracketRight: "BracketRight",
    Qt.Key.Key_Equal: "Equal",
    Qt.Key.Key_Plus: "Equal",
    Qt.Key.Key_Minus: "Minus",
    Qt.Key.Key_0: "Digit0",
    Qt.Key.Key_Delete: "Delete",
    Qt.Key.Key_Backspace: "Delete",
}


def key_code(key) -> str | None:
    """Translate a ``Qt.Key`` (or its int value) to the dispatcher's code."""
    try:
        key = Qt.Key(key)
    except ValueError:
        return None
    return _KEY_CODES.get(key)
