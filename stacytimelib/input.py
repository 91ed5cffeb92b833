from __future__ import annotations

from typing import Callable


# key code -> (action, shift action)
DEFAULT_BINDINGS: dict[str, tuple[str, str | None]] = {
    "Space": ("toggle_play", None),
    "Home": ("go_to_start", None),
    "ArrowLeft": ("step_back", "fine_step_back"),
    "ArrowRight": ("step_forward", "fine_step_forward"),
    "BracketLeft": ("previous_beat", None),
    "BracketRight": ("next_beat", None),
    "Equal": ("zoom_in", None),
    "Minus": ("zoom_out", None),
    "Digit0": ("reset_zoom", None),
    "Delete": ("delete_selected", None),
}


class InputDispatcher:
    """Explicit key-code to action table.

    Hosts translate their native key events to ``KeyboardEvent.code``
    style names and call :meth:`dispatch`; nothing listens globally.
    """

    def __init__(self, bindings: dict[str, tuple[str, str | None]] | None = None):
        self._actions: dict[str, Callable[[], None]] = {}
        self._bindings: dict[str, tuple[str, str | None]] = dict(
            DEFAULT_BINDINGS if bindings is None else bindings)

    def register(self, action: str, handler: Callable[[], None]) -> None:
        self._actions[action] = handler

    def bind(self, code: str, action: str, shift_action: str | None = None) -> None:
        self._bindings[code] = (action, shift_action)

    def unbind(self, code: str) -> None:
        self._bindings.pop(code, None)

    def action_for(self, code: str, shift: bool = False) -> str | None:
        binding = self._bindings.get(code)
        if binding is None:
            return None
        action, shift_action = binding
        if shift and shift_action is not None:
            return shift_action
        return action

    def dispatch(self, code: str, shift: bool = False,
                 editing_text: bool = False) -> bool:
        """Run the action bound to *code*.  Returns True if one ran.

        Keys typed into a text field are left alone.
        """
        if editing_text:
            return False
        action = self.action_for(code, shift)
        if action is None:
            return False
        handler = self._actions.get(action)
        if handler is None:
            return False
        handler()
        return True
