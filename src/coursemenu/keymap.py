"""Keyboard command surface for the command menu."""
from __future__ import annotations

from .menu import CommandMenu

MODIFIER_KEYS = frozenset({"Meta", "Shift", "Control", "Alt"})

SUBMIT = "submit"


def handle_key(menu: CommandMenu, key: str, *, meta: bool = False) -> str | None:
    """
    Applies one key press to menu and returns the name of the action taken.
    Enter returns "submit"; the caller runs the asynchronous submission.
    """
    if meta and key.lower() == "k":
        menu.dispatch("toggle")
        return "toggle"

    if not menu.is_open:
        return None

    had_suggestion = bool(menu.suggestion)
    taken: str | None = None

    if key == "Escape":
        taken = "reject_suggestion" if had_suggestion else "close"
        menu.dispatch(taken)
        return taken

    if key == "Tab":
        if had_suggestion and not menu.typing:
            menu.dispatch("accept_suggestion")
            return "accept_suggestion"
        return None

    if key == "Backspace" and menu.input_value == "" and menu.selection:
        menu.dispatch("remove_most_recent")
        taken = "remove_most_recent"
    elif key == "Enter":
        taken = SUBMIT

    # Any other key drops a visible suggestion.
    if had_suggestion and key not in MODIFIER_KEYS and menu.suggestion:
        menu.dispatch("reject_suggestion")
        taken = taken or "reject_suggestion"
    return taken
