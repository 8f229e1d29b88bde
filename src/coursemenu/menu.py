"""
Command menu state machine.

CommandMenu owns the input buffer, the suggestion state, the entity
selection and the loading indicators of one palette. Callers only go through
its named actions; every action is synchronous and performs no I/O. The one
asynchronous piece is the debounced suggestion computation, which resumes on
the running event loop and re-checks the live state before applying.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from .config import (
    MENTION_MARKER,
    SELECTION_POLICY,
    SUGGESTION_DEBOUNCE_MS,
    SUGGESTION_DISCARD_STALE,
    SUGGESTION_MIN_TOKEN_CHARS,
)
from .fuzzy import best_match
from .mention import MentionToken, ghost_text, parse_mention
from .observability import get_logger
from .scheduler import SuggestionScheduler
from .selection import EntitySelection, SelectionPolicy, make_selection

logger = get_logger(__name__)


class MenuStatus(str, Enum):
    CLOSED = "closed"
    IDLE = "idle"
    SUGGESTING = "suggesting"
    SELECTED = "selected"


@dataclass
class SuggestionState:
    candidate_name: str = ""
    pending: bool = False


@dataclass(frozen=True)
class MenuSnapshot:
    status: MenuStatus
    is_open: bool
    input_value: str
    selected: tuple[str, ...]
    suggestion: str
    typing: bool
    ghost_text: str
    is_loading_response: bool
    loading_stage: str


class CommandMenu:
    """Single state container behind the command palette."""

    ACTIONS = frozenset(
        {
            "open",
            "close",
            "toggle",
            "edit",
            "accept_suggestion",
            "reject_suggestion",
            "select_entity",
            "remove_entity",
            "remove_most_recent",
            "reset",
            "set_loading_stage",
            "set_loading_response",
        }
    )

    def __init__(
        self,
        candidates: Sequence[str],
        *,
        policy: SelectionPolicy | str = SELECTION_POLICY,
        debounce_s: float = SUGGESTION_DEBOUNCE_MS / 1000.0,
        min_token_chars: int = SUGGESTION_MIN_TOKEN_CHARS,
        discard_stale: bool = SUGGESTION_DISCARD_STALE,
        marker: str = MENTION_MARKER,
    ):
        self._candidates = tuple(candidates)
        self._marker = marker
        self._min_token_chars = max(1, int(min_token_chars))
        self._scheduler = SuggestionScheduler(debounce_s, discard_stale=discard_stale)

        self._is_open = False
        self._input = ""
        self._suggestion = SuggestionState()
        self._selection: EntitySelection = make_selection(policy)
        self._is_loading_response = False
        self._loading_stage = ""

        # Bumped on open/close/reset; continuations from an older epoch are dropped.
        self._session = 0
        # Bumped whenever an entity is confirmed.
        self._confirmations = 0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def input_value(self) -> str:
        return self._input

    @property
    def selection(self) -> tuple[str, ...]:
        return self._selection.names

    @property
    def policy(self) -> SelectionPolicy:
        return self._selection.policy

    @property
    def suggestion(self) -> str:
        return self._suggestion.candidate_name

    @property
    def typing(self) -> bool:
        return self._suggestion.pending

    @property
    def mention(self) -> MentionToken:
        return parse_mention(self._input, self._marker)

    @property
    def is_loading_response(self) -> bool:
        return self._is_loading_response

    @property
    def loading_stage(self) -> str:
        return self._loading_stage

    @property
    def session(self) -> int:
        return self._session

    @property
    def scheduler(self) -> SuggestionScheduler:
        return self._scheduler

    @property
    def status(self) -> MenuStatus:
        if not self._is_open:
            return MenuStatus.CLOSED
        if self.mention.has_active_mention and self._selection.accepts_more:
            return MenuStatus.SUGGESTING
        if len(self._selection):
            return MenuStatus.SELECTED
        return MenuStatus.IDLE

    def snapshot(self) -> MenuSnapshot:
        return MenuSnapshot(
            status=self.status,
            is_open=self._is_open,
            input_value=self._input,
            selected=self._selection.names,
            suggestion=self._suggestion.candidate_name,
            typing=self._suggestion.pending,
            ghost_text=ghost_text(
                self._input,
                self._suggestion.candidate_name,
                self._suggestion.pending,
                self._marker,
            ),
            is_loading_response=self._is_loading_response,
            loading_stage=self._loading_stage,
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def dispatch(self, action: str, *args):
        """Invokes a named action; unknown names raise ValueError."""
        if action not in self.ACTIONS:
            raise ValueError(f"unknown menu action: {action}")
        return getattr(self, action)(*args)

    def open(self):
        self.reset()
        self._is_open = True

    def close(self):
        self.reset()
        self._is_open = False

    def toggle(self):
        if self._is_open:
            self.close()
        else:
            self.open()

    def reset(self):
        self._session += 1
        self._scheduler.invalidate()
        self._input = ""
        self._suggestion = SuggestionState()
        self._selection.clear()
        self._is_loading_response = False
        self._loading_stage = ""

    def edit(self, text: str):
        """Replaces the buffer and schedules a debounced suggestion."""
        if not self._is_open:
            logger.debug("menu_action_ignored", action="edit", reason="closed")
            return
        session = self._session
        confirmations = self._confirmations
        # Scheduling needs a running loop; state is only touched once it succeeded.
        self._scheduler.schedule(
            lambda generation: self._apply_suggestion(session, confirmations, generation)
        )
        self._input = str(text or "")
        self._suggestion = SuggestionState(candidate_name="", pending=True)

    def accept_suggestion(self) -> bool:
        candidate = self._suggestion.candidate_name
        if not self._is_open or not candidate or self._suggestion.pending:
            return False
        mention = self.mention
        if not mention.has_active_mention:
            return False
        self._input = self._input[: mention.marker_index]
        self._confirm(candidate)
        return True

    def reject_suggestion(self):
        self._suggestion = SuggestionState()

    def select_entity(self, name: str):
        """Confirms name directly, dropping any unconfirmed mention from the buffer."""
        if not self._is_open:
            logger.debug("menu_action_ignored", action="select_entity", reason="closed")
            return
        mention = self.mention
        if mention.has_active_mention:
            self._input = self._input[: mention.marker_index]
        self._confirm(name)

    def remove_entity(self, name: str) -> bool:
        self.reject_suggestion()
        return self._selection.remove(name)

    def remove_most_recent(self) -> str | None:
        self.reject_suggestion()
        if self._input or not len(self._selection):
            return None
        return self._selection.remove_most_recent()

    def set_loading_stage(self, stage: str):
        self._loading_stage = str(stage or "")

    def set_loading_response(self, loading: bool):
        self._is_loading_response = bool(loading)
        if not loading:
            self._loading_stage = ""

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _confirm(self, name: str):
        self._selection.add(name)
        self._confirmations += 1
        self._suggestion = SuggestionState()
        logger.info("entity_confirmed", entity_name=name, policy=self.policy.value)

    def _apply_suggestion(self, session: int, confirmations: int, generation: int):
        if session != self._session or not self._is_open:
            logger.debug("suggestion_discarded", reason="session_changed", generation=generation)
            return
        if confirmations != self._confirmations:
            logger.debug("suggestion_discarded", reason="entity_confirmed", generation=generation)
            self._suggestion = SuggestionState()
            return

        mention = self.mention
        if (
            not mention.has_active_mention
            or not self._selection.accepts_more
            or len(mention.token) < self._min_token_chars
        ):
            self._suggestion = SuggestionState()
            return

        self._suggestion = SuggestionState(
            candidate_name=best_match(mention.token, self._candidates),
            pending=False,
        )
