"""Question submission: resolves selected course documents and hands them to an answerer."""
from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from .catalog import EntityCatalog
from .document_resolver import DocumentResolver
from .errors import CatalogError
from .menu import CommandMenu
from .observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DocumentContext:
    entity_name: str
    payload: str


@dataclass(frozen=True)
class Submission:
    question: str
    contexts: tuple[DocumentContext, ...]


AnswerHandler = Callable[[Submission], Any]


class QuestionSubmitter:
    """
    Wires the menu, the catalog and the resolver to an external answer handler.
    The handler may be a plain function or a coroutine function.
    """

    def __init__(
        self,
        *,
        menu: CommandMenu,
        catalog: EntityCatalog,
        resolver: DocumentResolver,
        answer_handler: AnswerHandler | None = None,
    ):
        self.menu = menu
        self.catalog = catalog
        self.resolver = resolver
        self.answer_handler = answer_handler

    async def submit(self, on_progress: Callable[[str], None] | None = None) -> Any:
        if not callable(self.answer_handler):
            raise RuntimeError("QuestionSubmitter requires a callable answer_handler.")

        question = self.menu.input_value.strip()
        # Repeated selections resolve and attach once, in first-selected order.
        names = tuple(dict.fromkeys(self.menu.selection))
        if not question and not names:
            return None

        session = self.menu.session

        def _on_progress(stage: str):
            # Progress from a closed or reset session is dropped.
            if self.menu.session == session:
                self.menu.dispatch("set_loading_stage", stage)
            if on_progress is not None:
                on_progress(stage)

        self.menu.dispatch("set_loading_response", True)
        try:
            contexts = []
            for name in names:
                entity = self.catalog.by_name(name)
                if entity is None:
                    raise CatalogError(f"selected entity is not in the catalog: {name}")
                payload = await self.resolver.resolve_entity(entity, on_progress=_on_progress)
                contexts.append(DocumentContext(entity_name=entity.name, payload=payload))

            submission = Submission(question=question, contexts=tuple(contexts))
            logger.info("question_submitted", documents=len(contexts), question_chars=len(question))
            result = self.answer_handler(submission)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            logger.error("question_submit_failed", error=str(exc), error_type=type(exc).__name__)
            raise
        finally:
            if self.menu.session == session:
                self.menu.dispatch("set_loading_response", False)
