"""Suggestion Orchestrator - Debounced, stale-safe ghost text per input surface"""
import asyncio
import logging
from typing import Callable, Dict, Optional, Set
from models import CompletionInsertion, SuggestionState
from services.autocomplete_engine import AutocompleteEngine
from services.context_extractor import clamp_cursor, insert_completion_at_cursor
from services.dataset_session import DatasetSession
from services.health_tracker import HealthMonitor
from services.local_lexicon import suggest_local_completion

logger = logging.getLogger(__name__)

LOCAL_MODEL_NAME = "local-lexicon"

SuggestionListener = Callable[[str, Optional[SuggestionState]], None]


class SurfaceState:
    """Independent debounce/version state for one text field"""

    def __init__(self):
        self.version = 0
        self.text: Optional[str] = None
        self.debounce_task: Optional[asyncio.Task] = None
        self.cancel_event: Optional[asyncio.Event] = None
        self.suggestion: Optional[SuggestionState] = None


class SuggestionOrchestrator:
    """
    Bridges editor events to the autocomplete pipeline:
    1. Every caret event bumps the surface version and cancels pending work
    2. The local lexicon suggestion is shown immediately
    3. A remote request is scheduled after ``debounce_ms``
    4. Remote results are applied only if version and text are unchanged

    Surfaces are keyed by dataset item id; a keystroke in one surface never
    touches another surface's pending request.
    """

    def __init__(
        self,
        engine: AutocompleteEngine,
        session: Optional[DatasetSession] = None,
        health_monitor: Optional[HealthMonitor] = None,
        on_suggestion: Optional[SuggestionListener] = None
    ):
        self.engine = engine
        self.session = session or DatasetSession()
        self.health_monitor = health_monitor
        self.on_suggestion = on_suggestion
        self.surfaces: Dict[str, SurfaceState] = {}
        self._tasks: Set[asyncio.Task] = set()

    def _surface(self, surface_id: str) -> SurfaceState:
        return self.surfaces.setdefault(surface_id, SurfaceState())

    def suggestion_for(self, surface_id: str) -> Optional[SuggestionState]:
        state = self.surfaces.get(surface_id)
        return state.suggestion if state else None

    def _show(self, surface_id: str, state: SurfaceState, suggestion: Optional[SuggestionState]) -> None:
        state.suggestion = suggestion
        if self.on_suggestion is not None:
            self.on_suggestion(surface_id, suggestion)

    def _cancel_pending(self, state: SurfaceState) -> None:
        if state.debounce_task is not None:
            state.debounce_task.cancel()
            state.debounce_task = None
        if state.cancel_event is not None:
            # Aborts the in-flight request, which still reports its latency
            state.cancel_event.set()
            state.cancel_event = None

    def _current_text(self, surface_id: str, state: SurfaceState) -> Optional[str]:
        text = self.session.current_text(surface_id)
        return text if text is not None else state.text

    # === Events ===

    def clear_suggestion(self, surface_id: str) -> None:
        """Selection, focus loss or dismissal: hide ghost text and orphan pending results"""
        state = self._surface(surface_id)
        state.version += 1
        self._cancel_pending(state)
        if state.suggestion is not None:
            self._show(surface_id, state, None)

    def clear_others(self, surface_id: str) -> None:
        """Caret moved to ``surface_id``: every other surface loses its suggestion"""
        for other in list(self.surfaces):
            if other != surface_id:
                self.clear_suggestion(other)

    def clear_all(self) -> None:
        for surface_id in list(self.surfaces):
            self.clear_suggestion(surface_id)

    def handle_input(
        self,
        surface_id: str,
        text: str,
        cursor_index: int,
        selection_end: Optional[int] = None
    ) -> Optional[SuggestionState]:
        """
        Handle a text change or caret move on ``surface_id``.
        Returns the suggestion shown right away (local lexicon or None).
        Edits to a dataset item are written back to the session, which
        schedules the caption save.
        """
        if self.session.get(surface_id) is not None and self.session.current_text(surface_id) != text:
            self.session.update_text(surface_id, text)

        autocomplete_settings = self.engine.get_settings()
        if not autocomplete_settings.enabled:
            self.clear_suggestion(surface_id)
            return None

        if selection_end is not None and selection_end != cursor_index:
            self.clear_suggestion(surface_id)
            return None

        state = self._surface(surface_id)
        state.version += 1
        version = state.version
        state.text = text
        self._cancel_pending(state)

        cursor = clamp_cursor(text, cursor_index)
        local_completion = suggest_local_completion(
            self.session.texts(), text, cursor, autocomplete_settings.mode
        )
        suggestion = None
        if local_completion:
            suggestion = SuggestionState(
                item_id=surface_id,
                completion=local_completion,
                cursor_index=cursor,
                base_text=text,
                model=LOCAL_MODEL_NAME,
                latency_ms=0,
                source="local",
            )
        self._show(surface_id, state, suggestion)

        if self.health_monitor is not None and not self.health_monitor.ok:
            return suggestion

        state.cancel_event = asyncio.Event()
        task = asyncio.get_running_loop().create_task(
            self._request_remote(
                surface_id, text, cursor, version,
                autocomplete_settings.debounce_ms, state.cancel_event
            )
        )
        state.debounce_task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return suggestion

    async def _request_remote(
        self,
        surface_id: str,
        text: str,
        cursor_index: int,
        version: int,
        debounce_ms: int,
        cancel_event: asyncio.Event
    ) -> None:
        if debounce_ms > 0:
            await asyncio.sleep(debounce_ms / 1000.0)

        state = self._surface(surface_id)
        if state.debounce_task is asyncio.current_task():
            # Debounce elapsed; from here on cancellation goes through cancel_event
            state.debounce_task = None

        try:
            response = await self.engine.suggest(text, cursor_index, cancel_event)
        except Exception as e:
            logger.warning(f"Remote suggestion failed for {surface_id}: {e}")
            return
        finally:
            if state.cancel_event is cancel_event:
                state.cancel_event = None

        if version != state.version:
            logger.debug(f"Discarding stale suggestion for {surface_id} (v{version} < v{state.version})")
            return
        if self._current_text(surface_id, state) != text:
            logger.debug(f"Discarding suggestion for {surface_id}: text changed")
            return
        if response.timed_out or not response.completion.strip():
            return

        self._show(surface_id, state, SuggestionState(
            item_id=surface_id,
            completion=response.completion,
            cursor_index=cursor_index,
            base_text=text,
            model=response.model,
            latency_ms=response.latency_ms,
            source=response.source,
        ))

    def accept_suggestion(self, surface_id: str, cursor_index: int) -> Optional[CompletionInsertion]:
        """
        Insert the shown completion at the cursor and re-run the pipeline
        from the new caret position. Returns None when nothing was accepted.
        """
        state = self.surfaces.get(surface_id)
        suggestion = state.suggestion if state else None
        if state is None or suggestion is None:
            return None

        text = self._current_text(surface_id, state)
        if text != suggestion.base_text or suggestion.cursor_index != cursor_index:
            self.clear_suggestion(surface_id)
            return None

        insertion = insert_completion_at_cursor(text, cursor_index, suggestion.completion)
        self.session.update_text(surface_id, insertion.next_text)
        self.clear_suggestion(surface_id)
        logger.debug(f"Accepted {suggestion.source} completion '{suggestion.completion}' on {surface_id}")

        self.handle_input(surface_id, insertion.next_text, insertion.next_cursor_index)
        return insertion

    async def aclose(self) -> None:
        """Cancel every pending request and wait for them to settle"""
        self.clear_all()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
