"""Query session controller.

Owns the ``idle``/``running`` state of an editing session:
- extracts the statement to run from the editor
- drives at most one execution at a time, with cancellation
- anchors engine errors back onto the document
- records outcomes in the notification feed
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

from query_console.config import get_settings
from query_console.editor.extractor import StatementExtractor
from query_console.editor.positions import ErrorPositionMapper
from query_console.editor.surface import SYNTAX_ERROR_CLASS
from query_console.notifications.feed import NotificationKind
from query_console.observability import get_logger
from query_console.query.models import QueryCancelledError, QueryFailure, QueryKind
from query_console.session.state import SessionState

if TYPE_CHECKING:
    from query_console.editor.document import Document
    from query_console.editor.extractor import ExtractedRequest
    from query_console.editor.positions import ErrorLocation
    from query_console.editor.surface import EditorSurface, PreferenceStore
    from query_console.notifications.feed import NotificationFeed
    from query_console.query.models import QuerySuccess
    from query_console.session.channels import SessionChannels, ToggleRun

logger = get_logger(__name__)


class QueryClient(Protocol):
    """The query engine as seen by the controller."""

    async def execute(self, query: str, limit: str | None = None) -> QuerySuccess: ...

    def abort(self) -> bool: ...


class RunToken:
    """Identity of one run attempt.

    Outcomes are only applied while the token is valid and current.
    """

    def __init__(self, request: ExtractedRequest, document: Document) -> None:
        self.id = uuid4()
        self.request = request
        self.document = document
        self._valid = True

    @property
    def is_valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        self._valid = False


class QuerySessionController:
    """Single-flight query runner for one editor."""

    def __init__(
        self,
        editor: EditorSurface,
        client: QueryClient,
        feed: NotificationFeed,
        channels: SessionChannels,
        extractor: StatementExtractor | None = None,
        mapper: ErrorPositionMapper | None = None,
        preferences: PreferenceStore | None = None,
        limit: str | None = None,
    ) -> None:
        settings = get_settings()
        self._editor = editor
        self._client = client
        self._feed = feed
        self._channels = channels
        self._extractor = extractor or StatementExtractor(settings.editor.delimiter)
        self._mapper = mapper or ErrorPositionMapper()
        self._preferences = preferences
        self._limit = limit if limit is not None else settings.query.limit

        self._state = SessionState.IDLE
        self._token: RunToken | None = None
        self._task: asyncio.Task[None] | None = None
        self._result: QuerySuccess | None = None
        self._error: ErrorLocation | None = None
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def result(self) -> QuerySuccess | None:
        """Latest successful result."""
        return self._result

    @property
    def error_location(self) -> ErrorLocation | None:
        """Where the latest failure was anchored, until the next run starts."""
        return self._error

    @property
    def pending_request(self) -> ExtractedRequest | None:
        return self._token.request if self._token is not None else None

    def open(self) -> None:
        """Start listening for run signals."""
        self._unsubscribers.append(self._channels.toggle_run.subscribe(self._on_toggle_run))

    def close(self) -> None:
        """Stop listening and cancel any run in flight."""
        self.cancel()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _on_toggle_run(self, _message: ToggleRun) -> None:
        self.toggle_run()

    def toggle_run(self) -> SessionState:
        """Start a run when idle, stop the current one when running.

        Must be called from the event loop thread.
        """
        if self._state is SessionState.RUNNING:
            self.cancel()
        else:
            self._start()
        return self._state

    def _start(self) -> None:
        loop = asyncio.get_running_loop()
        self._set_state(SessionState.RUNNING)

        self._editor.clear_markers()
        self._error = None
        if self._preferences is not None:
            self._preferences.save(self._editor)

        document = self._editor.document()
        request = self._extractor.extract(document, self._editor.cursor, self._editor.selection)
        if request is None or not request.query:
            logger.info("nothing_to_run")
            self._set_state(SessionState.IDLE)
            return

        token = RunToken(request, document)
        self._token = token
        self._task = loop.create_task(self._execute(token))
        logger.info("run_started", run_id=str(token.id), row=request.row, column=request.column)

    def cancel(self) -> bool:
        """Abort the run in flight.

        Returns:
            True if a run was cancelled.
        """
        token = self._token
        if self._state is not SessionState.RUNNING or token is None:
            return False

        token.invalidate()
        self._client.abort()
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._token = None
        self._task = None
        self._set_state(SessionState.IDLE)
        logger.info("run_cancelled", run_id=str(token.id))
        return True

    async def wait(self) -> None:
        """Wait until the pending run settles or is cancelled."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def _execute(self, token: RunToken) -> None:
        query = token.request.query
        try:
            result = await self._client.execute(query, self._limit)
        except QueryFailure as failure:
            if self._settle(token):
                self._on_failure(token, failure)
        except QueryCancelledError:
            if self._settle(token):
                logger.info("run_aborted_by_engine", run_id=str(token.id))
        except Exception as e:
            if self._settle(token):
                logger.exception("run_error", run_id=str(token.id))
                notification = self._feed.create(
                    NotificationKind.ERROR, title=query, message=str(e)
                )
                self._feed.add(notification)
        else:
            if self._settle(token):
                self._on_success(result)

    def _settle(self, token: RunToken) -> bool:
        """Finish ``token``'s run; False if its outcome must be discarded."""
        if not token.is_valid or token is not self._token:
            logger.info("stale_outcome_discarded", run_id=str(token.id))
            return False

        token.invalidate()
        self._token = None
        self._task = None
        self._set_state(SessionState.IDLE)
        return True

    def _on_success(self, result: QuerySuccess) -> None:
        self._result = result
        if result.kind is QueryKind.DQL:
            notification = self._feed.create(
                NotificationKind.SUCCESS, title=result.query, summary=result.summary()
            )
        else:
            notification = self._feed.create(NotificationKind.INFO, title=result.query)
        self._feed.add(notification)
        logger.info("run_succeeded", kind=result.kind.value, rows=result.count)

    def _on_failure(self, token: RunToken, failure: QueryFailure) -> None:
        request = token.request
        self._feed.add(
            self._feed.create(NotificationKind.ERROR, title=request.query, message=failure.message)
        )

        location = self._mapper.locate(token.document, request, failure.offset)
        self._error = location
        self._editor.add_marker(location.start, location.end, SYNTAX_ERROR_CLASS)
        self._editor.move_caret(location.position, scroll_into_view=True)
        self._editor.focus()
        logger.info(
            "run_failed",
            run_id=str(token.id),
            row=location.position.row,
            column=location.position.column,
        )

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._state = state
        if not self._channels.state_changed.closed:
            self._channels.state_changed.publish(state)
