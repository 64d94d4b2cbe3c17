"""
HTTP API for the deal wizard.

Run standalone:
    uvicorn dealwizard.api:create_app --factory --port 8080

or simply ``python -m dealwizard``.

Each draft is addressed by its storage key; the first request for a key
loads the saved draft (or starts a fresh one). Entity positions in the
URLs are 0-based list indexes.

Endpoints:
    GET    /wizard/{key}                          — current step, errors, state
    POST   /wizard/{key}/next                     — validate current step, advance
    POST   /wizard/{key}/back                     — go back (never validated)
    POST   /wizard/{key}/goto/{step}              — validate current step, jump
    POST   /wizard/{key}/reset                    — discard the draft
    GET    /wizard/{key}/validate/{step}          — errors of a step, no move
    GET    /wizard/{key}/export                   — final deal document
    PATCH  /wizard/{key}/step/{step}              — set fields of steps 0–3
    POST   /wizard/{key}/stakeholders             — add another stakeholder
    PATCH  /wizard/{key}/stakeholders/{index}
    DELETE /wizard/{key}/stakeholders/{index}
    POST   /wizard/{key}/deliverables             — add an empty deliverable
    POST   /wizard/{key}/deliverables/{index}/duplicate
    PATCH  /wizard/{key}/deliverables/{index}
    PATCH  /wizard/{key}/deliverables/{index}/acceptance
    DELETE /wizard/{key}/deliverables/{index}
    POST   /wizard/{key}/milestones               — add an empty milestone
    PUT    /wizard/{key}/milestones/count         — resize the milestone list
    PATCH  /wizard/{key}/milestones/{index}
    PUT    /wizard/{key}/milestones/{index}/deliverables/{deliverable_id}
    DELETE /wizard/{key}/milestones/{index}

Refused step transitions answer 422 with the list of errors; unknown
fields and values outside a closed set answer 422 too. Refused entity
operations (e.g. removing the last deliverable) answer 409 with the
notice. Authentication is out of scope.

Handlers are plain functions: FastAPI runs them in its thread pool, so
storage writes never block the event loop. Requests for the same draft
are serialized by a per-key lock.
"""

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, ValidationError

from dealwizard.adapters.base import DraftStore
from dealwizard.config import settings
from dealwizard.core.states import WizardStep
from dealwizard.core.wizard import WizardController

logger = logging.getLogger(__name__)


# ── Sessions ──────────────────────────────────────────────────


@dataclass
class WizardSession:
    """An open draft: its controller, the lock serializing its requests, active users."""

    controller: WizardController
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class WizardSessions:
    """
    Open drafts by key, all sharing the same store.

    At most ``max_open`` drafts stay in memory; the least recently used
    idle one is closed when the limit is exceeded. Closing loses nothing
    but the current step: the draft itself is already in the store.
    """

    def __init__(self, store: DraftStore | None, max_open: int | None = None) -> None:
        self.store = store
        self.max_open = max(1, max_open or settings.max_open_drafts)
        self._sessions: OrderedDict[str, WizardSession] = OrderedDict()
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: str) -> bool:
        return key in self._sessions

    @contextmanager
    def open(self, key: str) -> Iterator[WizardController]:
        """Hold the draft's lock and yield its controller."""
        with self._registry_lock:
            session = self._sessions.get(key)
            if session is None:
                session = WizardSession(WizardController(self.store, key))
                self._sessions[key] = session
                logger.info("Opened draft %s", key)
            else:
                self._sessions.move_to_end(key)
            session.users += 1
            self._evict()

        try:
            with session.lock:
                yield session.controller
        finally:
            with self._registry_lock:
                session.users -= 1
                self._evict()

    def _evict(self) -> None:
        # Oldest first; drafts with a request in flight are skipped.
        for key in list(self._sessions):
            if len(self._sessions) <= self.max_open:
                break
            if self._sessions[key].users == 0:
                del self._sessions[key]
                logger.info("Closed idle draft %s", key)


def get_sessions(request: Request) -> WizardSessions:
    return request.app.state.sessions


# ── Schemas ───────────────────────────────────────────────────


class WizardOut(BaseModel):
    key: str
    step: int
    title: str
    hint: str
    progress_pct: int
    errors: list[str]
    notice: str | None
    state: dict[str, Any]


class ErrorsOut(BaseModel):
    step: int
    valid: bool
    errors: list[str]


class MilestoneCount(BaseModel):
    count: int


class Selection(BaseModel):
    checked: bool = True


def _view(controller: WizardController) -> WizardOut:
    return WizardOut(
        key=controller.key,
        step=controller.current_step,
        title=controller.current_title,
        hint=controller.current_hint,
        progress_pct=controller.progress_pct,
        errors=controller.errors,
        notice=controller.notice,
        state=controller.state.to_dict(),
    )


def _apply(controller: WizardController, action: Callable[[], Any]) -> WizardOut:
    """Run a mutation, mapping field errors to 422 and notices (str results) to 409."""
    try:
        notice = action()
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        ) from e
    if isinstance(notice, str):
        raise HTTPException(status_code=409, detail=notice)
    return _view(controller)


def _transition(controller: WizardController, errors: list[str]) -> WizardOut:
    if errors:
        raise HTTPException(status_code=422, detail={"step": controller.current_step, "errors": errors})
    return _view(controller)


# ── App ───────────────────────────────────────────────────────


def create_app(store: DraftStore | None = None, max_open_drafts: int | None = None) -> FastAPI:
    """
    Build the API.

    Without an explicit store, drafts are persisted with SqlDraftStore
    on settings.database_url.
    """
    if store is None:
        from dealwizard.adapters.sql_store import SqlDraftStore

        store = SqlDraftStore()

    app = FastAPI(title="Deal Wizard API", version="1.0.0")
    app.state.sessions = WizardSessions(store, max_open_drafts)

    # ── Navigation ────────────────────────────────────────────

    @app.get("/wizard/{key}", response_model=WizardOut)
    def get_wizard(key: str, sessions: WizardSessions = Depends(get_sessions)):
        """Current step, last errors and the full draft."""
        with sessions.open(key) as wizard:
            return _view(wizard)

    @app.post("/wizard/{key}/next", response_model=WizardOut)
    def next_step(key: str, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _transition(wizard, wizard.next())

    @app.post("/wizard/{key}/back", response_model=WizardOut)
    def previous_step(key: str, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            wizard.back()
            return _view(wizard)

    @app.post("/wizard/{key}/goto/{step}", response_model=WizardOut)
    def go_to_step(key: str, step: int, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _transition(wizard, wizard.go_to(step))

    @app.post("/wizard/{key}/reset", response_model=WizardOut)
    def reset_wizard(key: str, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            wizard.reset()
            return _view(wizard)

    @app.get("/wizard/{key}/validate/{step}", response_model=ErrorsOut)
    def validate(key: str, step: int, sessions: WizardSessions = Depends(get_sessions)):
        """Errors a step would report, without moving."""
        with sessions.open(key) as wizard:
            errors = wizard.validate(step)
        return ErrorsOut(step=step, valid=not errors, errors=errors)

    @app.get("/wizard/{key}/export")
    def export(key: str, sessions: WizardSessions = Depends(get_sessions)) -> dict[str, Any]:
        """Final deal document (available at any step)."""
        with sessions.open(key) as wizard:
            return wizard.export()

    # ── Steps 0–3 ─────────────────────────────────────────────

    @app.patch("/wizard/{key}/step/{step}", response_model=WizardOut)
    def update_step(
        key: str,
        step: int,
        body: dict[str, Any],
        sessions: WizardSessions = Depends(get_sessions),
    ):
        """Set plain fields of identification, context, stakeholders or scope."""
        with sessions.open(key) as wizard:
            setters = {
                WizardStep.IDENTIFICATION: wizard.update_identification,
                WizardStep.CONTEXT: wizard.update_context,
                WizardStep.STAKEHOLDERS: wizard.update_stakeholders,
                WizardStep.SCOPE: wizard.update_scope,
            }
            setter = setters.get(step)
            if setter is None:
                raise HTTPException(status_code=404, detail=f"Step {step} has no plain fields")
            return _apply(wizard, lambda: setter(**body))

    @app.post("/wizard/{key}/stakeholders", response_model=WizardOut, status_code=201)
    def add_stakeholder(key: str, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _apply(wizard, wizard.add_stakeholder)

    @app.patch("/wizard/{key}/stakeholders/{index}", response_model=WizardOut)
    def update_stakeholder(
        key: str,
        index: int,
        body: dict[str, Any],
        sessions: WizardSessions = Depends(get_sessions),
    ):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.update_stakeholder(index, **body))

    @app.delete("/wizard/{key}/stakeholders/{index}", response_model=WizardOut)
    def remove_stakeholder(key: str, index: int, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.remove_stakeholder(index))

    # ── Step 4: deliverables ──────────────────────────────────

    @app.post("/wizard/{key}/deliverables", response_model=WizardOut, status_code=201)
    def add_deliverable(key: str, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _apply(wizard, wizard.add_deliverable)

    @app.post("/wizard/{key}/deliverables/{index}/duplicate", response_model=WizardOut, status_code=201)
    def duplicate_deliverable(key: str, index: int, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.duplicate_deliverable(index))

    @app.patch("/wizard/{key}/deliverables/{index}", response_model=WizardOut)
    def update_deliverable(
        key: str,
        index: int,
        body: dict[str, Any],
        sessions: WizardSessions = Depends(get_sessions),
    ):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.update_deliverable(index, **body))

    @app.patch("/wizard/{key}/deliverables/{index}/acceptance", response_model=WizardOut)
    def update_deliverable_acceptance(
        key: str,
        index: int,
        body: dict[str, Any],
        sessions: WizardSessions = Depends(get_sessions),
    ):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.update_deliverable_acceptance(index, **body))

    @app.delete("/wizard/{key}/deliverables/{index}", response_model=WizardOut)
    def remove_deliverable(key: str, index: int, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.remove_deliverable(index))

    # ── Step 5: milestones ────────────────────────────────────

    @app.post("/wizard/{key}/milestones", response_model=WizardOut, status_code=201)
    def add_milestone(key: str, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _apply(wizard, wizard.add_milestone)

    @app.put("/wizard/{key}/milestones/count", response_model=WizardOut)
    def set_milestone_count(
        key: str,
        body: MilestoneCount,
        sessions: WizardSessions = Depends(get_sessions),
    ):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.apply_milestone_count(body.count))

    @app.patch("/wizard/{key}/milestones/{index}", response_model=WizardOut)
    def update_milestone(
        key: str,
        index: int,
        body: dict[str, Any],
        sessions: WizardSessions = Depends(get_sessions),
    ):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.update_milestone(index, **body))

    @app.put("/wizard/{key}/milestones/{index}/deliverables/{deliverable_id}", response_model=WizardOut)
    def select_milestone_deliverable(
        key: str,
        index: int,
        deliverable_id: str,
        body: Selection,
        sessions: WizardSessions = Depends(get_sessions),
    ):
        with sessions.open(key) as wizard:
            return _apply(
                wizard,
                lambda: wizard.toggle_milestone_deliverable(index, deliverable_id, body.checked),
            )

    @app.delete("/wizard/{key}/milestones/{index}", response_model=WizardOut)
    def remove_milestone(key: str, index: int, sessions: WizardSessions = Depends(get_sessions)):
        with sessions.open(key) as wizard:
            return _apply(wizard, lambda: wizard.remove_milestone(index))

    return app
