"""
Wizard controller: the state machine that drives a deal draft.

One controller owns one draft. It tracks the current step (0–6), applies
entity mutations by building a new frozen snapshot and publishing it,
and gates step transitions with ``validate_step``.

Rules enforced here (not by the validator):
- at least one deliverable and one milestone always exist;
- every milestone's ``deliverable_ids`` references existing deliverables
  (removing a deliverable drops its id from every milestone).

Both are maintained by ``_enforce_invariants``, which runs on every
published snapshot. Operations the controller refuses (removing the last
deliverable, an index that does not exist) leave the state unchanged and
return a notice string instead of raising.

Field values are validated by the entity model when a patch is applied;
a value outside a closed enum raises ``pydantic.ValidationError`` and the
draft is left untouched.
"""

import copy
import logging
from typing import Any

from pydantic import ValidationError

from dealwizard.adapters.base import DraftStore
from dealwizard.config import settings
from dealwizard.core.export import build_export
from dealwizard.core.models import (
    Deliverable,
    Milestone,
    WizardModel,
    WizardState,
    default_state,
    lines_to_list,
    new_deliverable,
    new_deliverable_id,
    new_milestone,
    new_stakeholder,
    parse_state,
    utc_now_iso,
)
from dealwizard.core.states import (
    FIRST_STEP,
    LAST_STEP,
    STEP_HINTS,
    STEP_TITLES,
    WizardStep,
    clamp,
    clamp_step,
)
from dealwizard.core.validation import Errors, validate_step

logger = logging.getLogger(__name__)

MIN_MILESTONES, MAX_MILESTONES = 1, 10

KEEP_ONE_DELIVERABLE = "Keep at least 1 deliverable."
KEEP_ONE_MILESTONE = "Keep at least 1 milestone."

# Fields that hold one bullet per entry; a multi-line string is accepted too.
_BULLET_FIELDS = frozenset({
    "success_bullets", "successBullets",
    "in_scope", "inScope",
    "out_scope", "outScope",
    "assumptions",
    "checklist",
    "accept_checklist", "acceptChecklist",
})


# ── Snapshot helpers ─────────────────────────────────────────


def _patched(model: WizardModel, patch: dict[str, Any]) -> Any:
    """
    Return a validated copy of model with patch applied.

    Patch keys may be attribute names (``project_name``) or wire names
    (``projectName``); any other key is rejected with ``extra_forbidden``.
    """
    model_type = type(model)
    fields = model_type.model_fields
    aliases = {info.alias for info in fields.values() if info.alias}
    unknown = [key for key in patch if key not in fields and key not in aliases]
    if unknown:
        raise ValidationError.from_exception_data(
            model_type.__name__,
            [{"type": "extra_forbidden", "loc": (key,), "input": patch[key]} for key in unknown],
        )

    data = model.model_dump(by_alias=True)
    for key, value in patch.items():
        if key in _BULLET_FIELDS and isinstance(value, str):
            value = lines_to_list(value)
        info = fields.get(key)
        data[info.alias if info is not None and info.alias else key] = value
    return model_type.model_validate(data)


def _replace_at(items: tuple, index: int, item: Any) -> tuple:
    return items[:index] + (item,) + items[index + 1:]


def _remove_at(items: tuple, index: int) -> tuple:
    return items[:index] + items[index + 1:]


def _enforce_invariants(state: WizardState) -> WizardState:
    """Seed the minimum entities and drop dangling deliverable references."""
    deliverables = state.step4.deliverables or (new_deliverable(),)
    known_ids = {d.id for d in deliverables}

    milestones = []
    for m in state.step5.milestones or (new_milestone(),):
        ids = tuple(dict.fromkeys(i for i in m.deliverable_ids if i in known_ids))
        milestones.append(m if ids == m.deliverable_ids else m.model_copy(update={"deliverable_ids": ids}))

    return state.model_copy(update={
        "step4": state.step4.model_copy(update={"deliverables": deliverables}),
        "step5": state.step5.model_copy(update={"milestones": tuple(milestones)}),
    })


class WizardController:
    """
    Drives one deal draft through the wizard steps.

    Args:
        store: durable storage for the draft (None keeps it in memory only)
        key: storage key of the draft (defaults to settings.storage_key)
    """

    def __init__(self, store: DraftStore | None = None, key: str | None = None) -> None:
        self.store = store
        self.key = key or settings.storage_key
        self.current_step: WizardStep = FIRST_STEP
        self.errors: Errors = []
        self.notice: str | None = None
        self._state = _enforce_invariants(self._load())

    # ── State ────────────────────────────────────────────────

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def progress_pct(self) -> int:
        return round(self.current_step / LAST_STEP * 100)

    @property
    def current_title(self) -> str:
        return STEP_TITLES[self.current_step]

    @property
    def current_hint(self) -> str:
        return STEP_HINTS[self.current_step]

    def _load(self) -> WizardState:
        if self.store is None:
            return default_state()
        try:
            raw = self.store.load(self.key)
        except Exception:
            logger.exception("Could not load draft %s, starting from defaults", self.key)
            return default_state()
        return parse_state(raw)

    def _save(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self.key, self._state.to_json())
        except Exception:
            logger.exception("Could not save draft %s", self.key)

    def _publish(self, state: WizardState) -> None:
        """Make state the current snapshot, refresh updatedAt and persist it."""
        state = _enforce_invariants(state)
        meta = state.meta.model_copy(update={"updated_at": utc_now_iso()})
        self._state = state.model_copy(update={"meta": meta})
        self.notice = None
        self._save()

    def _refuse(self, notice: str) -> str:
        logger.warning("Draft %s: %s", self.key, notice)
        self.notice = notice
        return notice

    # ── Navigation ───────────────────────────────────────────

    def validate(self, step: int | None = None) -> Errors:
        """Errors of step (default: the current step) without moving."""
        return validate_step(self.current_step if step is None else step, self._state)

    def go_to(self, target: int) -> Errors:
        """
        Leave the current step for target.

        The current step is validated first; if it has errors the move is
        refused and the errors are returned (and kept in ``self.errors``).
        """
        errs = validate_step(self.current_step, self._state)
        if errs:
            logger.info("Draft %s: step %d blocked with %d errors",
                        self.key, self.current_step, len(errs))
            self.errors = errs
            return errs

        previous = self.current_step
        self.current_step = clamp_step(target)
        self.errors = []
        logger.info("Draft %s: step %d → %d", self.key, previous, self.current_step)
        return []

    def next(self) -> Errors:
        return self.go_to(self.current_step + 1)

    def back(self) -> WizardStep:
        """Go one step back. Retreating is never validated."""
        self.current_step = clamp_step(self.current_step - 1)
        self.errors = []
        return self.current_step

    def reset(self) -> None:
        """Discard the draft and start over from step 0."""
        if self.store is not None:
            try:
                self.store.clear(self.key)
            except Exception:
                logger.exception("Could not clear draft %s", self.key)
        self.current_step = FIRST_STEP
        self.errors = []
        logger.info("Draft %s reset", self.key)
        self._publish(default_state())

    def export(self) -> dict[str, Any]:
        return build_export(self._state)

    # ── Steps 0–3: plain fields ──────────────────────────────

    def update_identification(self, /, **fields: Any) -> None:
        s = self._state
        self._publish(s.model_copy(update={"step0": _patched(s.step0, fields)}))

    def update_context(self, /, **fields: Any) -> None:
        s = self._state
        self._publish(s.model_copy(update={"step1": _patched(s.step1, fields)}))

    def update_stakeholders(self, /, **fields: Any) -> None:
        s = self._state
        self._publish(s.model_copy(update={"step2": _patched(s.step2, fields)}))

    def update_scope(self, /, **fields: Any) -> None:
        s = self._state
        self._publish(s.model_copy(update={"step3": _patched(s.step3, fields)}))

    # ── Step 2: other stakeholders ───────────────────────────

    def _set_others(self, others: tuple) -> None:
        s = self._state
        step2 = s.step2.model_copy(update={"others": others})
        self._publish(s.model_copy(update={"step2": step2}))

    def add_stakeholder(self) -> None:
        self._set_others(self._state.step2.others + (new_stakeholder(),))

    def update_stakeholder(self, index: int, /, **patch: Any) -> str | None:
        others = self._state.step2.others
        if not 0 <= index < len(others):
            return self._refuse(f"No stakeholder #{index + 1}.")
        self._set_others(_replace_at(others, index, _patched(others[index], patch)))
        return None

    def remove_stakeholder(self, index: int) -> str | None:
        others = self._state.step2.others
        if not 0 <= index < len(others):
            return self._refuse(f"No stakeholder #{index + 1}.")
        self._set_others(_remove_at(others, index))
        return None

    # ── Step 4: deliverables ─────────────────────────────────

    def _set_deliverables(self, deliverables: tuple[Deliverable, ...]) -> None:
        s = self._state
        step4 = s.step4.model_copy(update={"deliverables": deliverables})
        self._publish(s.model_copy(update={"step4": step4}))

    def add_deliverable(self) -> Deliverable:
        deliverable = new_deliverable()
        self._set_deliverables(self._state.deliverables + (deliverable,))
        return deliverable

    def duplicate_deliverable(self, index: int) -> str | None:
        """Insert a deep copy with a new id right after the original."""
        deliverables = self._state.deliverables
        if not 0 <= index < len(deliverables):
            return self._refuse(f"No deliverable #{index + 1}.")
        clone = copy.deepcopy(deliverables[index]).model_copy(update={"id": new_deliverable_id()})
        self._set_deliverables(deliverables[:index + 1] + (clone,) + deliverables[index + 1:])
        return None

    def remove_deliverable(self, index: int) -> str | None:
        """Remove a deliverable; milestones lose their reference to it."""
        deliverables = self._state.deliverables
        if len(deliverables) <= 1:
            return self._refuse(KEEP_ONE_DELIVERABLE)
        if not 0 <= index < len(deliverables):
            return self._refuse(f"No deliverable #{index + 1}.")
        logger.info("Draft %s: removing deliverable %s", self.key, deliverables[index].id)
        self._set_deliverables(_remove_at(deliverables, index))
        return None

    def update_deliverable(self, index: int, /, **patch: Any) -> str | None:
        deliverables = self._state.deliverables
        if not 0 <= index < len(deliverables):
            return self._refuse(f"No deliverable #{index + 1}.")
        patch.pop("id", None)  # identity is immutable
        updated = _patched(deliverables[index], patch)
        self._set_deliverables(_replace_at(deliverables, index, updated))
        return None

    def update_deliverable_acceptance(self, index: int, /, **patch: Any) -> str | None:
        deliverables = self._state.deliverables
        if not 0 <= index < len(deliverables):
            return self._refuse(f"No deliverable #{index + 1}.")
        d = deliverables[index]
        updated = d.model_copy(update={"acceptance": _patched(d.acceptance, patch)})
        self._set_deliverables(_replace_at(deliverables, index, updated))
        return None

    # ── Step 5: milestones ───────────────────────────────────

    def _set_milestones(self, milestones: tuple[Milestone, ...]) -> None:
        s = self._state
        step5 = s.step5.model_copy(update={"milestones": milestones})
        self._publish(s.model_copy(update={"step5": step5}))

    def add_milestone(self) -> str | None:
        milestones = self._state.milestones
        if len(milestones) >= MAX_MILESTONES:
            return self._refuse(f"At most {MAX_MILESTONES} milestones.")
        self._set_milestones(milestones + (new_milestone(),))
        return None

    def apply_milestone_count(self, n: int) -> int:
        """
        Resize the milestone list to n (clamped to 1–10).

        Missing milestones are appended empty; extra ones are dropped from
        the end together with their data. Returns the applied count.
        """
        count = clamp(int(n or MIN_MILESTONES), MIN_MILESTONES, MAX_MILESTONES)
        milestones = self._state.milestones
        if len(milestones) < count:
            milestones = milestones + tuple(new_milestone() for _ in range(count - len(milestones)))
        elif len(milestones) > count:
            logger.info("Draft %s: dropping %d milestones", self.key, len(milestones) - count)
            milestones = milestones[:count]
        self._set_milestones(milestones)
        return count

    def remove_milestone(self, index: int) -> str | None:
        milestones = self._state.milestones
        if len(milestones) <= 1:
            return self._refuse(KEEP_ONE_MILESTONE)
        if not 0 <= index < len(milestones):
            return self._refuse(f"No milestone #{index + 1}.")
        self._set_milestones(_remove_at(milestones, index))
        return None

    def update_milestone(self, index: int, /, **patch: Any) -> str | None:
        milestones = self._state.milestones
        if not 0 <= index < len(milestones):
            return self._refuse(f"No milestone #{index + 1}.")
        self._set_milestones(_replace_at(milestones, index, _patched(milestones[index], patch)))
        return None

    def toggle_milestone_deliverable(
        self, index: int, deliverable_id: str, checked: bool
    ) -> str | None:
        """Select (checked=True) or unselect a deliverable for a milestone."""
        milestones = self._state.milestones
        if not 0 <= index < len(milestones):
            return self._refuse(f"No milestone #{index + 1}.")
        if checked and deliverable_id not in {d.id for d in self._state.deliverables}:
            return self._refuse(f"Unknown deliverable {deliverable_id}.")

        m = milestones[index]
        ids = m.deliverable_ids
        if checked:
            ids = ids if deliverable_id in ids else ids + (deliverable_id,)
        else:
            ids = tuple(i for i in ids if i != deliverable_id)
        updated = m.model_copy(update={"deliverable_ids": ids})
        self._set_milestones(_replace_at(milestones, index, updated))
        return None
