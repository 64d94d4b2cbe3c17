"""
Per-step validation engine for the deal wizard.

``validate_step(step, state)`` returns an ordered list of human-readable
error messages; an empty list means the step is valid. Validation is pure
(no side effects) and accumulates every violation of a step so the caller
can show them all at once. Each message starts with the questionnaire
field code it refers to (e.g. ``4.2.6`` = deliverable 2, acceptance).

Only step 5 reads another step's data: milestones need the deliverables
of step 4 to exist.
"""

import math

from dealwizard.core.heuristics import has_broad_scope_word, is_generic_name, is_verifiable, lacks_context
from dealwizard.core.models import (
    AcceptanceMode,
    Deliverable,
    DeliverableType,
    ExecutionMode,
    FormatMode,
    Milestone,
    WizardState,
)
from dealwizard.core.states import WizardStep

Errors = list[str]

PROJECT_NAME_MIN, PROJECT_NAME_MAX = 3, 80
DELIVERABLE_NAME_MIN, DELIVERABLE_NAME_MAX = 2, 60
CHECKLIST_MIN_ITEMS = 5
MILESTONE_CHECKLIST_MIN_ITEMS = 2
MILESTONE_TOTAL_PCT = 100
NO_DEADLINE_PHRASE = "whenever"


# ── Helpers ──────────────────────────────────────────────────


def parse_number(text: str) -> float:
    """Parse a typed numeric field; anything unparsable counts as 0."""
    try:
        value = float(str(text).strip())
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_number(value: float) -> str:
    """90.0 → '90', 99.899999 → '99.9'."""
    return f"{round(value, 2):g}"


# ── Step rules ───────────────────────────────────────────────


def _validate_identification(state: WizardState) -> Errors:
    errs: Errors = []
    s0 = state.step0
    name = s0.project_name.strip()

    if not PROJECT_NAME_MIN <= len(name) <= PROJECT_NAME_MAX:
        errs.append(f"0.1 Project name must be {PROJECT_NAME_MIN}–{PROJECT_NAME_MAX} characters.")
    if is_generic_name(name):
        errs.append("0.1 Project name is too generic (avoid 'Project', 'Service', 'Job').")

    if s0.category is None:
        errs.append("0.2 Select a main category.")
    if s0.execution_mode is None:
        errs.append("0.3 Select where the work is done (Remote/OnSite/Hybrid).")
    elif s0.execution_mode in (ExecutionMode.ONSITE, ExecutionMode.HYBRID):
        if not s0.city.strip():
            errs.append("0.3 For OnSite/Hybrid work, enter the city.")
    return errs


def _validate_context(state: WizardState) -> Errors:
    errs: Errors = []
    problem = state.step1.problem.strip()

    if not problem:
        errs.append("1.1 Describe the problem (it cannot be empty).")
    elif lacks_context(problem):
        errs.append(
            "1.1 Context seems to be missing. Try: 'Today X happens → this causes Y → we want Z'."
        )

    for i, bullet in enumerate(state.step1.success_bullets, start=1):
        if not is_verifiable(bullet):
            errs.append(
                f"1.2 Item {i} looks subjective. Add a metric, unit or verifiable checklist."
            )
    return errs


def _validate_stakeholders(state: WizardState) -> Errors:
    errs: Errors = []
    s2 = state.step2
    if not s2.requester_name.strip():
        errs.append("2.1 Enter the requester's name.")
    if not s2.requester_contact.strip():
        errs.append("2.1 Enter the requester's contact.")
    if not s2.approver_name.strip() or not s2.approver_role.strip():
        errs.append("2.2 Enter one final approver (name + role).")
    return errs


def _validate_scope(state: WizardState) -> Errors:
    return [
        f"3.1 Item {i} contains 'everything/total/complete'. Be more specific."
        for i, item in enumerate(state.step3.in_scope, start=1)
        if has_broad_scope_word(item)
    ]


def _has_required_format(d: Deliverable) -> bool:
    if d.format_mode is FormatMode.EXPLICIT_FORMATS:
        return bool(d.formats.strip())
    if d.format_mode is FormatMode.STANDARD:
        return bool(d.standard.strip())
    return False


def _validate_acceptance(idx: int, d: Deliverable) -> Errors:
    errs: Errors = []
    acc = d.acceptance

    if acc.mode is None:
        errs.append(f"4.{idx}.6 Choose an acceptance mode (Checklist/Metric/Evidence).")
    elif acc.mode is AcceptanceMode.CHECKLIST:
        if len(acc.checklist) < CHECKLIST_MIN_ITEMS:
            errs.append(f"4.{idx}.6 Checklist must have at least {CHECKLIST_MIN_ITEMS} items.")
        for j, item in enumerate(acc.checklist, start=1):
            if not is_verifiable(item):
                errs.append(f"4.{idx}.6 Checklist item {j} looks subjective. Make it verifiable.")
    elif acc.mode is AcceptanceMode.METRIC:
        if not acc.metric.value.strip():
            errs.append(f"4.{idx}.6 Metric: enter the value/threshold.")
        if not acc.metric.unit.strip():
            errs.append(f"4.{idx}.6 Metric: enter the unit (s, %, mm...).")
    elif acc.mode is AcceptanceMode.EVIDENCE:
        if acc.evidence_type is None:
            errs.append(
                f"4.{idx}.6 Evidence: select an attachable type (photo/video/log/report/file)."
            )
    return errs


def _validate_deliverables(state: WizardState) -> Errors:
    errs: Errors = []
    deliverables = state.step4.deliverables
    if not deliverables:
        errs.append("4 Create at least 1 deliverable.")

    for idx, d in enumerate(deliverables, start=1):
        name = d.name.strip()
        if not DELIVERABLE_NAME_MIN <= len(name) <= DELIVERABLE_NAME_MAX:
            errs.append(
                f"4.{idx}.1 Deliverable name must be "
                f"{DELIVERABLE_NAME_MIN}–{DELIVERABLE_NAME_MAX} characters."
            )
        if d.type is None:
            errs.append(f"4.{idx}.2 Select the deliverable type.")
        if not d.description.strip():
            errs.append(f"4.{idx}.3 An objective description is required.")
        elif not is_verifiable(d.description):
            errs.append(
                f"4.{idx}.3 Description uses subjective terms. "
                "Add a verifiable criterion (metric/checklist)."
            )

        if d.type is DeliverableType.FILE and not _has_required_format(d):
            errs.append(f"4.{idx}.4 Type 'file' requires formats (e.g. PDF/PNG) or a standard.")

        errs.extend(_validate_acceptance(idx, d))
    return errs


def _validate_milestone(idx: int, m: Milestone) -> Errors:
    errs: Errors = []
    if not m.name.strip():
        errs.append(f"5.{idx}.1 Milestone name is required.")
    if not m.deliverable_ids:
        errs.append(f"5.{idx}.2 Select at least 1 deliverable.")
    if not m.value_pct.strip() or parse_number(m.value_pct) <= 0:
        errs.append(f"5.{idx}.4 Enter the milestone value (%).")

    eta_min = parse_number(m.eta_min_days)
    eta_max = parse_number(m.eta_max_days)
    if not eta_min or not eta_max:
        errs.append(f"5.{idx}.5 Enter a delivery window (min and max days).")
    elif eta_min > eta_max:
        errs.append(f"5.{idx}.5 Minimum days cannot be greater than maximum days.")

    raw_eta = f"{m.eta_min_days} {m.eta_max_days}".casefold()
    if NO_DEADLINE_PHRASE in raw_eta:
        errs.append(f"5.{idx}.5 '{NO_DEADLINE_PHRASE}' is not accepted. Use a numeric range.")

    if len(m.accept_checklist) < MILESTONE_CHECKLIST_MIN_ITEMS:
        errs.append(
            f"5.{idx}.3 Milestone acceptance: include at least "
            f"{MILESTONE_CHECKLIST_MIN_ITEMS} checklist items."
        )
    if not m.evidence_min.strip():
        errs.append(f"5.{idx}.3 Milestone acceptance: define the minimum evidence.")
    return errs


def _validate_milestones(state: WizardState) -> Errors:
    errs: Errors = []
    milestones = state.step5.milestones
    if not milestones:
        errs.append("5 Create at least 1 milestone.")

    if not state.step4.deliverables:
        errs.append("5 You need deliverables (step 4) before defining milestones.")
        return errs

    total = 0.0
    for idx, m in enumerate(milestones, start=1):
        errs.extend(_validate_milestone(idx, m))
        total += parse_number(m.value_pct)

    if round_half_up(total) != MILESTONE_TOTAL_PCT:
        errs.append(
            f"5.4 Milestone percentages must add up to {MILESTONE_TOTAL_PCT}%. "
            f"Currently: {format_number(total)}%."
        )
    return errs


_RULES = {
    WizardStep.IDENTIFICATION: _validate_identification,
    WizardStep.CONTEXT: _validate_context,
    WizardStep.STAKEHOLDERS: _validate_stakeholders,
    WizardStep.SCOPE: _validate_scope,
    WizardStep.DELIVERABLES: _validate_deliverables,
    WizardStep.MILESTONES: _validate_milestones,
}


def validate_step(step: int, state: WizardState) -> Errors:
    """
    Validate one step of the draft.

    Returns the list of errors for ``step`` (0–5). The summary step and
    any out-of-range index have no rules and always return an empty list.
    """
    rule = _RULES.get(step)  # IntEnum hashes like int
    if rule is None:
        return []
    return rule(state)
