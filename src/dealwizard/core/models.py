"""
Entity model for the deal wizard.

This module defines the complete draft structure:
- WizardState   — the root aggregate (meta + one section per step)
- Identification, Context, Stakeholders, Scope — steps 0–3
- Deliverable   — a discrete output with its acceptance criteria (step 4)
- Milestone     — a payment/delivery checkpoint referencing deliverables (step 5)

Records are frozen pydantic models: a change always produces a new
snapshot via ``model_copy(update=...)``. Python attributes are snake_case;
the JSON field names (``projectName``, ``deliverableIds``...) are aliases
and are what every serialization uses.
"""

import enum
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


# ── Enums ─────────────────────────────────────────────────────


class Category(str, enum.Enum):
    DIGITAL_SOFTWARE = "Digital/Software"
    DESIGN_CONTENT = "Design/Content"
    CONSULTING_TRAINING = "Consulting/Training"
    ONSITE_SERVICE = "On-site service"
    PHYSICAL_PRODUCTION = "Physical production"
    OTHER = "Other"


class ExecutionMode(str, enum.Enum):
    REMOTE = "Remote"
    ONSITE = "OnSite"
    HYBRID = "Hybrid"


class DeliverableType(str, enum.Enum):
    FILE = "file"
    INSTALLATION = "installation"
    SESSION = "session"
    TRAINING = "training"
    REPORT = "report"
    PHYSICAL_ITEM = "physical item"
    OTHER = "other"


class FormatMode(str, enum.Enum):
    NONE = "None"
    EXPLICIT_FORMATS = "ExplicitFormats"
    STANDARD = "Standard"


class AcceptanceMode(str, enum.Enum):
    CHECKLIST = "Checklist"
    METRIC = "Metric"
    EVIDENCE = "Evidence"


class EvidenceType(str, enum.Enum):
    PHOTO = "photo"
    VIDEO = "video"
    LOG = "log"
    REPORT = "report"
    FILE = "file"


# ── Field coercion ────────────────────────────────────────────


def _blank_to_none(value: Any) -> Any:
    """Older drafts store an unselected option as ''."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _number_to_text(value: Any) -> Any:
    """Numeric inputs are kept as typed text; accept JSON numbers too."""
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


NumericText = Annotated[str, BeforeValidator(_number_to_text)]


OptionalCategory = Annotated[Category | None, BeforeValidator(_blank_to_none)]
OptionalExecutionMode = Annotated[ExecutionMode | None, BeforeValidator(_blank_to_none)]
OptionalDeliverableType = Annotated[DeliverableType | None, BeforeValidator(_blank_to_none)]
OptionalAcceptanceMode = Annotated[AcceptanceMode | None, BeforeValidator(_blank_to_none)]
OptionalEvidenceType = Annotated[EvidenceType | None, BeforeValidator(_blank_to_none)]


# ── Base ──────────────────────────────────────────────────────


class WizardModel(BaseModel):
    """Base class for all wizard records."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ── Records ───────────────────────────────────────────────────


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


class Meta(WizardModel):
    # Drafts saved without timestamps get the load time.
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    version: int = SCHEMA_VERSION


class Identification(WizardModel):
    """Step 0: what the deal is called, what kind of work, where."""

    project_name: str = ""
    category: OptionalCategory = None
    execution_mode: OptionalExecutionMode = None
    city: str = ""
    district: str = ""


class Context(WizardModel):
    """Step 1: the problem today and how success is measured."""

    problem: str = ""
    success_bullets: tuple[str, ...] = ()


class Stakeholder(WizardModel):
    name: str = ""
    role: str = ""
    can_block: bool = False


class Stakeholders(WizardModel):
    """Step 2: who asks, who decides, who else may block."""

    requester_name: str = ""
    requester_contact: str = ""
    approver_name: str = ""
    approver_role: str = ""
    others: tuple[Stakeholder, ...] = ()


class Scope(WizardModel):
    """Step 3: what is in, what is out, what is assumed."""

    in_scope: tuple[str, ...] = ()
    out_scope: tuple[str, ...] = ()
    assumptions: tuple[str, ...] = ()


class Metric(WizardModel):
    value: NumericText = ""
    unit: str = ""


class Acceptance(WizardModel):
    """
    How a deliverable is accepted.

    Only the field matching ``mode`` is meaningful: ``checklist`` for
    Checklist, ``metric`` for Metric, ``evidence_type`` for Evidence.
    """

    mode: OptionalAcceptanceMode = None
    checklist: tuple[str, ...] = ()
    metric: Metric = Field(default_factory=Metric)
    evidence_type: OptionalEvidenceType = None


class Deliverable(WizardModel):
    id: str
    name: str = ""
    type: OptionalDeliverableType = None
    description: str = ""
    format_mode: FormatMode = FormatMode.NONE
    formats: str = ""
    standard: str = ""
    acceptance: Acceptance = Field(default_factory=Acceptance)


class DeliverablesStep(WizardModel):
    """Step 4."""

    deliverables: tuple[Deliverable, ...] = ()


class Milestone(WizardModel):
    """
    A payment/delivery checkpoint.

    ``deliverable_ids`` references Deliverable.id values (no ownership,
    no back-pointers). Percent and ETA fields are typed text, parsed when
    validated.
    """

    name: str = ""
    deliverable_ids: tuple[str, ...] = ()
    accept_checklist: tuple[str, ...] = ()
    evidence_min: str = ""
    value_pct: NumericText = ""
    eta_min_days: NumericText = ""
    eta_max_days: NumericText = ""


class MilestonesStep(WizardModel):
    """Step 5."""

    milestones: tuple[Milestone, ...] = ()


class WizardState(WizardModel):
    """Root aggregate: the whole deal draft."""

    meta: Meta
    step0: Identification = Field(default_factory=Identification)
    step1: Context = Field(default_factory=Context)
    step2: Stakeholders = Field(default_factory=Stakeholders)
    step3: Scope = Field(default_factory=Scope)
    step4: DeliverablesStep = Field(default_factory=DeliverablesStep)
    step5: MilestonesStep = Field(default_factory=MilestonesStep)

    @property
    def deliverables(self) -> tuple[Deliverable, ...]:
        return self.step4.deliverables

    @property
    def milestones(self) -> tuple[Milestone, ...]:
        return self.step5.milestones

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict with wire field names."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# ── Factories ─────────────────────────────────────────────────


def new_deliverable_id() -> str:
    return uuid.uuid4().hex


def new_deliverable() -> Deliverable:
    return Deliverable(id=new_deliverable_id())


def new_milestone() -> Milestone:
    return Milestone()


def new_stakeholder() -> Stakeholder:
    return Stakeholder()


def default_state() -> WizardState:
    """A fresh, empty draft (no deliverables or milestones yet)."""
    now = utc_now_iso()
    return WizardState(meta=Meta(created_at=now, updated_at=now))


def lines_to_list(text: str | None) -> list[str]:
    """Split a textarea value (one item per line) into trimmed, non-empty items."""
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


# ── Loading ───────────────────────────────────────────────────


def parse_state(raw: str | None) -> WizardState:
    """
    Rebuild a draft from its JSON encoding.

    The loaded object is merged over ``default_state()`` at the top level
    so drafts written by an older schema still load. Anything that is not
    a valid draft (bad JSON, wrong shape, unknown enum value) falls back
    to the defaults.
    """
    if not raw:
        return default_state()

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Stored draft is not valid JSON, starting from defaults")
        return default_state()

    if not isinstance(parsed, dict):
        logger.warning("Stored draft is not a JSON object, starting from defaults")
        return default_state()

    merged = {**default_state().to_dict(), **parsed}
    try:
        return WizardState.model_validate(merged)
    except ValidationError as e:
        logger.warning("Stored draft failed validation (%d errors), starting from defaults",
                       e.error_count())
        return default_state()
