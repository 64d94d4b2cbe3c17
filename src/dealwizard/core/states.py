"""
Steps of the deal creation wizard.

Flow: identification → context → stakeholders → scope → deliverables
→ milestones → summary

Steps 0–5 collect data and are each gated by their own validation rules.
Step 6 is the read-only summary (export preview); nothing gates leaving it.
"""

import enum


class WizardStep(enum.IntEnum):
    IDENTIFICATION = 0   # project name, category, execution mode, location
    CONTEXT = 1          # problem statement + verifiable success criteria
    STAKEHOLDERS = 2     # requester, final approver, others who can block
    SCOPE = 3            # in scope / out of scope / assumptions
    DELIVERABLES = 4     # the core of the contract
    MILESTONES = 5       # deliverables per milestone, acceptance, % of value
    SUMMARY = 6          # final JSON


FIRST_STEP = WizardStep.IDENTIFICATION
LAST_STEP = WizardStep.SUMMARY

STEP_TITLES: dict[WizardStep, str] = {
    WizardStep.IDENTIFICATION: "Identification",
    WizardStep.CONTEXT: "Context",
    WizardStep.STAKEHOLDERS: "Stakeholders",
    WizardStep.SCOPE: "Scope",
    WizardStep.DELIVERABLES: "Deliverables",
    WizardStep.MILESTONES: "Milestones",
    WizardStep.SUMMARY: "Summary",
}

# Short guidance shown next to each step.
STEP_HINTS: dict[WizardStep, str] = {
    WizardStep.IDENTIFICATION: "Define the service (the minimum so it doesn't become 'anything').",
    WizardStep.CONTEXT: "Context and verifiable success criteria.",
    WizardStep.STAKEHOLDERS: "Define who decides and who can block.",
    WizardStep.SCOPE: "Scope: what is in and what is out.",
    WizardStep.DELIVERABLES: "Deliverables: the core of the contract.",
    WizardStep.MILESTONES: "Milestones: deliverables, acceptance and a 100% total.",
    WizardStep.SUMMARY: "Review the final summary (JSON).",
}


def clamp(n: int, low: int, high: int) -> int:
    """Limit n to the closed range [low, high]."""
    return max(low, min(high, n))


def clamp_step(n: int) -> WizardStep:
    return WizardStep(clamp(int(n), FIRST_STEP, LAST_STEP))
