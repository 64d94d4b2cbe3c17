"""Builders for wizard drafts used across the test suite."""

from dealwizard.core.models import WizardState, default_state

CHECKLIST = [
    "Page loads in under 2 s on 4G",
    "Contact form sends an email to sales",
    "Layout renders at 375 px width",
    "All links return HTTP 200",
    "Lighthouse accessibility score of 90 or more",
]


def make_valid_state(**overrides) -> WizardState:
    """A draft that passes every step; overrides replace whole step sections."""
    data = default_state().to_dict()
    data.update({
        "step0": {
            "projectName": "Client Onboarding Portal",
            "category": "Digital/Software",
            "executionMode": "Remote",
            "city": "",
            "district": "",
        },
        "step1": {
            "problem": "Today our sales team loses leads because the site has no contact form",
            "successBullets": ["Conversion rate above 3%", "Form answered within 24 hours"],
        },
        "step2": {
            "requesterName": "Ana Souza",
            "requesterContact": "ana@example.com",
            "approverName": "Carlos Lima",
            "approverRole": "Head of Sales",
            "others": [{"name": "Legal team", "role": "Reviewer", "canBlock": True}],
        },
        "step3": {
            "inScope": ["Design of the landing page", "Contact form integration"],
            "outScope": ["Hosting costs"],
            "assumptions": ["Copy is provided by the client"],
        },
        "step4": {
            "deliverables": [
                {
                    "id": "d-landing",
                    "name": "Landing page",
                    "type": "file",
                    "description": "Landing page with 3 sections and a contact form",
                    "formatMode": "ExplicitFormats",
                    "formats": "HTML, CSS",
                    "standard": "",
                    "acceptance": {
                        "mode": "Checklist",
                        "checklist": CHECKLIST,
                        "metric": {"value": "", "unit": ""},
                        "evidenceType": "",
                    },
                },
                {
                    "id": "d-training",
                    "name": "Team training",
                    "type": "training",
                    "description": "Two sessions on updating the landing page",
                    "formatMode": "None",
                    "formats": "",
                    "standard": "",
                    "acceptance": {
                        "mode": "Evidence",
                        "checklist": [],
                        "metric": {"value": "", "unit": ""},
                        "evidenceType": "video",
                    },
                },
            ],
        },
        "step5": {
            "milestones": [
                {
                    "name": "Design approved",
                    "deliverableIds": ["d-landing"],
                    "acceptChecklist": ["Mockups for 3 sections", "Written approval by the approver"],
                    "evidenceMin": "Link to the approved mockups",
                    "valuePct": "40",
                    "etaMinDays": "5",
                    "etaMaxDays": "10",
                },
                {
                    "name": "Site live",
                    "deliverableIds": ["d-landing", "d-training"],
                    "acceptChecklist": ["Site reachable on the domain", "Training recording shared"],
                    "evidenceMin": "Production URL and recording",
                    "valuePct": "60",
                    "etaMinDays": "10",
                    "etaMaxDays": "20",
                },
            ],
        },
    })
    data.update(overrides)
    return WizardState.model_validate(data)


def with_step(n: int, **fields) -> WizardState:
    """The valid draft with some wire fields of step n replaced."""
    data = make_valid_state().to_dict()
    data[f"step{n}"].update(fields)
    return WizardState.model_validate(data)


def deliverable(id: str, **fields) -> dict:
    """A valid deliverable (wire format); fields replace top-level keys."""
    data = {
        "id": id,
        "name": "Weekly report",
        "type": "report",
        "description": "Report with 5 KPIs sent every Monday",
        "formatMode": "None",
        "formats": "",
        "standard": "",
        "acceptance": {"mode": "Metric", "metric": {"value": "5", "unit": "pages"}},
    }
    data.update(fields)
    return data


def milestone(**fields) -> dict:
    """A valid milestone (wire format) worth 50%."""
    data = {
        "name": "Phase",
        "deliverableIds": ["d-landing"],
        "acceptChecklist": ["Report sent by email", "Approver signs off"],
        "evidenceMin": "Signed report",
        "valuePct": "50",
        "etaMinDays": "5",
        "etaMaxDays": "10",
    }
    data.update(fields)
    return data
