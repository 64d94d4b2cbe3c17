"""
Export builder: turns a wizard draft into the final deal document.

The document is self-contained: milestones carry the id and name of each
deliverable they bundle instead of bare ids, and entities get a 1-based
display index. The transform works on a deep copy (a plain dict) and
never fails: a reference to a deliverable that no longer exists degrades
to a placeholder name.

No completeness gate is applied here — a draft whose milestone values do
not add up to 100% can still be exported.
"""

import json
from typing import Any

from dealwizard.core.models import WizardState

MISSING_DELIVERABLE_LABEL = "Deliverable"


def build_export(state: WizardState) -> dict[str, Any]:
    """Build the denormalized export document for a draft."""
    doc = state.to_dict()

    doc["step0"]["projectName"] = doc["step0"]["projectName"].strip()
    doc["step2"]["others"] = [
        o for o in doc["step2"]["others"]
        if o["name"].strip() or o["role"].strip()
    ]

    doc["step4"]["deliverables"] = [
        {**d, "index": i}
        for i, d in enumerate(doc["step4"]["deliverables"], start=1)
    ]
    names_by_id = {d["id"]: d["name"] for d in doc["step4"]["deliverables"]}

    doc["step5"]["milestones"] = [
        {
            **m,
            "index": i,
            "deliverablesRefs": [
                {"id": ref, "name": names_by_id.get(ref, MISSING_DELIVERABLE_LABEL)}
                for ref in m["deliverableIds"]
            ],
        }
        for i, m in enumerate(doc["step5"]["milestones"], start=1)
    ]
    return doc


def export_json(state: WizardState, indent: int | None = 2) -> str:
    """Export document as JSON text (for copy/download)."""
    return json.dumps(build_export(state), ensure_ascii=False, indent=indent)
