"""Tests for the wizard controller: navigation, mutations and invariants."""

import pytest
from pydantic import ValidationError

from dealwizard.adapters.base import DraftStore
from dealwizard.core import wizard as wizard_module
from dealwizard.core.models import ExecutionMode, WizardState, parse_state
from dealwizard.core.states import WizardStep
from dealwizard.core.wizard import KEEP_ONE_DELIVERABLE, KEEP_ONE_MILESTONE, WizardController


class BrokenStore(DraftStore):
    def load(self, key):
        raise OSError("disk gone")

    def save(self, key, payload):
        raise OSError("disk gone")

    def clear(self, key):
        raise OSError("disk gone")


# ── Initial state ────────────────────────────────────────────


def test_fresh_controller_has_invariant_floor(wizard):
    assert wizard.current_step == WizardStep.IDENTIFICATION
    assert len(wizard.state.deliverables) == 1
    assert len(wizard.state.milestones) == 1
    assert wizard.state.deliverables[0].id
    assert wizard.errors == []
    assert wizard.notice is None


def test_controller_without_store():
    controller = WizardController()
    controller.update_identification(project_name="Offline draft")
    assert controller.state.step0.project_name == "Offline draft"


# ── Navigation ───────────────────────────────────────────────


def test_next_is_refused_on_invalid_step(wizard):
    before = wizard.state
    errs = wizard.next()
    assert errs
    assert wizard.errors == errs
    assert wizard.current_step == 0
    assert wizard.state is before


def test_next_walks_every_step_of_a_valid_draft(filled_wizard):
    for expected in range(1, 7):
        assert filled_wizard.next() == []
        assert filled_wizard.current_step == expected
    # summary is terminal: nothing gates leaving it and next stays there
    assert filled_wizard.next() == []
    assert filled_wizard.current_step == WizardStep.SUMMARY


def test_back_never_validates(filled_wizard):
    filled_wizard.next()
    filled_wizard.update_context(problem="")
    assert filled_wizard.validate()  # step 1 is now invalid
    assert filled_wizard.back() == WizardStep.IDENTIFICATION
    assert filled_wizard.back() == WizardStep.IDENTIFICATION


def test_go_to_clamps_target(filled_wizard):
    assert filled_wizard.go_to(99) == []
    assert filled_wizard.current_step == WizardStep.SUMMARY
    assert filled_wizard.go_to(-3) == []
    assert filled_wizard.current_step == WizardStep.IDENTIFICATION


def test_go_to_validates_current_step_not_target(filled_wizard):
    filled_wizard.update_scope(in_scope=["Everything"])
    assert filled_wizard.go_to(3) == []
    assert filled_wizard.go_to(5)
    assert filled_wizard.current_step == 3


def test_successful_transition_clears_errors(filled_wizard):
    filled_wizard.update_identification(project_name="Job")
    assert filled_wizard.next()
    filled_wizard.update_identification(project_name="Clinic scheduling")
    assert filled_wizard.next() == []
    assert filled_wizard.errors == []


def test_progress_and_hint(filled_wizard):
    assert filled_wizard.progress_pct == 0
    for _ in range(3):
        filled_wizard.next()
    assert filled_wizard.progress_pct == 50
    assert filled_wizard.current_title == "Scope"
    assert filled_wizard.current_hint.startswith("Scope:")


# ── Field updates ────────────────────────────────────────────


def test_update_accepts_attribute_and_wire_names(wizard):
    wizard.update_identification(projectName="Clinic scheduling", execution_mode="OnSite")
    assert wizard.state.step0.project_name == "Clinic scheduling"
    assert wizard.state.step0.execution_mode is ExecutionMode.ONSITE


def test_unknown_enum_value_is_rejected(wizard):
    before = wizard.state
    with pytest.raises(ValidationError):
        wizard.update_identification(execution_mode="Moon")
    assert wizard.state is before


def test_unknown_field_is_rejected(wizard):
    before = wizard.state
    with pytest.raises(ValidationError) as exc:
        wizard.update_identification(projectname="Typo")
    assert exc.value.errors()[0]["type"] == "extra_forbidden"
    assert wizard.state is before


def test_patch_keys_never_bind_to_parameters(wizard):
    with pytest.raises(ValidationError):
        wizard.update_deliverable(0, index=3, name="Manual")
    with pytest.raises(ValidationError):
        wizard.update_identification(self="x")
    with pytest.raises(ValidationError):
        wizard.update_milestone(0, patch={})
    assert wizard.state.deliverables[0].name == ""


def test_bullet_text_is_split_into_lines(wizard):
    wizard.update_context(success_bullets="Reply in 2 h\n\n   Zero lost orders  \n")
    assert wizard.state.step1.success_bullets == ("Reply in 2 h", "Zero lost orders")
    wizard.update_scope(inScope=["Login", "Signup"])
    assert wizard.state.step3.in_scope == ("Login", "Signup")


def test_mutation_refreshes_updated_at(wizard, monkeypatch):
    monkeypatch.setattr(wizard_module, "utc_now_iso", lambda: "2030-01-01T00:00:00.000Z")
    created = wizard.state.meta.created_at
    wizard.update_identification(city="Recife")
    assert wizard.state.meta.updated_at == "2030-01-01T00:00:00.000Z"
    assert wizard.state.meta.created_at == created


# ── Stakeholders ─────────────────────────────────────────────


def test_stakeholder_list_operations(wizard):
    wizard.add_stakeholder()
    wizard.add_stakeholder()
    assert wizard.update_stakeholder(1, name="Legal", canBlock=True) is None
    others = wizard.state.step2.others
    assert len(others) == 2
    assert others[1].name == "Legal"
    assert others[1].can_block is True

    assert wizard.remove_stakeholder(0) is None
    assert [o.name for o in wizard.state.step2.others] == ["Legal"]
    assert wizard.remove_stakeholder(5) == "No stakeholder #6."


# ── Deliverables ─────────────────────────────────────────────


def test_removing_last_deliverable_is_refused(wizard):
    before = wizard.state
    notice = wizard.remove_deliverable(0)
    assert notice == KEEP_ONE_DELIVERABLE
    assert wizard.notice == KEEP_ONE_DELIVERABLE
    assert wizard.state is before
    assert len(wizard.state.deliverables) == 1
    assert KEEP_ONE_DELIVERABLE not in wizard.validate(4)


def test_removing_deliverable_cascades_to_milestones(filled_wizard):
    before = filled_wizard.state.milestones
    assert all("d-landing" in m.deliverable_ids for m in before)

    assert filled_wizard.remove_deliverable(0) is None

    after = filled_wizard.state.milestones
    assert [m.deliverable_ids for m in after] == [(), ("d-training",)]
    for old, new in zip(before, after):
        assert old.model_dump(exclude={"deliverable_ids"}) == new.model_dump(exclude={"deliverable_ids"})


def test_duplicate_deliverable(filled_wizard):
    original = filled_wizard.state.deliverables[0]
    milestones = filled_wizard.state.milestones

    assert filled_wizard.duplicate_deliverable(0) is None

    deliverables = filled_wizard.state.deliverables
    assert len(deliverables) == 3
    clone = deliverables[1]
    assert clone.id != original.id
    assert clone.model_dump(exclude={"id"}) == original.model_dump(exclude={"id"})
    assert deliverables[2].id == "d-training"
    assert filled_wizard.state.milestones == milestones


def test_update_deliverable_keeps_id(wizard):
    original_id = wizard.state.deliverables[0].id
    wizard.update_deliverable(0, id="hijack", name="Manual", type="report")
    d = wizard.state.deliverables[0]
    assert d.id == original_id
    assert d.name == "Manual"


def test_update_deliverable_acceptance(wizard):
    wizard.update_deliverable_acceptance(0, mode="Checklist", checklist="One\nTwo\nThree")
    acceptance = wizard.state.deliverables[0].acceptance
    assert acceptance.mode.value == "Checklist"
    assert acceptance.checklist == ("One", "Two", "Three")


def test_deliverable_index_out_of_range(wizard):
    assert wizard.update_deliverable(3, name="x") == "No deliverable #4."
    assert wizard.duplicate_deliverable(-1) == "No deliverable #0."


# ── Milestones ───────────────────────────────────────────────


def test_apply_milestone_count_is_idempotent(wizard):
    wizard.update_milestone(0, name="Kickoff", valuePct="20")
    wizard.apply_milestone_count(5)
    once = wizard.state.milestones
    wizard.apply_milestone_count(5)
    twice = wizard.state.milestones

    assert len(twice) == 5
    assert twice == once
    assert twice[0].name == "Kickoff"
    assert twice[0].value_pct == "20"


def test_apply_milestone_count_truncates_and_clamps(wizard):
    wizard.apply_milestone_count(4)
    wizard.update_milestone(3, name="Last")
    assert wizard.apply_milestone_count(2) == 2
    assert [m.name for m in wizard.state.milestones] == ["", ""]
    assert wizard.apply_milestone_count(0) == 1
    assert len(wizard.state.milestones) == 1
    assert wizard.apply_milestone_count(50) == 10
    assert len(wizard.state.milestones) == 10


def test_add_milestone_is_capped(wizard):
    wizard.apply_milestone_count(10)
    assert wizard.add_milestone() == "At most 10 milestones."
    assert len(wizard.state.milestones) == 10


def test_removing_last_milestone_is_refused(wizard):
    assert wizard.remove_milestone(0) == KEEP_ONE_MILESTONE
    assert len(wizard.state.milestones) == 1

    wizard.add_milestone()
    wizard.update_milestone(1, name="Second")
    assert wizard.remove_milestone(0) is None
    assert [m.name for m in wizard.state.milestones] == ["Second"]


def test_toggle_milestone_deliverable(wizard):
    deliverable_id = wizard.state.deliverables[0].id
    wizard.toggle_milestone_deliverable(0, deliverable_id, True)
    wizard.toggle_milestone_deliverable(0, deliverable_id, True)
    assert wizard.state.milestones[0].deliverable_ids == (deliverable_id,)

    wizard.toggle_milestone_deliverable(0, deliverable_id, False)
    assert wizard.state.milestones[0].deliverable_ids == ()

    assert wizard.toggle_milestone_deliverable(0, "nope", True) == "Unknown deliverable nope."
    assert wizard.toggle_milestone_deliverable(9, deliverable_id, True) == "No milestone #10."


def test_milestone_update_drops_unknown_references(wizard):
    deliverable_id = wizard.state.deliverables[0].id
    wizard.update_milestone(0, deliverableIds=[deliverable_id, "ghost", deliverable_id])
    assert wizard.state.milestones[0].deliverable_ids == (deliverable_id,)


# ── Reset & persistence ──────────────────────────────────────


def test_reset_restores_defaults(filled_wizard, store):
    filled_wizard.next()
    filled_wizard.add_deliverable()
    filled_wizard.reset()

    state = filled_wizard.state
    assert filled_wizard.current_step == 0
    assert state.step0.project_name == ""
    assert len(state.deliverables) == 1
    assert len(state.milestones) == 1
    assert state.deliverables[0].id not in ("d-landing", "d-training")
    assert parse_state(store.load("test-draft")).deliverables[0].id == state.deliverables[0].id


def test_draft_survives_a_new_controller(wizard, store):
    wizard.update_identification(project_name="Clinic scheduling")
    deliverable_id = wizard.state.deliverables[0].id

    reopened = WizardController(store, "test-draft")
    assert reopened.state.step0.project_name == "Clinic scheduling"
    assert reopened.state.deliverables[0].id == deliverable_id


@pytest.mark.parametrize(
    "payload",
    ["{not json", "[1, 2]", '{"step0": {"executionMode": "Moon"}}', '{"meta": "nope"}'],
)
def test_malformed_payload_falls_back_to_defaults(store, payload):
    store.save("test-draft", payload)
    controller = WizardController(store, "test-draft")
    assert controller.state.step0.project_name == ""
    assert len(controller.state.deliverables) == 1
    assert len(controller.state.milestones) == 1


def test_partial_payload_is_merged_over_defaults(store):
    store.save("test-draft", '{"step1": {"problem": "Orders are lost", "successBullets": []}}')
    controller = WizardController(store, "test-draft")
    assert controller.state.step1.problem == "Orders are lost"
    assert controller.state.meta.version == 1


def test_loaded_dangling_references_are_dropped(store, valid_state):
    data = valid_state.to_dict()
    data["step5"]["milestones"][0]["deliverableIds"] = ["d-landing", "d-gone"]
    store.save("test-draft", WizardState.model_validate(data).to_json())

    controller = WizardController(store, "test-draft")
    assert controller.state.milestones[0].deliverable_ids == ("d-landing",)


def test_storage_failures_do_not_break_the_wizard():
    controller = WizardController(BrokenStore(), "test-draft")
    controller.update_identification(project_name="Still works")
    controller.reset()
    assert controller.state.step0.project_name == ""
