"""Shared fixtures: a fully valid draft and controllers over an in-memory store."""

import pytest

from dealwizard.adapters.base import InMemoryDraftStore
from dealwizard.core.models import WizardState
from dealwizard.core.wizard import WizardController
from helpers import make_valid_state


@pytest.fixture
def valid_state() -> WizardState:
    return make_valid_state()


@pytest.fixture
def store() -> InMemoryDraftStore:
    return InMemoryDraftStore()


@pytest.fixture
def wizard(store) -> WizardController:
    """A fresh controller (seeded with one deliverable and one milestone)."""
    return WizardController(store, "test-draft")


@pytest.fixture
def filled_wizard(store, valid_state) -> WizardController:
    """A controller whose stored draft is the fully valid state."""
    store.save("test-draft", valid_state.to_json())
    return WizardController(store, "test-draft")
