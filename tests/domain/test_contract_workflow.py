"""Tests for the contract lifecycle workflow definition."""

import pytest

from ledger_kernel.domain.models import ContractStatus
from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_kernel.workflows import CONTRACT_WORKFLOW

ACTIVE = ContractStatus.ACTIVE.value
ON_HOLD = ContractStatus.ON_HOLD.value
COMPLETED = ContractStatus.COMPLETED.value
CANCELLED = ContractStatus.CANCELLED.value


class TestContractWorkflow:
    def test_states_match_status_enum(self):
        assert set(CONTRACT_WORKFLOW.states) == {s.value for s in ContractStatus}

    def test_initial_state_is_active(self):
        assert CONTRACT_WORKFLOW.initial_state == ACTIVE

    def test_active_targets(self):
        assert set(CONTRACT_WORKFLOW.targets_from(ACTIVE)) == {ON_HOLD, COMPLETED, CANCELLED}

    @pytest.mark.parametrize("state", [ON_HOLD, COMPLETED, CANCELLED])
    def test_every_state_returns_to_active(self, state):
        assert CONTRACT_WORKFLOW.targets_from(state) == (ACTIVE,)

    def test_undeclared_transition_not_found(self):
        assert CONTRACT_WORKFLOW.find_transition(ON_HOLD, COMPLETED) is None
        assert CONTRACT_WORKFLOW.find_transition(CANCELLED, ON_HOLD) is None

    def test_transition_actions(self):
        assert CONTRACT_WORKFLOW.find_transition(ACTIVE, ON_HOLD).action == "hold"
        assert CONTRACT_WORKFLOW.find_transition(CANCELLED, ACTIVE).action == "reactivate"


class TestWorkflowValidation:
    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError, match="initial_state"):
            Workflow(
                name="w", description="", initial_state="x",
                states=("a",), transitions=(),
            )

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="w", description="", initial_state="a",
                states=("a",), transitions=(Transition("a", "b", action="go"),),
            )
