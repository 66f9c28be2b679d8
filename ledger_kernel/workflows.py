"""Contract Workflows.

Contract lifecycle state machine. Reactivation is allowed from every
non-active state; no state blocks recording expenses or payments, so the
workflow carries no posting guards.
"""

from ledger_kernel.domain.models import ContractStatus
from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_kernel.logging_config import get_logger

logger = get_logger("workflows")

_ACTIVE = ContractStatus.ACTIVE.value
_ON_HOLD = ContractStatus.ON_HOLD.value
_COMPLETED = ContractStatus.COMPLETED.value
_CANCELLED = ContractStatus.CANCELLED.value

CONTRACT_WORKFLOW = Workflow(
    name="contract_lifecycle",
    description="Construction contract status lifecycle",
    initial_state=_ACTIVE,
    states=(_ACTIVE, _ON_HOLD, _COMPLETED, _CANCELLED),
    transitions=(
        Transition(_ACTIVE, _ON_HOLD, action="hold"),
        Transition(_ACTIVE, _COMPLETED, action="complete"),
        Transition(_ACTIVE, _CANCELLED, action="cancel"),
        Transition(_ON_HOLD, _ACTIVE, action="resume"),
        Transition(_COMPLETED, _ACTIVE, action="reopen"),
        Transition(_CANCELLED, _ACTIVE, action="reactivate"),
    ),
)

logger.info(
    "contract_workflow_defined",
    extra={
        "workflow": CONTRACT_WORKFLOW.name,
        "state_count": len(CONTRACT_WORKFLOW.states),
        "transition_count": len(CONTRACT_WORKFLOW.transitions),
    },
)
