"""Payroll Workflows.

State machine for the payroll run lifecycle.  The run store consults
``PAYROLL_RUN_WORKFLOW`` before every status change; anything not listed
here is rejected with ``InvalidRunTransitionError``.
"""

from shop_kernel.domain.workflow import Guard, Transition, Workflow
from shop_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

RUN_LOCK_ACQUIRED = Guard(
    name="run_lock_acquired",
    description="Conditional draft -> posting update matched exactly one row",
)

POSTING_FAILED = Guard(
    name="posting_failed",
    description="A finalize attempt raised before the run reached posted",
)

logger.info(
    "payroll_workflow_guards_defined",
    extra={"guards": [RUN_LOCK_ACQUIRED.name, POSTING_FAILED.name]},
)


# -----------------------------------------------------------------------------
# Payroll Run Workflow
# -----------------------------------------------------------------------------

PAYROLL_RUN_WORKFLOW = Workflow(
    name="payroll_run",
    description="Shop payroll run: draft, posting lock, posted, voided",
    initial_state="draft",
    states=("draft", "posting", "posted", "voided"),
    transitions=(
        Transition("draft", "posting", action="begin_finalize", guard=RUN_LOCK_ACQUIRED),
        Transition("posting", "posted", action="complete_finalize", posts_entry=True),
        Transition("posting", "draft", action="release", guard=POSTING_FAILED),
        Transition("posted", "voided", action="void", posts_entry=True),
    ),
    terminal_states=("voided",),
)
