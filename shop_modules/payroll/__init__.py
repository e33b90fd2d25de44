"""
Payroll Module (``shop_modules.payroll``).

Responsibility
--------------
Hourly payroll for shop staff: preview a pay period from recorded shifts,
edit the draft (rates, shift times, exclusions, manual deductions and
additions), persist it, and finalize it into paystubs and salary expense
postings in the shop ledger.

Architecture position
---------------------
**Modules layer** -- config schema, DTOs, ORM tables, a run workflow, and
the ``PayrollService`` facade.  Calculations live in ``shop_engines``.

Invariants enforced
-------------------
* Run status moves only along ``PAYROLL_RUN_WORKFLOW``.
* A run's active postings always come from a single finalize attempt.
* Only ``draft`` runs can be edited or deleted.

Audit relevance
---------------
Every posting carries the run id, the finalize attempt and
``source = payroll_run:<id>``; voiding never deletes ledger rows.
"""

from shop_modules.payroll.config import PayrollConfig, PayScheduleConfig
from shop_modules.payroll.editor import RunLineEditor
from shop_modules.payroll.finalize import PayrollFinalizer, build_paystub
from shop_modules.payroll.loader import StoredRunLoader
from shop_modules.payroll.models import (
    Adjustment,
    AdjustmentType,
    DataQualityWarning,
    ExpenseMode,
    FinalizeResult,
    PayrollLineDraft,
    PayrollRunDraft,
    Paystub,
    PaystubItem,
    PaystubShift,
    PreviewResult,
    RunStatus,
    RunSummary,
    RunTotals,
    ShiftRow,
    VoidResult,
)
from shop_modules.payroll.preview import OngoingShiftDecision, PayrollPreviewBuilder
from shop_modules.payroll.run_store import RunStore
from shop_modules.payroll.service import PayrollService
from shop_modules.payroll.workflows import PAYROLL_RUN_WORKFLOW

__all__ = [
    "PAYROLL_RUN_WORKFLOW",
    "Adjustment",
    "AdjustmentType",
    "DataQualityWarning",
    "ExpenseMode",
    "FinalizeResult",
    "OngoingShiftDecision",
    "PayScheduleConfig",
    "PayrollConfig",
    "PayrollFinalizer",
    "PayrollLineDraft",
    "PayrollPreviewBuilder",
    "PayrollRunDraft",
    "PayrollService",
    "Paystub",
    "PaystubItem",
    "PaystubShift",
    "PreviewResult",
    "RunLineEditor",
    "RunStatus",
    "RunStore",
    "RunSummary",
    "RunTotals",
    "ShiftRow",
    "StoredRunLoader",
    "VoidResult",
    "build_paystub",
]
