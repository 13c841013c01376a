"""
Invoice lifecycle rules.

By default ``canceled`` and ``collected`` are independent flags: any
combination may be set or cleared through an update. With
``ENFORCE_LIFECYCLE_TRANSITIONS`` enabled they behave as a state machine
over the derived status:

    open -> collected
    open -> canceled

collected and canceled are terminal. A terminal invoice accepts no further
changes, and no update may leave both flags set.
"""

from typing import Any, Mapping

from invoicer.config import settings
from invoicer.exceptions import BusinessRuleError
from invoicer.models.invoice import Invoice, InvoiceStatus, derive_status

ALLOWED_TRANSITIONS: dict[InvoiceStatus, set[InvoiceStatus]] = {
    InvoiceStatus.open: {InvoiceStatus.open, InvoiceStatus.collected, InvoiceStatus.canceled},
    InvoiceStatus.collected: set(),
    InvoiceStatus.canceled: set(),
}

TERMINAL_STATUSES = {InvoiceStatus.collected, InvoiceStatus.canceled}


def is_terminal(invoice: Invoice) -> bool:
    return invoice.status in TERMINAL_STATUSES


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def check_update(invoice: Invoice, changes: Mapping[str, Any], enforce: bool | None = None) -> None:
    """Validate a patch against the lifecycle rules.

    Raises BusinessRuleError when enforcement is on and the patch is not
    allowed. A no-op when enforcement is off.
    """
    if enforce is None:
        enforce = settings.ENFORCE_LIFECYCLE_TRANSITIONS
    if not enforce or not changes:
        return

    current = invoice.status
    if current in TERMINAL_STATUSES:
        raise BusinessRuleError(
            f"Invoice {invoice.invoice_number} is {current.value} and can no longer be changed"
        )

    canceled = changes.get("canceled", invoice.canceled)
    collected = changes.get("collected", invoice.collected)
    if canceled and collected:
        raise BusinessRuleError("An invoice cannot be both canceled and collected")

    target = derive_status(bool(canceled), bool(collected))
    if not can_transition(current, target):
        raise BusinessRuleError(
            f"Cannot move invoice {invoice.invoice_number} from {current.value} to {target.value}"
        )
