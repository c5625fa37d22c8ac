"""
Error taxonomy for the allocation and settlement engine.

Every validation failure is raised before any ledger mutation, so callers can
treat any of these as "nothing was written".
"""


class EngineError(Exception):
    """Base class for all engine validation failures."""

    pass


class InvalidWeight(EngineError):
    """Raised when a share weight is missing, zero or negative."""

    pass


class ClosureMismatch(EngineError):
    """Raised when closed weights do not sum to the target within tolerance."""

    pass


class InvalidAmount(EngineError):
    """Raised when a monetary amount is unparseable, zero or negative."""

    pass


class InvalidDate(EngineError):
    """Raised when a date or competency is unparseable or out of range."""

    pass


class InsufficientCandidates(EngineError):
    """Raised when a discount-mode settlement lacks enough open installments."""

    pass


class NoSettlableInstallment(EngineError):
    """Raised when a normal-mode lot cannot fully settle any installment."""

    pass


class AlreadySettled(EngineError):
    """Raised when re-settling a QUITADA installment without confirmation."""

    pass


class ConfirmationRequired(EngineError):
    """Raised when an irreversible settlement lacks the caller's confirmations."""

    pass


class UnknownInstallment(EngineError):
    """Raised when an installment id is not present in the registry."""

    pass


class LedgerConflict(EngineError):
    """Raised when the ledger changed between snapshot read and write."""

    pass


class PaymentPlanMismatch(EngineError):
    """Raised when a generated payment plan does not add up to the sale price."""

    pass


class PlanLocked(EngineError):
    """Raised when replacing the payment plan of a unit that has ledger history."""

    pass


class InvalidInstallmentType(EngineError, ValueError):
    """Raised when an installment type is not one of the known plan types."""

    pass
