"""
Shared constants for settlement workflows.

Keeping these values in one place prevents divergent definitions across the
settlement, ledger and report services.
"""

from decimal import Decimal

# Batch id prefixes, one per orchestrator entry point
SINGLE_BATCH_PREFIX = "PARCELA"
LOT_BATCH_PREFIX = "LOTE"
UNIT_BATCH_PREFIX = "QUITAR"

# Amounts are cent-quantized; anything below one cent is noise
CURRENCY_EPSILON = Decimal("0.005")
