"""Central constants for the loan planner.

Values that the engine, the display layers and the front ends share live here
so that the same tolerance and caps are used everywhere.
"""

from decimal import Decimal

# Balances below this are treated as fully repaid
BALANCE_EPSILON = Decimal("0.01")

# Extra repayment months allowed beyond the planned tenure before the
# simulation is declared non-convergent
SAFETY_MARGIN_MONTHS = 600

# Maximum number of points sent to the balance chart
CHART_MAX_POINTS = 60

# Rows shown before the schedule table is truncated
PREVIEW_ROWS = 120

# Defaults for a fresh loan form
DEFAULT_PRINCIPAL = Decimal("500000")
DEFAULT_RATE = Decimal("8.5")
DEFAULT_TENURE_MONTHS = 240
DEFAULT_DEFERMENT_MONTHS = 3

DEFAULT_CURRENCY = "AED"

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
