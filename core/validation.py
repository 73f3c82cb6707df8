"""
core/validation.py -- Shared input patterns.

Layer rule: core/ is the kernel. No imports from api/, web/, or auth/.
"""

import re

# Same shape browsers and most form libraries accept: no leading dot, no
# consecutive dots, a dotted domain with an alphabetic TLD of 2+ letters.
EMAIL_RE = re.compile(
    r"^(?!\.)(?!.*\.\.)([A-Z0-9_'+\-\.]*)[A-Z0-9_+\-]@([A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}$",
    re.IGNORECASE,
)

MAX_EMAIL_LENGTH = 100


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.fullmatch(value))
