"""Token estimation for synthetic usage reporting.

The backend does not report token usage, so counts are approximated from
character length.
"""

import math


CHARS_PER_TOKEN = 4


def estimate_tokens(text: str | None) -> int:
    """Estimate tokens as character count divided by four, rounded up."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)
