"""Branch token normalization."""

import re
from typing import FrozenSet, Optional

_TOKEN_SEPARATOR = re.compile(r"[,\s]+")


def normalize_branch_tokens(raw: Optional[str]) -> FrozenSet[str]:
    """Split a free-text field of interest into lowercase tokens.

    The text is lowercased and split on any run of whitespace and/or commas;
    empty pieces are dropped.

    Args:
        raw: Free-text branch string (may be None or empty)

    Returns:
        Set of tokens, empty when no usable text is present

    Example:
        >>> sorted(normalize_branch_tokens("Mechanical, Civil  Engg"))
        ['civil', 'engg', 'mechanical']
    """
    if not raw:
        return frozenset()

    tokens = (piece.strip() for piece in _TOKEN_SEPARATOR.split(raw.lower()))
    return frozenset(token for token in tokens if token)
