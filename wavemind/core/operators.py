# ═══════════════════════════════════════════════════════════════════════════════
# PART 10: QUARK OPERATORS
# Design: P2 (Symmetry Groups) | Implementation: I1 (Core Types)
# ═══════════════════════════════════════════════════════════════════════════════

"""
P2: "Six operators, one per channel. Each has an inverse; some are their own.
The table below is asserted, not derived - keep it exactly as it is."
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class QuarkOperator:
    """A named transformation tag bound to one channel."""
    name: str
    symbol: str
    channel: str
    role: str
    description: str


QUARK_OPERATORS: Dict[str, QuarkOperator] = {
    "up": QuarkOperator("up", "↑", "u", "assertion", "Affirms or strengthens"),
    "down": QuarkOperator("down", "↓", "d", "negation", "Negates or weakens"),
    "strange": QuarkOperator("strange", "s", "s", "context-switch", "Shifts frame of reference"),
    "charm": QuarkOperator("charm", "c", "c", "abstraction", "Lifts to a more general level"),
    "top": QuarkOperator("top", "t", "t", "structural", "Rebuilds structure"),
    "bottom": QuarkOperator("bottom", "b", "b", "grounding", "Grounds in the concrete"),
}

CHANNEL_TO_OPERATOR: Dict[str, str] = {op.channel: op.name for op in QUARK_OPERATORS.values()}

INVERSE_OPERATORS: Dict[str, str] = {
    "up": "down",
    "down": "up",
    "charm": "bottom",
    "bottom": "charm",
    "strange": "strange",
    "top": "top",
}


def inverse_operator(tag: str) -> str:
    """Inverse of an operator tag. Unknown tags are their own inverse."""
    return INVERSE_OPERATORS.get(tag, tag)


def is_known_operator(tag: str) -> bool:
    return tag in QUARK_OPERATORS
