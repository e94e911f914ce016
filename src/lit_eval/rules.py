"""Cascade rule numbers assigned by the external comparison matcher.

The matcher tags every comparison row with the rule that decided it.
Rules are grouped into contiguous ranges by outcome; this module only
classifies and labels them, it does not evaluate them.
"""

from enum import Enum
from typing import Optional

FULL_MATCH_RULES = range(1, 12)
PARTIAL_MATCH_RULES = range(12, 105)
NO_MATCH_RULES = range(105, 193)
EMPTY_OUTPUT_RULE = 192


class RuleOutcome(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    NO_MATCH = "no_match"


_LABELS = {
    RuleOutcome.FULL: "FULL",
    RuleOutcome.PARTIAL: "PARTIAL",
    RuleOutcome.NO_MATCH: "NO MATCH",
}


def rule_outcome(rule_number: Optional[int]) -> Optional[RuleOutcome]:
    """Classify a rule number, or None for 0 / unknown numbers."""
    if not rule_number:
        return None
    if rule_number in FULL_MATCH_RULES:
        return RuleOutcome.FULL
    if rule_number in PARTIAL_MATCH_RULES:
        return RuleOutcome.PARTIAL
    if rule_number in NO_MATCH_RULES:
        return RuleOutcome.NO_MATCH
    return None


def describe_rule(rule_number: Optional[int]) -> Optional[str]:
    if not rule_number:
        return None
    if rule_number == EMPTY_OUTPUT_RULE:
        return "NO MATCH · Empty Output"
    outcome = rule_outcome(rule_number)
    if outcome is None:
        return f"Rule {rule_number}"
    return f"{_LABELS[outcome]} · Rule {rule_number}"
