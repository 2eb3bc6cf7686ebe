"""
TaxWise - Deduction Advisor
===========================
Proposes likely-eligible deductions from income and occupation.

This is a deterministic rule table, not a model: every rule whose trigger
matches is returned, in the rule table's declaration order. Identical inputs
always produce identical output.
"""

import logging
import math
from typing import List, Union

from tax_constants import OccupationCategory, RuleTable, RULES_2024
from models import DeductionSuggestion, InvalidInputError

logger = logging.getLogger(__name__)


class DeductionAdvisor:
    """
    Generate deduction suggestions.

    Example:
        advisor = DeductionAdvisor()
        suggestions = advisor.suggest(85000, "consultant")
    """

    def __init__(self, rules: RuleTable = RULES_2024):
        self.rules = rules

    def suggest(
        self,
        income: float,
        occupation: Union[OccupationCategory, str, None] = None
    ) -> List[DeductionSuggestion]:
        """
        Evaluate every rule independently against (income, occupation).

        Raises:
            InvalidInputError: income is negative or not finite.
        """
        if not math.isfinite(income) or income < 0:
            raise InvalidInputError("income", income)

        category = OccupationCategory.normalize(occupation)
        suggestions = []

        for rule in self.rules.deduction_rules:
            if not rule.applies_to(income, category):
                continue
            suggestions.append(DeductionSuggestion(
                name=rule.name,
                estimated_amount=rule.estimate(income),
                category=rule.category,
                description=rule.description,
                requirements=list(rule.requirements)
            ))

        logger.debug(f"{len(suggestions)} deduction suggestions for {category.value} at {income:.2f}")
        return suggestions


def suggest_deductions(
    income: float,
    occupation: Union[OccupationCategory, str, None] = None,
    rules: RuleTable = RULES_2024
) -> List[DeductionSuggestion]:
    """Convenience wrapper around DeductionAdvisor.suggest."""
    return DeductionAdvisor(rules).suggest(income, occupation)


def rank_suggestions(suggestions: List[DeductionSuggestion]) -> List[DeductionSuggestion]:
    """Largest estimated amount first; ties keep their original order."""
    return sorted(suggestions, key=lambda s: s.estimated_amount, reverse=True)
