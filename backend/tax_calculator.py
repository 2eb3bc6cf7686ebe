"""
TaxWise - Tax Calculator
========================
Core tax calculation engine.

Turns gross income, filing status, jurisdiction and deductions into a full
liability breakdown: federal tax (bracket walk), jurisdiction tax (flat rate),
FICA, and the derived summary figures.

Pure and synchronous: no I/O, no shared mutable state. The only shared
resource is the read-only rule table injected at construction.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union

from tax_constants import FilingStatus, RuleTable, TaxBracket, RULES_2024
from models import (
    CalculationExport,
    DeductionRecord,
    InvalidInputError,
    TaxBracketBreakdown,
    TaxCalculationInput,
    TaxCalculationResult,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TAX CALCULATION ENGINE
# =============================================================================

class TaxCalculator:
    """
    Progressive tax calculator.

    Example:
        calculator = TaxCalculator()
        result = calculator.calculate(TaxCalculationInput(
            gross_income=75000, filing_status="single", jurisdiction_code="CA"
        ))
    """

    def __init__(self, rules: RuleTable = RULES_2024):
        self.rules = rules

    def calculate(self, request: TaxCalculationInput) -> TaxCalculationResult:
        """
        Calculate complete tax liability.

        Raises:
            InvalidInputError: gross_income or itemized_deductions is negative.
        """
        self._validate(request)

        status = request.filing_status
        gross_income = request.gross_income

        # Step 1: AGI (no adjustments are modelled)
        agi = gross_income

        # Step 2: Larger of standard or itemized
        standard_deduction = self.rules.standard_deduction_for(status)
        if request.itemized_deductions > standard_deduction:
            deduction_type = "itemized"
            deduction_amount = request.itemized_deductions
        else:
            deduction_type = "standard"
            deduction_amount = standard_deduction

        # Step 3: Taxable income, floored at zero
        taxable_income = max(0.0, agi - deduction_amount)

        # Step 4: Federal tax with bracket breakdown
        brackets = self.rules.brackets_for(status)
        federal_tax, breakdown = self._calculate_tax_with_breakdown(taxable_income, brackets)

        # Step 5: Jurisdiction tax on taxable income
        jurisdiction_rate = self.rules.flat_rate_for(request.jurisdiction_code)
        jurisdiction_tax = taxable_income * jurisdiction_rate

        # Step 6: FICA on gross income
        social_security, medicare, additional_medicare = self._calculate_fica(gross_income, status)
        fica_tax = social_security + medicare + additional_medicare

        # Step 7: Totals
        total_tax = federal_tax + jurisdiction_tax + fica_tax
        effective_rate = total_tax / gross_income * 100 if gross_income > 0 else 0.0
        marginal_rate = get_marginal_rate(taxable_income, brackets) * 100

        logger.debug(
            f"Calculated {status.value}/{request.jurisdiction_code or '-'}: "
            f"taxable={taxable_income:.2f} federal={federal_tax:.2f} "
            f"jurisdiction={jurisdiction_tax:.2f} fica={fica_tax:.2f}"
        )

        return TaxCalculationResult(
            filing_status=status,
            jurisdiction_code=request.jurisdiction_code,
            gross_income=gross_income,
            adjusted_gross_income=agi,
            deduction_type=deduction_type,
            standard_deduction=standard_deduction,
            deduction_amount=deduction_amount,
            taxable_income=taxable_income,
            federal_tax=federal_tax,
            breakdown=breakdown,
            jurisdiction_rate=jurisdiction_rate,
            jurisdiction_tax=jurisdiction_tax,
            social_security_tax=social_security,
            medicare_tax=medicare,
            additional_medicare_tax=additional_medicare,
            fica_tax=fica_tax,
            total_tax=total_tax,
            effective_rate=effective_rate,
            marginal_rate=marginal_rate,
            after_tax_income=gross_income - total_tax,
            tax_year=self.rules.tax_year,
            rule_version=self.rules.version,
        )

    def _validate(self, request: TaxCalculationInput) -> None:
        for field in ("gross_income", "itemized_deductions"):
            check_amount(field, getattr(request, field))

    def _calculate_tax_with_breakdown(
        self,
        taxable_income: float,
        brackets: Tuple[TaxBracket, ...]
    ) -> Tuple[float, List[TaxBracketBreakdown]]:
        """Walk the brackets once, producing the tax and its breakdown together."""
        total_tax = 0.0
        breakdown = []
        remaining_income = taxable_income

        for bracket in brackets:
            if remaining_income <= 0:
                break

            taxable_in_bracket = min(remaining_income, bracket.width)
            if taxable_in_bracket <= 0:
                continue

            tax_in_bracket = taxable_in_bracket * bracket.rate
            total_tax += tax_in_bracket

            breakdown.append(TaxBracketBreakdown(
                bracket_label=f"{bracket.rate * 100:g}%",
                bracket_start=bracket.lower_bound,
                bracket_end=bracket.upper_bound,
                income_in_bracket=taxable_in_bracket,
                rate=bracket.rate,
                tax_in_bracket=tax_in_bracket
            ))

            remaining_income -= taxable_in_bracket

        return total_tax, breakdown

    def _calculate_fica(self, gross_income: float, filing_status: FilingStatus) -> Tuple[float, float, float]:
        """Social Security (capped at the wage base), Medicare, and Additional Medicare."""
        fica = self.rules.fica_constants()

        social_security = min(gross_income, fica.social_security_wage_base) * fica.social_security_rate
        medicare = gross_income * fica.medicare_rate

        threshold = fica.additional_medicare_threshold(filing_status)
        additional_medicare = max(0.0, gross_income - threshold) * fica.additional_medicare_rate

        return social_security, medicare, additional_medicare


def check_amount(field: str, value: float) -> None:
    """Raise InvalidInputError unless value is a finite, non-negative amount."""
    if not math.isfinite(value) or value < 0:
        logger.warning(f"Rejected calculation input: {field}={value}")
        raise InvalidInputError(field, value)


def get_marginal_rate(taxable_income: float, brackets: Tuple[TaxBracket, ...]) -> float:
    """Rate of the bracket containing taxable_income; the top rate once past every bound."""
    for bracket in brackets:
        if bracket.contains(taxable_income):
            return bracket.rate

    return brackets[-1].rate


# =============================================================================
# CALLER HELPERS
# =============================================================================

def calculate_tax(
    gross_income: float,
    filing_status: Union[FilingStatus, str],
    jurisdiction_code: Optional[str] = None,
    itemized_deductions: float = 0.0,
    rules: RuleTable = RULES_2024
) -> TaxCalculationResult:
    """
    Convenience wrapper around TaxCalculator.calculate.

    Args:
        gross_income: Annual gross income
        filing_status: FilingStatus or its name
        jurisdiction_code: Two-letter region code; unknown codes are taxed at 0
        itemized_deductions: Total itemized deductions
        rules: Rule table to calculate against

    Returns:
        TaxCalculationResult
    """
    request = TaxCalculationInput(
        gross_income=gross_income,
        filing_status=filing_status,
        jurisdiction_code=jurisdiction_code,
        itemized_deductions=itemized_deductions
    )
    return TaxCalculator(rules).calculate(request)


def total_itemized_deductions(records: Iterable[DeductionRecord]) -> float:
    """Sum the amounts of deductible records."""
    return sum(record.amount for record in records if record.tax_deductible)


def export_calculation(
    result: TaxCalculationResult,
    deductions: Optional[List[DeductionRecord]] = None,
    exported_at: Optional[datetime] = None
) -> CalculationExport:
    """Bundle a result with the deductions behind it for download or storage."""
    return CalculationExport(
        calculation=result,
        deductions=list(deductions or []),
        filing_status=result.filing_status,
        jurisdiction_code=result.jurisdiction_code,
        export_date=exported_at or datetime.now(timezone.utc),
    )
