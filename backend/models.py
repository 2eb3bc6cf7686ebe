"""
TaxWise - Data Models
=====================
Pydantic models for the tax computation engine.

These models serve as the contract between:
- Document ingestion (deduction records)
- Tax calculation engine
- Deduction suggestion advisor
- API / persistence callers (results are handed over verbatim)

All models are value types: built per call, owned by the caller.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from tax_constants import DeductionCategory, FilingStatus, OccupationCategory


# =============================================================================
# ERRORS
# =============================================================================

class InvalidInputError(ValueError):
    """
    Raised when a caller supplies negative (or non-finite) money values.
    Retrying with the same input cannot succeed.
    """

    def __init__(self, field: str, value: float, message: Optional[str] = None):
        self.field = field
        self.value = value
        super().__init__(message or f"{field} must be a non-negative amount, got {value}")


# =============================================================================
# DOCUMENT DEDUCTION RECORDS
# =============================================================================

class DeductionRecord(BaseModel):
    """
    A candidate deduction, usually produced by document ingestion.
    Only records flagged tax_deductible count toward itemized deductions.
    """
    amount: float = Field(default=0.0, ge=0)
    category: str = "Business"
    description: Optional[str] = None
    tax_deductible: bool = True


# =============================================================================
# TAX CALCULATION INPUT / RESULT
# =============================================================================

class TaxCalculationInput(BaseModel):
    """
    Caller-constructed calculation input.

    Money fields are checked by the calculator, which raises InvalidInputError
    for negative amounts.
    """
    gross_income: float
    filing_status: FilingStatus = FilingStatus.SINGLE
    jurisdiction_code: str = ""
    itemized_deductions: float = 0.0

    @field_validator("filing_status", mode="before")
    @classmethod
    def normalize_filing_status(cls, v):
        return FilingStatus.normalize(v)

    @field_validator("jurisdiction_code", mode="before")
    @classmethod
    def normalize_jurisdiction_code(cls, v):
        if v is None:
            return ""
        return str(v).strip().upper()


class TaxBracketBreakdown(BaseModel):
    """Tax owed on the slice of taxable income that fell in one bracket."""
    bracket_label: str
    bracket_start: float
    bracket_end: Optional[float] = Field(default=None, description="None = unbounded bracket")
    income_in_bracket: float
    rate: float
    tax_in_bracket: float


class TaxCalculationResult(BaseModel):
    """
    Complete tax calculation result.

    Invariants:
        sum(b.tax_in_bracket for b in breakdown) == federal_tax
        sum(b.income_in_bracket for b in breakdown) == taxable_income
    """

    # Inputs echoed back
    filing_status: FilingStatus
    jurisdiction_code: str

    # Income summary
    gross_income: float
    adjusted_gross_income: float
    deduction_type: str = "standard"
    standard_deduction: float
    deduction_amount: float
    taxable_income: float

    # Federal
    federal_tax: float
    breakdown: List[TaxBracketBreakdown] = Field(default_factory=list)

    # Jurisdiction (flat rate)
    jurisdiction_rate: float
    jurisdiction_tax: float

    # FICA
    social_security_tax: float
    medicare_tax: float
    additional_medicare_tax: float
    fica_tax: float

    # Totals
    total_tax: float
    effective_rate: float = Field(description="Total tax / gross income, in percent")
    marginal_rate: float = Field(description="Rate on the last dollar of taxable income, in percent")
    after_tax_income: float

    # Metadata
    tax_year: int
    rule_version: str


# =============================================================================
# DEDUCTION SUGGESTIONS
# =============================================================================

class DeductionSuggestion(BaseModel):
    """A likely-eligible deduction proposed by the advisor."""
    name: str
    estimated_amount: float = Field(ge=0)
    category: DeductionCategory
    description: str
    requirements: List[str] = Field(default_factory=list)

    def to_record(self) -> DeductionRecord:
        """Accept this suggestion as a deduction to feed back into a calculation."""
        return DeductionRecord(
            amount=self.estimated_amount,
            category=self.category.value.title(),
            description=self.name,
            tax_deductible=True,
        )


# =============================================================================
# EXPORT
# =============================================================================

class CalculationExport(BaseModel):
    """A calculation bundled with the deductions it used, ready for download."""
    calculation: TaxCalculationResult
    deductions: List[DeductionRecord] = Field(default_factory=list)
    filing_status: FilingStatus
    jurisdiction_code: str
    export_date: datetime

    @computed_field
    @property
    def total_deductible(self) -> float:
        return sum(d.amount for d in self.deductions if d.tax_deductible)


# =============================================================================
# API REQUEST/RESPONSE MODELS
# =============================================================================

class CalculationRequest(BaseModel):
    """Request for a tax calculation."""
    gross_income: float
    filing_status: str = "single"
    jurisdiction_code: str = ""
    itemized_deductions: float = 0.0
    deductions: List[DeductionRecord] = Field(
        default_factory=list,
        description="Document records; deductible amounts are added to itemized_deductions"
    )


class SuggestionRequest(BaseModel):
    """Request for deduction suggestions."""
    income: float
    occupation: str = OccupationCategory.OTHER.value


class SuggestionResponse(BaseModel):
    """Advisor output plus the total a caller would itemize if all were accepted."""
    occupation: OccupationCategory
    suggestions: List[DeductionSuggestion]

    @computed_field
    @property
    def total_estimated(self) -> float:
        return sum(s.estimated_amount for s in self.suggestions)
