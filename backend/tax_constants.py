"""
TaxWise - Tax Constants
=======================
Hardcoded 2024 Federal Tax Brackets, Standard Deductions, State Rates and FICA.

CRITICAL: These are the ONLY source of truth for tax calculations.
A rule table is built once at import time and never mutated afterwards.
A new tax year ships a new rule table (in code or as a versioned JSON file
loaded with load_rule_table), never a runtime update.

Last Updated: 2024 Tax Year
"""

import logging
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

logger = logging.getLogger(__name__)


# =============================================================================
# FILING STATUS ENUM
# =============================================================================

class FilingStatus(str, Enum):
    SINGLE = "single"
    MARRIED_FILING_JOINTLY = "married_filing_jointly"
    MARRIED_FILING_SEPARATELY = "married_filing_separately"
    HEAD_OF_HOUSEHOLD = "head_of_household"

    @classmethod
    def normalize(cls, value: Union["FilingStatus", str]) -> "FilingStatus":
        """
        Accept the enum, its value, or the camelCase names used by the web
        client ("marriedJoint", "headOfHousehold", ...).

        An unrecognised status is a programming error and raises ValueError.
        """
        if isinstance(value, FilingStatus):
            return value
        key = str(value).strip().lower().replace("-", "").replace("_", "").replace(" ", "")
        mapping = {
            "single": cls.SINGLE,
            "marriedjoint": cls.MARRIED_FILING_JOINTLY,
            "marriedfilingjointly": cls.MARRIED_FILING_JOINTLY,
            "marriedseparate": cls.MARRIED_FILING_SEPARATELY,
            "marriedfilingseparately": cls.MARRIED_FILING_SEPARATELY,
            "headofhousehold": cls.HEAD_OF_HOUSEHOLD,
        }
        if key not in mapping:
            raise ValueError(f"Unknown filing status: {value!r}")
        return mapping[key]


# =============================================================================
# RULE TABLE MODELS
# =============================================================================

class TaxBracket(BaseModel):
    """
    One slice of a progressive table.
    lower_bound is inclusive, upper_bound exclusive; None means unbounded.
    """
    model_config = ConfigDict(frozen=True)

    lower_bound: float = Field(ge=0)
    upper_bound: Optional[float] = None
    rate: float = Field(ge=0, le=1)

    @property
    def width(self) -> float:
        if self.upper_bound is None:
            return float("inf")
        return self.upper_bound - self.lower_bound

    def contains(self, amount: float) -> bool:
        if amount < self.lower_bound:
            return False
        return self.upper_bound is None or amount < self.upper_bound


class FicaConstants(BaseModel):
    """Payroll tax constants (Social Security + Medicare)."""
    model_config = ConfigDict(frozen=True)

    social_security_wage_base: float = Field(gt=0)
    social_security_rate: float = Field(ge=0, le=1)
    medicare_rate: float = Field(ge=0, le=1)
    additional_medicare_rate: float = Field(ge=0, le=1)
    additional_medicare_threshold_single: float = Field(ge=0)
    additional_medicare_threshold_married: float = Field(ge=0)

    def additional_medicare_threshold(self, filing_status: FilingStatus) -> float:
        # Binary split: only joint filers get the married threshold.
        if filing_status == FilingStatus.MARRIED_FILING_JOINTLY:
            return self.additional_medicare_threshold_married
        return self.additional_medicare_threshold_single


class DeductionCategory(str, Enum):
    BUSINESS = "business"
    EDUCATION = "education"
    OTHER = "other"


class OccupationCategory(str, Enum):
    TECHNOLOGY = "technology"
    CONSULTANT = "consultant"
    CREATIVE = "creative"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    TRADES = "trades"
    SALES = "sales"
    OTHER = "other"

    @classmethod
    def normalize(cls, value: Union["OccupationCategory", str, None]) -> "OccupationCategory":
        """Map a free-text occupation label onto the closed set. Unknown labels become OTHER."""
        if isinstance(value, OccupationCategory):
            return value
        if not value:
            return cls.OTHER
        text = str(value).strip().lower()
        try:
            return cls(text)
        except ValueError:
            pass

        keywords = [
            (("tech", "software", "developer", "programmer"), cls.TECHNOLOGY),
            (("consult", "freelanc", "contractor"), cls.CONSULTANT),
            (("design", "artist", "writer", "photograph", "musician", "creative"), cls.CREATIVE),
            (("nurse", "doctor", "physician", "medical", "health", "therap"), cls.HEALTHCARE),
            (("teacher", "professor", "tutor", "educat"), cls.EDUCATION),
            (("electrician", "plumber", "carpenter", "mechanic", "construction", "trade"), cls.TRADES),
            (("sales", "realtor", "real estate", "agent"), cls.SALES),
        ]
        for needles, category in keywords:
            if any(needle in text for needle in needles):
                return category
        return cls.OTHER


class DeductionRule(BaseModel):
    """
    A single advisor rule: a trigger over (income, occupation) and an
    amount formula min(cap, income * income_rate).
    """
    model_config = ConfigDict(frozen=True)

    name: str
    category: DeductionCategory
    description: str
    requirements: Tuple[str, ...] = ()
    min_income: Optional[float] = Field(
        default=None,
        description="Triggers only when income is strictly above this; None = always"
    )
    occupations: Optional[Tuple[OccupationCategory, ...]] = Field(
        default=None,
        description="Occupations the rule applies to; None = any"
    )
    income_rate: float = Field(ge=0, le=1)
    cap: float = Field(ge=0)

    def applies_to(self, income: float, occupation: OccupationCategory) -> bool:
        if self.min_income is not None and not income > self.min_income:
            return False
        if self.occupations is not None and occupation not in self.occupations:
            return False
        return True

    def estimate(self, income: float) -> float:
        return min(self.cap, income * self.income_rate)


class RuleTable(BaseModel):
    """
    Immutable, versioned set of rule constants.

    Shared read-only by every calculator and advisor; it is never written
    after construction, so concurrent reads need no locking.
    """
    model_config = ConfigDict(frozen=True)

    tax_year: int
    version: str
    federal_brackets: Dict[FilingStatus, Tuple[TaxBracket, ...]]
    standard_deductions: Dict[FilingStatus, float]
    jurisdiction_rates: Dict[str, float] = Field(default_factory=dict)
    fica: FicaConstants
    deduction_rules: Tuple[DeductionRule, ...] = ()

    @field_validator("jurisdiction_rates")
    @classmethod
    def normalize_jurisdictions(cls, v: Dict[str, float]) -> Mapping[str, float]:
        normalized = {}
        for code, rate in v.items():
            if not 0 <= rate <= 1:
                raise ValueError(f"Jurisdiction rate for {code} must be a fraction, got {rate}")
            normalized[code.strip().upper()] = rate
        return MappingProxyType(normalized)

    @field_validator("federal_brackets", "standard_deductions")
    @classmethod
    def freeze_mapping(cls, v: Dict) -> Mapping:
        return MappingProxyType(dict(v))

    @field_serializer("federal_brackets", "standard_deductions", "jurisdiction_rates", mode="wrap")
    def serialize_mapping(self, v: Mapping, handler):
        return handler(dict(v))

    @model_validator(mode="after")
    def check_tables(self):
        for status in FilingStatus:
            if status not in self.federal_brackets:
                raise ValueError(f"Missing bracket table for {status.value}")
            if status not in self.standard_deductions:
                raise ValueError(f"Missing standard deduction for {status.value}")
            if self.standard_deductions[status] < 0:
                raise ValueError(f"Standard deduction for {status.value} must not be negative")
            _check_brackets(status, self.federal_brackets[status])
        return self

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def brackets_for(self, filing_status: FilingStatus) -> Tuple[TaxBracket, ...]:
        return self.federal_brackets[FilingStatus.normalize(filing_status)]

    def standard_deduction_for(self, filing_status: FilingStatus) -> float:
        return self.standard_deductions[FilingStatus.normalize(filing_status)]

    def flat_rate_for(self, jurisdiction_code: Optional[str]) -> float:
        """Flat income tax rate for a jurisdiction. Unknown codes resolve to 0."""
        if not jurisdiction_code:
            return 0.0
        return self.jurisdiction_rates.get(jurisdiction_code.strip().upper(), 0.0)

    def fica_constants(self) -> FicaConstants:
        return self.fica


def _check_brackets(status: FilingStatus, brackets: Tuple[TaxBracket, ...]) -> None:
    """Brackets must be contiguous, ascending and cover [0, inf)."""
    if not brackets:
        raise ValueError(f"Bracket table for {status.value} is empty")
    if brackets[0].lower_bound != 0:
        raise ValueError(f"Bracket table for {status.value} must start at 0")

    for i, bracket in enumerate(brackets):
        is_last = i == len(brackets) - 1
        if bracket.upper_bound is None:
            if not is_last:
                raise ValueError(f"Only the final {status.value} bracket may be unbounded")
            continue
        if is_last:
            raise ValueError(f"Final {status.value} bracket must be unbounded")
        if bracket.upper_bound <= bracket.lower_bound:
            raise ValueError(f"{status.value} bracket {i} has non-positive width")
        if brackets[i + 1].lower_bound != bracket.upper_bound:
            raise ValueError(f"{status.value} brackets {i} and {i + 1} are not contiguous")


# =============================================================================
# 2024 FEDERAL TAX BRACKETS
# Format: List of (upper_limit, marginal_rate) tuples
# The last tuple uses None for unlimited income
# =============================================================================

TAX_BRACKETS_2024: Dict[FilingStatus, List[Tuple[Optional[float], float]]] = {
    FilingStatus.SINGLE: [
        (11000, 0.10),      # 10% on first $11,000
        (44725, 0.12),      # 12% on $11,000 to $44,725
        (95375, 0.22),      # 22% on $44,725 to $95,375
        (182050, 0.24),
        (231250, 0.32),
        (578125, 0.35),
        (None, 0.37)        # 37% on over $578,125
    ],
    FilingStatus.MARRIED_FILING_JOINTLY: [
        (22000, 0.10),
        (89450, 0.12),
        (190750, 0.22),
        (364200, 0.24),
        (462500, 0.32),
        (693750, 0.35),
        (None, 0.37)
    ],
    FilingStatus.MARRIED_FILING_SEPARATELY: [
        (11000, 0.10),
        (44725, 0.12),
        (95375, 0.22),
        (182100, 0.24),
        (231250, 0.32),
        (346875, 0.35),
        (None, 0.37)
    ],
    FilingStatus.HEAD_OF_HOUSEHOLD: [
        (15700, 0.10),
        (59850, 0.12),
        (95350, 0.22),
        (182050, 0.24),
        (231250, 0.32),
        (578100, 0.35),
        (None, 0.37)
    ],
}


# =============================================================================
# 2024 STANDARD DEDUCTIONS
# =============================================================================

STANDARD_DEDUCTION_2024: Dict[FilingStatus, float] = {
    FilingStatus.SINGLE: 13850,
    FilingStatus.MARRIED_FILING_JOINTLY: 27700,
    FilingStatus.MARRIED_FILING_SEPARATELY: 13850,
    FilingStatus.HEAD_OF_HOUSEHOLD: 20800,
}


# =============================================================================
# STATE TAX RATES (flat approximation per state)
# =============================================================================

STATE_TAX_RATES_2024: Dict[str, float] = {
    "AL": 0.05, "AK": 0.00, "AZ": 0.045, "AR": 0.063, "CA": 0.093,
    "CO": 0.044, "CT": 0.069, "DE": 0.066, "FL": 0.00, "GA": 0.057,
    "HI": 0.11, "ID": 0.058, "IL": 0.0495, "IN": 0.032, "IA": 0.067,
    "KS": 0.057, "KY": 0.05, "LA": 0.06, "ME": 0.075, "MD": 0.0575,
    "MA": 0.05, "MI": 0.0425, "MN": 0.0985, "MS": 0.05, "MO": 0.054,
    "MT": 0.0675, "NE": 0.0684, "NV": 0.00, "NH": 0.00, "NJ": 0.1075,
    "NM": 0.059, "NY": 0.0882, "NC": 0.0525, "ND": 0.029, "OH": 0.0399,
    "OK": 0.05, "OR": 0.099, "PA": 0.0307, "RI": 0.0599, "SC": 0.07,
    "SD": 0.00, "TN": 0.00, "TX": 0.00, "UT": 0.0495, "VT": 0.0876,
    "VA": 0.0575, "WA": 0.00, "WV": 0.065, "WI": 0.0765, "WY": 0.00,
}


# =============================================================================
# FICA
# =============================================================================

FICA_2024 = {
    "social_security_wage_base": 160200,
    "social_security_rate": 0.062,
    "medicare_rate": 0.0145,
    "additional_medicare_rate": 0.009,
    "additional_medicare_threshold_single": 200000,
    "additional_medicare_threshold_married": 250000,
}


# =============================================================================
# DEDUCTION SUGGESTION RULES
# Evaluated in declaration order; every matching rule is suggested.
# =============================================================================

DEDUCTION_RULES_2024 = [
    {
        "name": "Home Office Deduction",
        "category": DeductionCategory.BUSINESS,
        "description": "Deduct expenses for the business use of your home",
        "requirements": ("Exclusive business use", "Regular business use", "Principal place of business"),
        "min_income": 30000,
        "income_rate": 0.02,
        "cap": 1500,
    },
    {
        "name": "Professional Development",
        "category": DeductionCategory.EDUCATION,
        "description": "Courses, certifications, and training related to your work",
        "requirements": ("Work-related", "Maintains or improves job skills", "Required by employer or law"),
        "income_rate": 0.015,
        "cap": 2000,
    },
    {
        "name": "Computer & Equipment",
        "category": DeductionCategory.BUSINESS,
        "description": "Computers, software, and equipment used for business",
        "requirements": ("Business use", "Necessary for work", "Not reimbursed by employer"),
        "occupations": (OccupationCategory.TECHNOLOGY, OccupationCategory.CONSULTANT),
        "income_rate": 0.025,
        "cap": 3000,
    },
]


# =============================================================================
# RULE TABLE CONSTRUCTION
# =============================================================================

def build_brackets(limits: List[Tuple[Optional[float], float]]) -> Tuple[TaxBracket, ...]:
    """Turn (upper_limit, rate) pairs into contiguous TaxBracket objects."""
    brackets = []
    prev_limit = 0.0
    for limit, rate in limits:
        brackets.append(TaxBracket(lower_bound=prev_limit, upper_bound=limit, rate=rate))
        if limit is not None:
            prev_limit = limit
    return tuple(brackets)


def build_rule_table(tax_year: int = 2024, version: str = "2024.1") -> RuleTable:
    return RuleTable(
        tax_year=tax_year,
        version=version,
        federal_brackets={
            status: build_brackets(limits) for status, limits in TAX_BRACKETS_2024.items()
        },
        standard_deductions=dict(STANDARD_DEDUCTION_2024),
        jurisdiction_rates=dict(STATE_TAX_RATES_2024),
        fica=FicaConstants(**FICA_2024),
        deduction_rules=tuple(DeductionRule(**rule) for rule in DEDUCTION_RULES_2024),
    )


RULES_2024 = build_rule_table()


def load_rule_table(path: Union[str, Path]) -> RuleTable:
    """
    Load a versioned rule table from a JSON file.

    Raises pydantic.ValidationError if the file describes a malformed table.
    """
    path = Path(path)
    rules = RuleTable.model_validate_json(path.read_text(encoding="utf-8"))
    logger.info(f"Loaded rule table {rules.version} (tax year {rules.tax_year}) from {path}")
    return rules


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_tax_bracket_info(filing_status: FilingStatus, rules: RuleTable = RULES_2024) -> str:
    """Return a formatted string of tax brackets for the given filing status."""
    status = FilingStatus.normalize(filing_status)
    lines = [
        f"{rules.tax_year} Federal Tax Brackets for {status.value.replace('_', ' ').title()}:"
    ]

    for bracket in rules.brackets_for(status):
        if bracket.upper_bound is None:
            lines.append(f"  Over ${bracket.lower_bound:,.0f}: {bracket.rate*100:.0f}%")
        else:
            lines.append(
                f"  ${bracket.lower_bound:,.0f} to ${bracket.upper_bound:,.0f}: {bracket.rate*100:.0f}%"
            )

    return "\n".join(lines)
