"""
TaxWise - FastAPI Backend
=========================
Thin API over the tax computation engine.

The engine itself performs no I/O; this module is the caller that:
1. Loads the rule table once at startup
2. Sums document deduction records into itemized deductions
3. Maps engine errors onto HTTP responses
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tax_constants import (
    FilingStatus,
    OccupationCategory,
    RuleTable,
    RULES_2024,
    get_tax_bracket_info,
    load_rule_table,
)
from models import (
    CalculationExport,
    CalculationRequest,
    InvalidInputError,
    SuggestionRequest,
    SuggestionResponse,
    TaxCalculationInput,
    TaxCalculationResult,
)
from tax_calculator import TaxCalculator, check_amount, export_calculation, total_itemized_deductions
from deduction_advisor import DeductionAdvisor

# Configure logging
logging.basicConfig(level=logging.DEBUG if os.getenv("DEBUG") else logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION SETUP
# =============================================================================

def load_configured_rules() -> RuleTable:
    """Rule table named by TAX_RULES_FILE, or the shipped 2024 table."""
    rules_file = os.getenv("TAX_RULES_FILE")
    if rules_file:
        return load_rule_table(rules_file)
    return RULES_2024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    rules = load_configured_rules()
    app.state.rules = rules
    app.state.calculator = TaxCalculator(rules)
    app.state.advisor = DeductionAdvisor(rules)
    logger.info(f"TaxWise starting up with rule table {rules.version} (tax year {rules.tax_year})")
    yield
    logger.info("TaxWise shutting down...")


app = FastAPI(
    title="TaxWise",
    description="Deterministic tax estimation API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # React dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_rules(request: Request) -> RuleTable:
    return getattr(request.app.state, "rules", RULES_2024)


def run_calculation(request: Request, body: CalculationRequest) -> TaxCalculationResult:
    calculator = getattr(request.app.state, "calculator", None) or TaxCalculator(get_rules(request))

    # Checked before document records are added, which would mask a negative value
    try:
        check_amount("itemized_deductions", body.itemized_deductions)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        calc_input = TaxCalculationInput(
            gross_income=body.gross_income,
            filing_status=body.filing_status,
            jurisdiction_code=body.jurisdiction_code,
            itemized_deductions=body.itemized_deductions + total_itemized_deductions(body.deductions)
        )
    except ValueError as e:
        # Unknown filing status names arrive here wrapped in a ValidationError
        raise HTTPException(status_code=400, detail=f"Invalid filing status: {body.filing_status}") from e

    try:
        return calculator.calculate(calc_input)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/")
async def root():
    """API health check."""
    return {
        "service": "TaxWise",
        "version": "1.0.0",
        "status": "healthy"
    }


@app.get("/api/health")
async def health_check(request: Request):
    """Detailed health check."""
    rules = get_rules(request)
    return {
        "status": "healthy",
        "components": {
            "tax_calculator": "ready",
            "deduction_advisor": "ready"
        },
        "rule_table": {
            "version": rules.version,
            "tax_year": rules.tax_year
        }
    }


# --- TAX CALCULATION ---

@app.post("/api/calculate", response_model=TaxCalculationResult)
def calculate(request: Request, body: CalculationRequest):
    """
    Calculate a full tax breakdown.

    Deductible document records in `deductions` are summed and added to
    `itemized_deductions` before the standard-vs-itemized choice.
    """
    return run_calculation(request, body)


@app.post("/api/calculate/export", response_model=CalculationExport)
def export(request: Request, body: CalculationRequest):
    """Calculate and bundle the result with its deductions for download."""
    result = run_calculation(request, body)
    return export_calculation(result, body.deductions)


# --- DEDUCTION SUGGESTIONS ---

@app.post("/api/deductions/suggest", response_model=SuggestionResponse)
def suggest(request: Request, body: SuggestionRequest):
    """Suggest likely-eligible deductions for an income and occupation."""
    advisor = getattr(request.app.state, "advisor", None) or DeductionAdvisor(get_rules(request))

    try:
        suggestions = advisor.suggest(body.income, body.occupation)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return SuggestionResponse(
        occupation=OccupationCategory.normalize(body.occupation),
        suggestions=suggestions
    )


# --- TAX REFERENCE DATA ---

@app.get("/api/reference/brackets")
async def get_tax_brackets(request: Request, filing_status: Optional[str] = None):
    """Get federal bracket information."""
    rules = get_rules(request)

    if filing_status:
        try:
            status = FilingStatus.normalize(filing_status)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid filing status")
        return {
            "filing_status": status.value,
            "tax_year": rules.tax_year,
            "brackets": [b.model_dump() for b in rules.brackets_for(status)],
            "standard_deduction": rules.standard_deduction_for(status),
            "summary": get_tax_bracket_info(status, rules)
        }

    # Return all
    return {
        status.value: {
            "brackets": [b.model_dump() for b in brackets],
            "standard_deduction": rules.standard_deduction_for(status)
        }
        for status, brackets in rules.federal_brackets.items()
    }


@app.get("/api/reference/jurisdictions")
async def get_jurisdiction_rates(request: Request):
    """Get flat jurisdiction rates. Codes not listed are taxed at 0."""
    return dict(get_rules(request).jurisdiction_rates)


# --- ERROR HANDLERS ---

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if os.getenv("DEBUG") else "An error occurred"
        }
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
