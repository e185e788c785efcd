"""Tax, contribution, preservation and Age Pension rules."""

from .age_pension import (
    DEFAULT_AGE_PENSION_RULES,
    PENSION_AGE,
    AgePensionRules,
    deemed_income,
    household_age_pension,
    is_pension_age,
)
from .preservation import (
    DEFAULT_PRESERVATION_AGE,
    can_access_super,
    describe_preservation_age,
    preservation_age,
    validate_birth_year,
    years_until_access,
)
from .tax import (
    DEFAULT_CONTRIBUTION_RULES,
    MEDICARE_LEVY,
    RESIDENT_BRACKETS,
    ContributionRules,
    TaxBracket,
    after_tax_income,
    contribution_for_year,
    income_tax,
    marginal_rate,
    super_contribution,
)

__all__ = [
    "DEFAULT_AGE_PENSION_RULES",
    "PENSION_AGE",
    "AgePensionRules",
    "deemed_income",
    "household_age_pension",
    "is_pension_age",
    "DEFAULT_CONTRIBUTION_RULES",
    "DEFAULT_PRESERVATION_AGE",
    "MEDICARE_LEVY",
    "RESIDENT_BRACKETS",
    "ContributionRules",
    "TaxBracket",
    "after_tax_income",
    "can_access_super",
    "contribution_for_year",
    "describe_preservation_age",
    "income_tax",
    "marginal_rate",
    "preservation_age",
    "super_contribution",
    "validate_birth_year",
    "years_until_access",
]
