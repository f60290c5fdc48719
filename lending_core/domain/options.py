"""Fixed option lists offered by the application wizard"""

from typing import List

from lending_core.utils.date_utils import format_repayment_period

EMPLOYER_INDUSTRIES: List[str] = [
    "Agriculture & Farming",
    "Automotive",
    "Banking & Financial Services",
    "Construction",
    "Education",
    "Energy & Utilities",
    "Entertainment & Media",
    "Food & Beverage",
    "Government & Public Sector",
    "Healthcare & Medical",
    "Hospitality & Tourism",
    "Information Technology",
    "Insurance",
    "Legal Services",
    "Manufacturing",
    "Mining & Extraction",
    "Non-Profit & NGO",
    "Real Estate",
    "Retail & Wholesale",
    "Telecommunications",
    "Transportation & Logistics",
    "Other",  # always last
]

LOAN_PURPOSES: List[str] = [
    "Business",
    "Education",
    "Medical",
    "Home Improvement",
    "Car",
    "Agriculture",
    "Personal",
]

# 1-11 months, then 1 year, 18 months, 2 years
CASH_REPAYMENT_PERIODS: List[str] = [format_repayment_period(m) for m in (*range(1, 12), 12, 18, 24)]

PAYGO_REPAYMENT_PERIODS: List[str] = [format_repayment_period(m) for m in (3, 6, 12, 18, 24)]

USAGE_OPTIONS: List[str] = [
    "Light Use (1-3 hours/day)",
    "Moderate Use (4-6 hours/day)",
    "Heavy Use (7-10 hours/day)",
    "Continuous Use (10+ hours/day)",
]

SALARY_BANDS: List[str] = [
    "Below $300",
    "$300 - $500",
    "$500 - $1,000",
    "$1,000 - $2,000",
    "Above $2,000",
]

PROVINCES: List[str] = [
    "Harare",
    "Bulawayo",
    "Manicaland",
    "Mashonaland Central",
    "Mashonaland East",
    "Mashonaland West",
    "Masvingo",
    "Matabeleland North",
    "Matabeleland South",
    "Midlands",
]

RESIDENCE_TYPES: List[str] = ["Owned", "Rented", "Family Property", "Company Property", "Other"]
