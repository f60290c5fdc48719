"""Field and form validation rules for loan applications"""

import re
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List

from lending_core.domain.models import Address, CashLoanApplication, LoanType, PayGoLoanApplication, ValidationResult
from lending_core.domain.options import (
    CASH_REPAYMENT_PERIODS,
    EMPLOYER_INDUSTRIES,
    PAYGO_REPAYMENT_PERIODS,
    PROVINCES,
    RESIDENCE_TYPES,
    SALARY_BANDS,
    USAGE_OPTIONS,
)
from lending_core.utils.date_utils import parse_repayment_period
from lending_core.utils.money import format_money, parse_amount

FieldErrors = Dict[str, str]

# Phone numbers
COUNTRY_CODE = "263"
CARRIER_PREFIXES = ("77", "78", "71", "73", "74", "86", "87")
PHONE_REQUIRED = "Phone number is required"
PHONE_INVALID = "Please enter a valid Zimbabwe phone number (e.g., +263 77 123 4567)"

# National ID: 63-123456A-12 style with optional dashes
NATIONAL_ID_PATTERN = re.compile(r"^\d{2}-?\d{6,7}-?[A-Z]-?\d{2}$")

# Amount thresholds
MIN_LOAN_AMOUNT = Decimal("100")
MAX_LOAN_AMOUNT = Decimal("50000")
MIN_MONTHLY_INCOME = {LoanType.CASH: Decimal("150"), LoanType.PAYGO: Decimal("300")}
MAX_REPAYMENT_MONTHS = 24

# Uploads
MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024
POSTAL_CODE_PATTERN = re.compile(r"^[0-9]{4,6}$")


class DocumentPurpose(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"

    @property
    def allowed_extensions(self) -> List[str]:
        if self == DocumentPurpose.IMAGE:
            return ["jpg", "jpeg", "png"]
        return ["pdf", "jpg", "jpeg", "png"]


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _phone_digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def _national_number(digits: str) -> str | None:
    """Nine-digit subscriber number from any accepted phone shape"""
    if len(digits) == 12 and digits.startswith(COUNTRY_CODE):
        return digits[3:]
    if len(digits) == 10 and digits.startswith("0"):
        return digits[1:]
    if len(digits) == 9:
        return digits
    return None


def validate_phone(value: str) -> ValidationResult:
    """
    Validate a Zimbabwe mobile number.

    Accepted shapes:
    - international: 263 + 9 digits (a leading + is ignored)
    - local: 0 + 9 digits
    - direct: 9 digits
    The subscriber number must start with a known carrier prefix.
    """
    if _blank(value):
        return ValidationResult.invalid(PHONE_REQUIRED)

    national = _national_number(_phone_digits(value))
    if national is None or not national.startswith(CARRIER_PREFIXES):
        return ValidationResult.invalid(PHONE_INVALID)
    return ValidationResult.valid()


def normalize_phone(value: str) -> str | None:
    """Canonical 263XXXXXXXXX form, or None when the number is not valid"""
    if not validate_phone(value).is_valid:
        return None
    return COUNTRY_CODE + _national_number(_phone_digits(value))


def format_phone_for_display(value: str) -> str:
    """+263 77 123 4567 style, falling back to the raw input"""
    normalized = normalize_phone(value)
    if normalized is None:
        return value
    national = normalized[3:]
    return f"+{COUNTRY_CODE} {national[:2]} {national[2:5]} {national[5:]}"


def validate_national_id(value: str) -> ValidationResult:
    if _blank(value):
        return ValidationResult.invalid("National ID is required")
    if not NATIONAL_ID_PATTERN.match(value.strip().upper()):
        return ValidationResult.invalid("Please enter a valid National ID (e.g., 63-123456A-12)")
    return ValidationResult.valid()


def format_national_id(value: str) -> str:
    """Canonical NN-NNNNNNN-A-NN form; input is returned untouched when invalid"""
    if not validate_national_id(value).is_valid:
        return value
    compact = value.strip().upper().replace("-", "")
    return f"{compact[:2]}-{compact[2:-3]}-{compact[-3]}-{compact[-2:]}"


def validate_required(value, label: str) -> ValidationResult:
    if _blank(value):
        return ValidationResult.invalid(f"{label} is required")
    return ValidationResult.valid()


def validate_choice(value: str, options: Iterable[str], label: str) -> ValidationResult:
    if _blank(value):
        return ValidationResult.invalid(f"{label} is required")
    if value not in list(options):
        return ValidationResult.invalid(f"Please select a valid {label.lower()}")
    return ValidationResult.valid()


def validate_loan_amount(
    value: str | Decimal | None,
    minimum: Decimal = MIN_LOAN_AMOUNT,
    maximum: Decimal = MAX_LOAN_AMOUNT,
) -> ValidationResult:
    """
    Validate a requested cash loan amount.

    Requirements:
    - Blank input is reported as required
    - Unparseable input counts as 0 and fails the minimum
    - Amount must lie within [minimum, maximum]
    """
    if _blank(value):
        return ValidationResult.invalid("Loan amount is required")
    amount = parse_amount(value)
    if amount < minimum:
        return ValidationResult.invalid(f"Minimum loan amount is {_whole_money(minimum)}")
    if amount > maximum:
        return ValidationResult.invalid(f"Maximum loan amount is {_whole_money(maximum)}")
    return ValidationResult.valid()


def validate_monthly_income(value: str | Decimal | None, loan_type: LoanType = LoanType.CASH) -> ValidationResult:
    if _blank(value):
        return ValidationResult.invalid("Monthly income is required")
    minimum = MIN_MONTHLY_INCOME[loan_type]
    if parse_amount(value) < minimum:
        return ValidationResult.invalid(f"Minimum monthly income is {_whole_money(minimum)}")
    return ValidationResult.valid()


def validate_collateral_value(value: str | Decimal | None) -> ValidationResult:
    if _blank(value):
        return ValidationResult.invalid("Collateral value is required")
    if parse_amount(value) <= 0:
        return ValidationResult.invalid("Collateral value must be greater than zero")
    return ValidationResult.valid()


def validate_repayment_period(value: str, allowed: Iterable[str] | None = None) -> ValidationResult:
    if _blank(value):
        return ValidationResult.invalid("Repayment period is required")
    months = parse_repayment_period(value)
    if months is None or months > MAX_REPAYMENT_MONTHS:
        return ValidationResult.invalid("Please select a valid repayment period")
    if allowed is not None:
        allowed = list(allowed)
        if allowed and value not in allowed:
            return ValidationResult.invalid("Please select a valid repayment period")
    return ValidationResult.valid()


def validate_address(address: Address | None) -> FieldErrors:
    """Field errors for a residential address, empty when the address is complete"""
    address = address or Address()
    errors: FieldErrors = {}
    for name, label in (("street", "Street address"), ("suburb", "Suburb"), ("city", "City")):
        result = validate_required(getattr(address, name), label)
        if not result.is_valid:
            errors[name] = result.message

    province = validate_choice(address.province, PROVINCES, "Province")
    if not province.is_valid:
        errors["province"] = province.message

    residence = validate_choice(address.residence_type, RESIDENCE_TYPES, "Residence type")
    if not residence.is_valid:
        errors["residence_type"] = residence.message

    # Postal code is optional
    if address.postal_code and not POSTAL_CODE_PATTERN.match(address.postal_code.strip()):
        errors["postal_code"] = "Postal code should be 4-6 digits"
    return errors


def validate_file(file_name: str, size_bytes: int, purpose: DocumentPurpose = DocumentPurpose.DOCUMENT) -> ValidationResult:
    if _blank(file_name):
        return ValidationResult.invalid("File is required")
    errors = []
    if size_bytes > MAX_FILE_SIZE_BYTES:
        errors.append("File size must not exceed 5MB")
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if extension not in purpose.allowed_extensions:
        errors.append(f"Allowed file types: {', '.join(purpose.allowed_extensions)}")
    return ValidationResult(is_valid=not errors, errors=errors)


def validate_guarantor(guarantor) -> FieldErrors:
    """
    Field errors for the PayGo guarantor step.

    Accepts any object exposing the guarantor form attributes with raw string values.
    The PayGo income minimum is applied to the guarantor's monthly income.
    """
    errors: FieldErrors = {}
    checks = {
        "name": validate_required(guarantor.name, "Guarantor name"),
        "mobile_number": validate_phone(guarantor.mobile_number),
        "national_id": validate_national_id(guarantor.national_id),
        "occupation_class": validate_required(guarantor.occupation_class, "Occupation"),
        "monthly_income": validate_monthly_income(guarantor.monthly_income, LoanType.PAYGO),
        "relationship_to_client": validate_required(guarantor.relationship_to_client, "Relationship"),
    }
    for name, result in checks.items():
        if not result.is_valid:
            errors[name] = result.message

    for name, message in validate_address(guarantor.address).items():
        errors[f"address.{name}"] = message
    return errors


def collateral_warnings(loan_amount: str | Decimal | None, collateral_value: str | Decimal | None) -> List[str]:
    """Non-blocking advice shown with the collateral step"""
    if _blank(loan_amount) or _blank(collateral_value):
        return []
    if parse_amount(collateral_value) < parse_amount(loan_amount):
        return ["Collateral value is less than loan amount"]
    return []


def validate_cash_application(application: CashLoanApplication) -> ValidationResult:
    """
    Check a complete cash application in one pass.

    Errors are listed in wizard step order. A collateral value below the
    loan amount is only a warning.
    """
    results = [
        validate_loan_amount(application.loan_amount),
        validate_required(application.loan_purpose, "Loan purpose"),
        validate_repayment_period(application.repayment_period, CASH_REPAYMENT_PERIODS),
        validate_monthly_income(application.monthly_income, LoanType.CASH),
        validate_choice(application.employer_industry, EMPLOYER_INDUSTRIES, "Employer industry"),
        validate_required(application.collateral_type, "Collateral type"),
        validate_collateral_value(application.collateral_value),
        validate_required(application.collateral_details, "Collateral details"),
    ]
    errors = [error for result in results for error in result.errors]
    if not application.collateral_documents:
        errors.append("At least one collateral document is required")

    warnings = collateral_warnings(application.loan_amount, application.collateral_value)
    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_paygo_application(application: PayGoLoanApplication) -> ValidationResult:
    """Check a complete PayGo application, guarantor included"""
    errors = validate_required(application.category, "Product category").errors
    if application.product is None:
        errors.append("Please select a product")
    elif not application.product.is_available:
        errors.append("This product is currently unavailable")

    for result in (
        validate_choice(application.usage_per_day, USAGE_OPTIONS, "Usage per day"),
        validate_repayment_period(application.repayment_period, PAYGO_REPAYMENT_PERIODS),
        validate_choice(application.salary_band, SALARY_BANDS, "Salary band"),
    ):
        errors.extend(result.errors)

    if application.guarantor is None:
        errors.append("Guarantor information is required")
    else:
        errors.extend(validate_guarantor(application.guarantor).values())
    return ValidationResult(is_valid=not errors, errors=errors)


def _whole_money(value: Decimal) -> str:
    text = format_money(value)
    return text[:-3] if text.endswith(".00") else text
