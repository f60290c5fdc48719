"""Raw wizard inputs and their conversion to loan applications"""

from dataclasses import dataclass, field, fields, replace
from decimal import Decimal
from typing import Tuple

from lending_core.domain.models import (
    Address,
    CashLoanApplication,
    CollateralDocument,
    Guarantor,
    PayGoLoanApplication,
    PayGoProduct,
)
from lending_core.utils.money import parse_amount


def _amount_or_none(raw: str) -> Decimal | None:
    return parse_amount(raw) if raw and raw.strip() else None


def _amount_text(value: Decimal | None) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class GuarantorForm:
    name: str = ""
    mobile_number: str = ""
    national_id: str = ""
    occupation_class: str = ""
    monthly_income: str = ""
    relationship_to_client: str = ""
    address: Address = field(default_factory=Address)

    def with_value(self, name: str, value: str) -> "GuarantorForm":
        """Copy with one field changed; address parts are addressed as address.<field>"""
        if name.startswith("address."):
            part = name.split(".", 1)[1]
            if part not in {f.name for f in fields(Address)}:
                raise ValueError(f"Unknown address field: {part}")
            return replace(self, address=replace(self.address, **{part: value}))
        if name not in {f.name for f in fields(self)} or name == "address":
            raise ValueError(f"Unknown guarantor field: {name}")
        return replace(self, **{name: value})

    def to_guarantor(self) -> Guarantor:
        return Guarantor(
            name=self.name.strip(),
            mobile_number=self.mobile_number.strip(),
            national_id=self.national_id.strip().upper(),
            occupation_class=self.occupation_class,
            monthly_income=parse_amount(self.monthly_income),
            relationship_to_client=self.relationship_to_client,
            address=self.address,
        )

    @classmethod
    def from_guarantor(cls, guarantor: Guarantor | None) -> "GuarantorForm":
        if guarantor is None:
            return cls()
        return cls(
            name=guarantor.name,
            mobile_number=guarantor.mobile_number,
            national_id=guarantor.national_id,
            occupation_class=guarantor.occupation_class,
            monthly_income=_amount_text(guarantor.monthly_income),
            relationship_to_client=guarantor.relationship_to_client,
            address=guarantor.address,
        )


@dataclass(frozen=True)
class CashLoanForm:
    loan_amount: str = ""
    loan_purpose: str = ""
    repayment_period: str = ""
    monthly_income: str = ""
    employer_industry: str = ""
    collateral_type: str = ""
    collateral_value: str = ""
    collateral_details: str = ""
    collateral_documents: Tuple[CollateralDocument, ...] = ()

    # Fields set through UpdateField; documents have their own events
    TEXT_FIELDS = (
        "loan_amount",
        "loan_purpose",
        "repayment_period",
        "monthly_income",
        "employer_industry",
        "collateral_type",
        "collateral_value",
        "collateral_details",
    )
    AMOUNT_FIELDS = ("loan_amount", "monthly_income", "collateral_value")

    def to_application(self, user_id: str, **extra) -> CashLoanApplication:
        return CashLoanApplication(
            user_id=user_id,
            loan_amount=_amount_or_none(self.loan_amount),
            loan_purpose=self.loan_purpose,
            repayment_period=self.repayment_period,
            monthly_income=_amount_or_none(self.monthly_income),
            employer_industry=self.employer_industry,
            collateral_type=self.collateral_type,
            collateral_value=_amount_or_none(self.collateral_value),
            collateral_details=self.collateral_details,
            collateral_documents=list(self.collateral_documents),
            **extra,
        )

    @classmethod
    def from_application(cls, application: CashLoanApplication) -> "CashLoanForm":
        return cls(
            loan_amount=_amount_text(application.loan_amount),
            loan_purpose=application.loan_purpose,
            repayment_period=application.repayment_period,
            monthly_income=_amount_text(application.monthly_income),
            employer_industry=application.employer_industry,
            collateral_type=application.collateral_type,
            collateral_value=_amount_text(application.collateral_value),
            collateral_details=application.collateral_details,
            collateral_documents=tuple(application.collateral_documents),
        )


@dataclass(frozen=True)
class PayGoLoanForm:
    category: str = ""
    product: PayGoProduct | None = None
    usage_per_day: str = ""
    repayment_period: str = ""
    salary_band: str = ""
    guarantor: GuarantorForm = field(default_factory=GuarantorForm)

    TEXT_FIELDS = ("usage_per_day", "repayment_period", "salary_band")
    AMOUNT_FIELDS = ()

    def to_application(self, user_id: str, **extra) -> PayGoLoanApplication:
        return PayGoLoanApplication(
            user_id=user_id,
            category=self.category,
            product=self.product,
            usage_per_day=self.usage_per_day,
            repayment_period=self.repayment_period,
            salary_band=self.salary_band,
            guarantor=self.guarantor.to_guarantor(),
            **extra,
        )

    @classmethod
    def from_application(cls, application: PayGoLoanApplication) -> "PayGoLoanForm":
        return cls(
            category=application.category,
            product=application.product,
            usage_per_day=application.usage_per_day,
            repayment_period=application.repayment_period,
            salary_band=application.salary_band,
            guarantor=GuarantorForm.from_guarantor(application.guarantor),
        )


LoanForm = CashLoanForm | PayGoLoanForm
