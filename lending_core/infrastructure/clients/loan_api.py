"""Loan API HTTP client for form metadata, terms and application submission"""

import asyncio
import logging
from typing import Any, Dict, List

import httpx
from pydantic import ValidationError

from lending_core.config import settings
from lending_core.domain.exceptions import RemoteServiceError
from lending_core.domain.models import (
    CalculatedTerms,
    CashLoanFormData,
    CashLoanTerms,
    CashTermsRequest,
    LoanApplication,
    LoanType,
    PayGoCategory,
    PayGoLoanTerms,
    PayGoProduct,
    PayGoTermsRequest,
    SubmissionReceipt,
    TermsRequest,
)
from lending_core.domain.result import ErrorCategory, Result
from lending_core.infrastructure.observability.metrics import remote_failure_counter, remote_latency_histogram
from lending_core.utils.serialization import from_json, to_json_dict


def category_for_status(status_code: int) -> ErrorCategory:
    """Map an HTTP error status onto the wizard's error categories"""
    if status_code in (401, 403):
        return ErrorCategory.UNAUTHORIZED
    if status_code == 409:
        return ErrorCategory.CONFLICT
    if status_code >= 500:
        return ErrorCategory.SERVER
    return ErrorCategory.VALIDATION


def _error_detail(response: httpx.Response) -> str:
    """Human-readable message from a FastAPI-style error body"""
    try:
        body = response.json()
    except ValueError:
        return f"Loan API error: {response.status_code}"
    detail = body.get("detail") or body.get("message") if isinstance(body, dict) else None
    if isinstance(detail, list) and detail:
        detail = detail[0].get("msg") if isinstance(detail[0], dict) else str(detail[0])
    return str(detail) if detail else f"Loan API error: {response.status_code}"


class LoanApiClient:
    """
    Client for the remote loan API.

    Every public call returns a Result. Reads and terms calculation are retried
    with exponential backoff on server and network failures; submissions are
    sent exactly once.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        auth_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
    ):
        self.base_url = (base_url or settings.loan_api_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.auth_token = auth_token
        self.transport = transport
        self.max_retries = settings.remote_max_retries if max_retries is None else max_retries
        self.backoff_base = settings.remote_backoff_base if backoff_base is None else backoff_base

    async def get_form_data(self) -> Result[CashLoanFormData]:
        result = await self._request("get_form_data", "GET", "api/loans/cash/form-data")
        return self._parse(result, CashLoanFormData)

    async def calculate_terms(self, request: TermsRequest) -> Result[CalculatedTerms]:
        match request:
            case CashTermsRequest():
                path, terms_type = "api/loans/cash/calculate", CashLoanTerms
                body = {
                    "loan_amount": str(request.principal),
                    "repayment_period": request.repayment_period,
                    "employer_industry": request.employer_industry,
                    "monthly_income": str(request.monthly_income),
                }
            case PayGoTermsRequest():
                path, terms_type = "api/loans/paygo/calculate", PayGoLoanTerms
                body = {
                    "product_id": request.product.id,
                    "repayment_period": request.repayment_period,
                    "salary_band": request.salary_band,
                    "usage_per_day": request.usage_per_day,
                }
            case _:
                return Result.fail(f"Unsupported terms request: {type(request).__name__}", ErrorCategory.VALIDATION)

        result = await self._request("calculate_terms", "POST", path, json=body)
        return self._parse(result, terms_type)

    async def submit_application(self, application: LoanApplication) -> Result[SubmissionReceipt]:
        path = "api/loans/cash/apply" if application.loan_type == LoanType.CASH else "api/loans/paygo/apply"
        result = await self._request("submit_application", "POST", path, json=to_json_dict(application), retry=False)
        return self._parse(result, SubmissionReceipt)

    async def get_paygo_categories(self) -> Result[List[PayGoCategory]]:
        result = await self._request("get_paygo_categories", "GET", "api/loans/paygo/categories")
        return self._parse(result, List[PayGoCategory], key="categories")

    async def get_category_products(self, category_id: str) -> Result[List[PayGoProduct]]:
        result = await self._request(
            "get_category_products", "GET", f"api/loans/paygo/categories/{category_id}/products"
        )
        return self._parse(result, List[PayGoProduct], key="products")

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json: Dict[str, Any] | None = None,
        retry: bool = True,
    ) -> Result[Any]:
        """
        Send one logical request, retrying transient failures.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base, ... (base * 2^(attempt-1))
        - Only SERVER and NETWORK failures are retried, and only when retry=True
        - Tracks latency histogram and failure counter per operation
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                with remote_latency_histogram.labels(operation=operation).time():
                    return Result.ok(await self._send(method, path, json))
            except RemoteServiceError as e:
                remote_failure_counter.labels(operation=operation, category=e.category.value).inc()
                if not retry or not e.category.retryable or attempt >= self.max_retries:
                    logging.warning(
                        "Loan API call failed",
                        extra={
                            "operation": operation,
                            "category": e.category.value,
                            "status_code": e.status_code,
                            "attempts": attempt,
                        },
                    )
                    return Result.fail(e.message, e.category)

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)

    async def _send(self, method: str, path: str, json: Dict[str, Any] | None) -> Any:
        """
        Perform a single HTTP exchange.

        Raises:
            RemoteServiceError: On timeout, transport failure, HTTP errors, or an undecodable body
        """
        headers = {"Authorization": f"Bearer {self.auth_token}"} if self.auth_token else {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(method, f"{self.base_url}/{path}", json=json, headers=headers)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                raise RemoteServiceError(ErrorCategory.NETWORK, f"Loan API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                raise RemoteServiceError(category_for_status(status), _error_detail(e.response), status) from e
            except httpx.RequestError as e:
                raise RemoteServiceError(ErrorCategory.NETWORK, f"Loan API unreachable: {e}") from e
            except ValueError as e:
                raise RemoteServiceError(ErrorCategory.SERVER, f"Invalid response from loan API: {e}") from e

    @staticmethod
    def _parse(result: Result[Any], tp, key: str | None = None) -> Result[Any]:
        if not result:
            return result
        try:
            data = result.value[key] if key else result.value
            return Result.ok(from_json(tp, data))
        except (ValidationError, KeyError, TypeError) as e:
            logging.error("Unexpected loan API payload", extra={"type": str(tp), "error": str(e)})
            return Result.fail("Invalid response from loan API", ErrorCategory.SERVER)
