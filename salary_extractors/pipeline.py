"""Salary-slip extraction pipeline.

PDF bytes go through one text backend at a time (pdfplumber, then pypdf,
then pdfminer). The first backend whose text yields at least one field wins;
its fields are backfilled, scored and returned. When every backend fails the
caller gets ``success=False``, or the fixed placeholder record when
``placeholder_fallback`` is enabled for demos.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from salary_extractors import text_extractor
from salary_extractors.assembler import (
    assemble_salary_slip,
    backfill_totals,
    validate_salary_slip,
)
from salary_extractors.confidence import score_confidence
from salary_extractors.salary_fields import extract_fields
from salary_extractors.slip_models import SalarySlip
from salary_extractors.text_extractor import TextBackend

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"
PDF_MAGIC_SEARCH_BYTES = 1024
NOT_PDF_MESSAGE = "PDFファイルを選択してください"
EXHAUSTED_MESSAGE = "PDFデータの抽出に失敗しました"
PLACEHOLDER_MESSAGE = "Test data (not from actual PDF)"

PLACEHOLDER_DATA: Dict[str, Any] = {
    "paymentDate": "2025-01-01",
    "basicSalary": 250000,
    "overtimeAllowance": 35000,
    "commutingAllowance": 15000,
    "healthInsurance": 12500,
    "pensionInsurance": 25000,
    "employmentInsurance": 1500,
    "incomeTax": 8500,
    "residentTax": 12000,
    "totalPayment": 300000,
    "totalDeductions": 59500,
    "netPayment": 240500,
}


class NotPdfError(ValueError):
    pass


class TextExtractionError(RuntimeError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or EXHAUSTED_MESSAGE)
        self.errors = errors


class ExtractionState(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"
    TEST_FALLBACK = "test_fallback"
    DONE = "done"


BACKEND_STATES = (
    ExtractionState.PRIMARY,
    ExtractionState.SECONDARY,
    ExtractionState.TERTIARY,
)


@dataclass
class ExtractionResult:
    success: bool
    extracted_data: Optional[Dict[str, Any]] = None
    confidence: Optional[float] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    backend: Optional[str] = None
    placeholder: bool = False
    raw_text: str = ""
    state: ExtractionState = ExtractionState.DONE

    def salary_slip(self) -> Optional[SalarySlip]:
        if not self.success or not self.extracted_data:
            return None
        return assemble_salary_slip(self.extracted_data)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.extracted_data is not None:
            payload["extractedData"] = dict(self.extracted_data)
        if self.confidence is not None:
            payload["confidence"] = self.confidence
        if self.errors:
            payload["errors"] = list(self.errors)
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        if self.backend:
            payload["backend"] = self.backend
        if self.placeholder:
            payload["placeholder"] = True
            payload["message"] = PLACEHOLDER_MESSAGE
        return payload


def is_pdf_bytes(data: bytes) -> bool:
    return bool(data) and PDF_MAGIC in data[:PDF_MAGIC_SEARCH_BYTES]


def _backend_state(index: int) -> ExtractionState:
    # backends past the third share the last backend state
    return BACKEND_STATES[min(index, len(BACKEND_STATES) - 1)]


def _resolve_backends(
    backends: Optional[Sequence[Tuple[str, TextBackend]]],
) -> List[Tuple[str, TextBackend]]:
    if backends is None:
        return list(text_extractor.TEXT_BACKENDS)
    return list(backends)


def _run_backend(name: str, backend: TextBackend, pdf_bytes: bytes, errors: List[str]) -> str:
    try:
        text = backend(pdf_bytes)
    except Exception as exc:
        logger.warning("text backend %s failed: %s", name, exc)
        errors.append(f"{name}: {exc.__class__.__name__}: {exc}")
        return ""
    if not text or not text.strip():
        logger.info("text backend %s returned no text", name)
        errors.append(f"{name}: テキストを抽出できませんでした")
        return ""
    return text


def extract_text_with_fallback(
    pdf_bytes: bytes,
    backends: Optional[Sequence[Tuple[str, TextBackend]]] = None,
) -> Tuple[str, str]:
    """Return ``(backend_name, text)`` from the first backend producing text."""
    if not is_pdf_bytes(pdf_bytes):
        raise NotPdfError(NOT_PDF_MESSAGE)
    errors: List[str] = []
    for name, backend in _resolve_backends(backends):
        text = _run_backend(name, backend, pdf_bytes, errors)
        if text:
            return name, text
    raise TextExtractionError(errors)


def _placeholder_result(errors: List[str]) -> ExtractionResult:
    logger.warning("all text backends failed, returning placeholder data")
    return ExtractionResult(
        success=True,
        extracted_data=dict(PLACEHOLDER_DATA),
        confidence=1.0,
        errors=errors,
        placeholder=True,
        state=ExtractionState.TEST_FALLBACK,
    )


def extract_salary_slip(
    pdf_bytes: bytes,
    *,
    backends: Optional[Sequence[Tuple[str, TextBackend]]] = None,
    placeholder_fallback: bool = False,
) -> ExtractionResult:
    """Extract a salary slip from PDF bytes.

    Raises NotPdfError for non-PDF input. Every other failure is reported in
    the returned result.
    """
    if not is_pdf_bytes(pdf_bytes):
        raise NotPdfError(NOT_PDF_MESSAGE)

    errors: List[str] = []
    for index, (name, backend) in enumerate(_resolve_backends(backends)):
        state = _backend_state(index)
        logger.debug("extraction state %s: backend %s", state.name, name)
        text = _run_backend(name, backend, pdf_bytes, errors)
        if not text:
            continue

        data = backfill_totals(extract_fields(text))
        if not data:
            logger.info("text backend %s produced no salary fields", name)
            errors.append(f"{name}: 給料明細の項目が見つかりませんでした")
            continue

        slip = assemble_salary_slip(data)
        return ExtractionResult(
            success=True,
            extracted_data=data,
            confidence=score_confidence(data),
            errors=errors,
            warnings=validate_salary_slip(slip, present_fields=data),
            backend=name,
            raw_text=text,
            state=state,
        )

    if placeholder_fallback:
        return _placeholder_result(errors)
    return ExtractionResult(success=False, errors=errors + [EXHAUSTED_MESSAGE])
