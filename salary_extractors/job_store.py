from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

JOBS_ROOT = Path("/tmp/salary-slip/jobs")
PDF_NAME = "input.pdf"
EXTRACTION_NAME = "extraction.json"
METADATA_NAME = "metadata.json"


@dataclass(frozen=True)
class JobContext:
    job_id: str
    job_dir: Path
    source_filename: str
    created_at: str


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validate_uuid_v4(job_id: str) -> None:
    parsed = UUID(job_id)
    if parsed.version != 4:
        raise ValueError("job_id must be UUID v4")


def create_job(source_filename: str) -> JobContext:
    job_id = str(uuid4())
    job_dir = JOBS_ROOT / job_id
    job_dir.mkdir(parents=True, exist_ok=False)
    return JobContext(
        job_id=job_id,
        job_dir=job_dir,
        source_filename=source_filename,
        created_at=_utcnow_iso(),
    )


def fixed_file_name(kind: str) -> str:
    if kind == "pdf":
        return PDF_NAME
    if kind == "extraction":
        return EXTRACTION_NAME
    raise ValueError(f"Unsupported job file kind: {kind}")


def save_pdf(job: JobContext, pdf_bytes: bytes) -> Path:
    pdf_path = job.job_dir / PDF_NAME
    pdf_path.write_bytes(pdf_bytes)
    return pdf_path


def _write_json(path: Path, payload: dict[str, Any]) -> Path:
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def save_extraction(job_id: str, payload: dict[str, Any]) -> Path:
    return _write_json(resolve_job_file_path(job_id, "extraction"), payload)


def save_metadata(job: JobContext, metadata: dict[str, Any]) -> Path:
    payload = {
        "job_id": job.job_id,
        "source_filename": job.source_filename,
        "created_at": job.created_at,
        **metadata,
    }
    return _write_json(job.job_dir / METADATA_NAME, payload)


def load_metadata(job_id: str) -> dict[str, Any]:
    _validate_uuid_v4(job_id)
    path = JOBS_ROOT / job_id / METADATA_NAME
    if not path.exists():
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


def resolve_job_file_path(job_id: str, kind: str) -> Path:
    _validate_uuid_v4(job_id)
    return JOBS_ROOT / job_id / fixed_file_name(kind)


def load_pdf(job_id: str) -> bytes:
    pdf_path = resolve_job_file_path(job_id, "pdf")
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF not found for job {job_id}")
    return pdf_path.read_bytes()
