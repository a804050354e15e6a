import os
import json
import html
import logging
from pathlib import Path
from uuid import UUID
from fastapi import FastAPI, File, UploadFile, Request, HTTPException, Body
from fastapi.templating import Jinja2Templates
from fastapi.responses import HTMLResponse, FileResponse, JSONResponse
import uvicorn
import markdown
from salary_extractors.pipeline import (
    NOT_PDF_MESSAGE,
    NotPdfError,
    TextExtractionError,
    extract_salary_slip,
    extract_text_with_fallback,
    is_pdf_bytes,
)
from salary_extractors.job_store import (
    create_job,
    load_metadata,
    load_pdf,
    resolve_job_file_path,
    save_extraction,
    save_metadata,
    save_pdf,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("salary_slip")

app = FastAPI()
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

MAX_UPLOAD_BYTES = int(os.getenv("SALARY_SLIP_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
# Demo safety net: answer with fixed sample data when every PDF backend fails.
PLACEHOLDER_FALLBACK = os.getenv("SALARY_SLIP_PLACEHOLDER_FALLBACK", "").strip().lower() in (
    "1",
    "true",
    "yes",
    "on",
)
PDF_CONTENT_TYPES = ("application/pdf", "application/octet-stream")

EARNING_LABELS = {
    "baseSalary": "基本給",
    "overtimePay": "残業手当",
    "overtimePayOver60": "残業手当(60時間超)",
    "lateNightPay": "深夜割増額",
    "fixedOvertimeAllowance": "固定時間外手当",
    "expenseReimbursement": "立替経費",
    "transportationAllowance": "通勤手当",
    "stockPurchaseIncentive": "持株会奨励金",
}
DEDUCTION_LABELS = {
    "healthInsurance": "健康保険料",
    "welfareInsurance": "厚生年金保険料",
    "employmentInsurance": "雇用保険料",
    "incomeTax": "所得税",
    "residentTax": "住民税",
    "otherDeductions": "その他控除",
}


def _json_error(message, status_code, **extra):
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status_code)


def _is_pdf_upload(file: UploadFile) -> bool:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type and content_type not in PDF_CONTENT_TYPES:
        return False
    name = (file.filename or "").lower()
    return name.endswith(".pdf") or content_type == "application/pdf"


def _result_payload(result):
    payload = result.to_dict()
    slip = result.salary_slip()
    if slip is not None:
        payload["salarySlip"] = slip.to_dict()
    return payload


def _format_yen(value):
    return f"{int(value):,}円"


def _md_text(value, default="-"):
    # PDF text goes into markdown, which passes raw HTML through
    return html.escape(str(value), quote=True) if value else default


def _build_report_markdown(result) -> str:
    slip = result.salary_slip()
    if slip is None:
        return ""
    rows = [
        f"## 給与明細 {_md_text(slip.payment_date, '(支給日不明)')}",
        "",
        f"- 会社名: {_md_text(slip.company_name)}",
        f"- 氏名: {_md_text(slip.employee_name)} ({_md_text(slip.employee_id)})",
    ]
    if slip.target_period.start:
        rows.append(f"- 対象期間: {_md_text(slip.target_period.start)} 〜 {_md_text(slip.target_period.end)}")
    rows.append(f"- 信頼度: {result.confidence:.0%}")
    if result.backend:
        rows.append(f"- 抽出方法: {_md_text(result.backend)}")
    if result.placeholder:
        rows.append("- **注意: PDFから抽出したデータではありません（テストデータ）**")

    for title, labels, amounts, total in (
        ("支給", EARNING_LABELS, slip.earnings.to_dict(), slip.earnings.total),
        ("控除", DEDUCTION_LABELS, slip.deductions.to_dict(), slip.deductions.total),
    ):
        rows.extend(["", f"### {title}", "", "| 項目 | 金額 |", "| --- | ---: |"])
        for key, label in labels.items():
            if amounts.get(key):
                rows.append(f"| {label} | {_format_yen(amounts[key])} |")
        rows.append(f"| **合計** | **{_format_yen(total)}** |")

    rows.extend(["", f"**差引支給額: {_format_yen(slip.net_pay)}**"])
    if result.warnings:
        rows.extend(["", "### 警告", ""])
        rows.extend(f"- {_md_text(warning)}" for warning in result.warnings)
    return "\n".join(rows)


def _build_debug_script(extracted_text, extracted_data, errors):
    """Build a script tag that logs debug info to browser console."""
    text_snippet = (extracted_text or "").strip() or "(no text extracted)"
    if len(text_snippet) > 5000:
        text_snippet = text_snippet[:5000] + "\n... (truncated)"

    def js_escape(s):
        return (s
            .replace("\\", "\\\\")
            .replace("`", "\\`")
            .replace("${", "\\${")
            .replace("</", "<\\/"))

    text_escaped = js_escape(text_snippet)
    data_escaped = js_escape(json.dumps(extracted_data or {}, ensure_ascii=False, indent=2))
    errors_escaped = js_escape(json.dumps(errors or [], ensure_ascii=False, indent=2))
    return f"""
    <script>
    console.group('%c🧾 給与明細解析デバッグ情報', 'font-weight: bold; font-size: 14px; color: #8b5a2b;');
    console.log('%c抽出テキスト:', 'font-weight: bold; color: #6b4423;');
    console.log(`{text_escaped}`);
    console.log('%c正規表現ヒット:', 'font-weight: bold; color: #6b4423;');
    console.log(`{data_escaped}`);
    console.log('%cバックエンドエラー:', 'font-weight: bold; color: #6b4423;');
    console.log(`{errors_escaped}`);
    console.groupEnd();
    </script>
    """


def _render_error_html(title, message):
    safe_title = html.escape(title, quote=True)
    safe_message = html.escape(" ".join(str(message or "").split()), quote=True)
    return f"""
    <div class="p-4 bg-copper-light/20 border border-copper text-wood-dark rounded-sm" data-status="error">
        <strong>{safe_title}</strong><br>
        {safe_message}
    </div>
    """


def _run_extraction_job(file_bytes: bytes, source_filename: str):
    result = extract_salary_slip(file_bytes, placeholder_fallback=PLACEHOLDER_FALLBACK)
    job = create_job(source_filename=source_filename)
    save_pdf(job, file_bytes)
    payload = _result_payload(result)
    save_extraction(job.job_id, payload)
    save_metadata(
        job,
        {
            "size": len(file_bytes),
            "success": result.success,
            "backend": result.backend,
            "confidence": result.confidence,
        },
    )
    return job, result


@app.get("/", response_class=HTMLResponse)
async def read_root(request: Request):
    return templates.TemplateResponse(request, "index.html")


@app.post("/api/pdf/upload")
async def upload_pdf(file: UploadFile = File(...)):
    if not _is_pdf_upload(file):
        return _json_error("Invalid file type. Only PDF files are allowed.", 400)

    file_bytes = await file.read()
    if len(file_bytes) > MAX_UPLOAD_BYTES:
        limit_mb = MAX_UPLOAD_BYTES // (1024 * 1024)
        return _json_error(f"File size exceeds {limit_mb}MB limit", 400)
    if not is_pdf_bytes(file_bytes):
        return _json_error(NOT_PDF_MESSAGE, 400)

    try:
        job = create_job(source_filename=file.filename or "upload.pdf")
        save_pdf(job, file_bytes)
        save_metadata(job, {"size": len(file_bytes), "content_type": file.content_type})
    except OSError as exc:
        logger.exception("storing upload failed")
        return _json_error(f"Failed to upload file: {exc}", 500)

    logger.info("stored upload %s as job %s", file.filename, job.job_id)
    return {
        "success": True,
        "fileId": job.job_id,
        "previewUrl": f"/api/pdf/preview/{job.job_id}",
    }


@app.post("/api/pdf/extract")
async def extract_pdf(file_id: str = Body("", embed=True, alias="fileId")):
    if not file_id:
        return _json_error("File ID is required", 400)
    try:
        pdf_bytes = load_pdf(file_id)
    except (ValueError, FileNotFoundError):
        raise HTTPException(status_code=404, detail="File not found")

    try:
        result = extract_salary_slip(pdf_bytes, placeholder_fallback=PLACEHOLDER_FALLBACK)
    except NotPdfError as exc:
        return _json_error(str(exc), 400)

    payload = _result_payload(result)
    save_extraction(file_id, payload)
    logger.info(
        "extraction for %s: success=%s backend=%s confidence=%s",
        file_id,
        result.success,
        result.backend,
        result.confidence,
    )
    return JSONResponse(payload, status_code=200 if result.success else 422)


@app.post("/api/pdf/parse")
async def parse_pdf(request: Request):
    body = await request.body()
    try:
        backend, text = extract_text_with_fallback(body)
    except NotPdfError as exc:
        return _json_error(str(exc), 400)
    except TextExtractionError as exc:
        return _json_error("Failed to parse PDF", 500, errors=exc.errors)
    return {"success": True, "text": text, "backend": backend}


@app.post("/salary/upload", response_class=HTMLResponse)
async def handle_salary_upload(file: UploadFile = File(...)):
    if not _is_pdf_upload(file):
        return _render_error_html("Error:", "Please upload a valid PDF file.")

    try:
        file_bytes = await file.read()
        if len(file_bytes) > MAX_UPLOAD_BYTES:
            return _render_error_html("Error:", "File size exceeds the upload limit.")
        job, result = _run_extraction_job(
            file_bytes=file_bytes,
            source_filename=file.filename or "upload.pdf",
        )
    except NotPdfError as exc:
        return _render_error_html("Error:", str(exc))
    except Exception as exc:
        logger.exception("salary slip upload failed")
        return _render_error_html("Error Processing Request:", str(exc))

    debug_script = _build_debug_script(result.raw_text, result.extracted_data, result.errors)
    if not result.success:
        return _render_error_html("給与明細の解析に失敗しました", " / ".join(result.errors)) + debug_script

    report_html = markdown.markdown(
        _build_report_markdown(result),
        extensions=['tables', 'fenced_code']
    )
    download_path = f"/jobs/{job.job_id}/extraction.json"
    return f"""
    <div class="prose max-w-5xl mx-auto bg-paper p-6 rounded-sm border border-stone/30 space-y-6"
      data-status="success" data-job-id="{html.escape(job.job_id)}">
        {report_html}
        <a href="{download_path}" class="mt-3 inline-block rounded-sm border border-wood px-3 py-2 text-sm font-semibold text-wood hover:bg-paper">
            JSONをダウンロード
        </a>
    </div>
    """ + debug_script


def _resolve_existing_file_or_404(job_id: UUID, kind: str) -> Path:
    try:
        path = resolve_job_file_path(job_id=str(job_id), kind=kind)
    except ValueError:
        raise HTTPException(status_code=404, detail="Job not found")
    if not path.parent.exists():
        raise HTTPException(status_code=404, detail="Job not found")
    if not path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    return path


@app.get("/api/pdf/preview/{file_id}")
async def preview_pdf(file_id: UUID):
    pdf_path = _resolve_existing_file_or_404(file_id, "pdf")
    source_filename = load_metadata(str(file_id)).get("source_filename") or "salary-slip.pdf"
    return FileResponse(
        path=pdf_path,
        media_type="application/pdf",
        filename=source_filename,
        content_disposition_type="inline",
    )


@app.get("/jobs/{job_id}/extraction.json")
async def download_extraction(job_id: UUID):
    path = _resolve_existing_file_or_404(job_id, "extraction")
    return FileResponse(
        path=path,
        media_type="application/json; charset=utf-8",
        filename="extraction.json",
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
