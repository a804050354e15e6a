import re
from uuid import uuid4

from fastapi.testclient import TestClient

import main as app_main
from salary_extractors import job_store, text_extractor

from tests.test_salary_fields import DETAILED_SLIP_TEXT


client = TestClient(app_main.app)

PDF_BYTES = b"%PDF-1.4\n%salary\n"


def _use_backend_text(monkeypatch, text):
    monkeypatch.setattr(text_extractor, "TEXT_BACKENDS", [("fake", lambda pdf_bytes: text)])


def _upload(name="kyuyo.pdf", data=PDF_BYTES, content_type="application/pdf"):
    return client.post("/api/pdf/upload", files={"file": (name, data, content_type)})


def _extract_download_path(html: str) -> str:
    m = re.search(r"/jobs/[0-9a-f\-]+/extraction\.json", html)
    assert m, "download path for extraction.json was not found"
    return m.group(0)


def test_index_page_renders():
    resp = client.get("/")
    assert resp.status_code == 200
    assert "/salary/upload" in resp.text
    assert "給与明細PDF読み取り" in resp.text


def test_upload_extract_preview_and_download(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    _use_backend_text(monkeypatch, DETAILED_SLIP_TEXT)

    resp = _upload()
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    file_id = body["fileId"]
    assert body["previewUrl"] == f"/api/pdf/preview/{file_id}"

    preview = client.get(body["previewUrl"])
    assert preview.status_code == 200
    assert preview.content == PDF_BYTES
    assert preview.headers["content-type"] == "application/pdf"
    assert preview.headers["content-disposition"].startswith("inline")

    extracted = client.post("/api/pdf/extract", json={"fileId": file_id})
    assert extracted.status_code == 200
    payload = extracted.json()
    assert payload["success"] is True
    assert payload["confidence"] == 1.0
    assert payload["extractedData"]["netPayment"] == 429677
    assert payload["salarySlip"]["earnings"]["baseSalary"] == 326767
    assert payload["backend"] == "fake"

    dl = client.get(f"/jobs/{file_id}/extraction.json")
    assert dl.status_code == 200
    assert dl.json()["extractedData"]["totalPayment"] == 571967


def test_upload_rejects_non_pdf_type():
    resp = _upload(name="memo.txt", data=b"hello", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_upload_rejects_oversized_file(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    monkeypatch.setattr(app_main, "MAX_UPLOAD_BYTES", 8)
    resp = _upload()
    assert resp.status_code == 400
    assert "limit" in resp.json()["error"]
    assert list(tmp_path.iterdir()) == []


def test_upload_rejects_bytes_without_pdf_header(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    resp = _upload(data=b"not really a pdf")
    assert resp.status_code == 400


def test_extract_requires_file_id():
    resp = client.post("/api/pdf/extract", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "File ID is required"


def test_extract_unknown_or_invalid_file_id_returns_404(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    assert client.post("/api/pdf/extract", json={"fileId": str(uuid4())}).status_code == 404
    assert client.post("/api/pdf/extract", json={"fileId": "../etc/passwd"}).status_code == 404


def test_extract_failure_returns_422(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    monkeypatch.setattr(app_main, "PLACEHOLDER_FALLBACK", False)
    _use_backend_text(monkeypatch, "")

    file_id = _upload().json()["fileId"]
    resp = client.post("/api/pdf/extract", json={"fileId": file_id})
    assert resp.status_code == 422
    payload = resp.json()
    assert payload["success"] is False
    assert payload["errors"][-1] == "PDFデータの抽出に失敗しました"
    assert "extractedData" not in payload


def test_extract_placeholder_fallback(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    monkeypatch.setattr(app_main, "PLACEHOLDER_FALLBACK", True)
    _use_backend_text(monkeypatch, "")

    file_id = _upload().json()["fileId"]
    resp = client.post("/api/pdf/extract", json={"fileId": file_id})
    assert resp.status_code == 200
    assert resp.json()["placeholder"] is True


def test_parse_route_returns_text(monkeypatch):
    _use_backend_text(monkeypatch, "基本給：300,000")
    resp = client.post("/api/pdf/parse", content=PDF_BYTES)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "text": "基本給：300,000", "backend": "fake"}


def test_parse_route_errors(monkeypatch):
    assert client.post("/api/pdf/parse", content=b"plain").status_code == 400

    _use_backend_text(monkeypatch, "")
    resp = client.post("/api/pdf/parse", content=PDF_BYTES)
    assert resp.status_code == 500
    assert resp.json()["errors"][0].startswith("fake:")


def test_salary_upload_renders_report_and_download(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    _use_backend_text(monkeypatch, DETAILED_SLIP_TEXT)

    resp = client.post(
        "/salary/upload",
        files={"file": ("kyuyo.pdf", PDF_BYTES, "application/pdf")},
    )
    assert resp.status_code == 200
    assert 'data-status="success"' in resp.text
    assert "429,677円" in resp.text
    assert "571,967円" in resp.text
    assert "<table>" in resp.text

    dl = client.get(_extract_download_path(resp.text))
    assert dl.status_code == 200
    assert dl.json()["salarySlip"]["netPay"] == 429677


def test_salary_upload_reports_errors_as_html(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    resp = client.post(
        "/salary/upload",
        files={"file": ("memo.txt", b"hello", "text/plain")},
    )
    assert 'data-status="error"' in resp.text

    resp = client.post(
        "/salary/upload",
        files={"file": ("kyuyo.pdf", b"hello", "application/pdf")},
    )
    assert 'data-status="error"' in resp.text
    assert list(tmp_path.iterdir()) == []


def test_fixed_download_returns_404_when_missing(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    missing_job = str(uuid4())
    assert client.get(f"/jobs/{missing_job}/extraction.json").status_code == 404
    assert client.get(f"/api/pdf/preview/{missing_job}").status_code == 404


def test_fixed_download_rejects_invalid_job_id_format():
    assert client.get("/jobs/not-a-uuid/extraction.json").status_code == 422


def test_salary_upload_escapes_pdf_text_in_report(tmp_path, monkeypatch):
    monkeypatch.setattr(job_store, "JOBS_ROOT", tmp_path)
    _use_backend_text(monkeypatch, "<b>悪意</b>株式会社\n基本給：250,000\n差引支給額：200,000")

    resp = client.post(
        "/salary/upload",
        files={"file": ("kyuyo.pdf", PDF_BYTES, "application/pdf")},
    )
    assert resp.status_code == 200
    assert 'data-status="success"' in resp.text
    assert "<b>悪意</b>" not in resp.text
    assert "&lt;b&gt;悪意&lt;/b&gt;株式会社" in resp.text
