"""
Input data tests — upload & text extraction, requirement extraction,
expert review and PDF summaries (LLM calls go to the local stub).
"""

import io
import os

import docx
from reportlab.pdfgen import canvas

from app.models import db
from app.models.project import InputData

SOURCE_TEXT = (
    "Sales reps log in with corporate accounts. Orders above 10k need a manager "
    "approval before they are released to the warehouse."
)


def _upload(client, project, filename, payload, content_type=None):
    data = {"file": (io.BytesIO(payload), filename)}
    if content_type:
        data["content_type"] = content_type
    return client.post(
        f"/api/v1/projects/{project['id']}/input-data",
        data=data,
        content_type="multipart/form-data",
    )


def _pdf_bytes(text):
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    c.drawString(72, 720, text)
    c.showPage()
    c.save()
    return buf.getvalue()


def _docx_bytes(*paragraphs):
    document = docx.Document()
    for p in paragraphs:
        document.add_paragraph(p)
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


class TestUpload:
    def test_text_upload(self, client, project):
        res = _upload(client, project, "notes.txt", SOURCE_TEXT.encode(), "meeting_notes")
        assert res.status_code == 201
        body = res.get_json()
        assert body["type"] == "text"
        assert body["status"] == "processed"
        assert body["processed"] is True
        assert body["content_type"] == "meeting_notes"
        assert body["file_type"] == "txt"
        assert "extracted_text" not in body["metadata"]
        assert body["metadata"]["text_length"] == len(SOURCE_TEXT)

        item = db.session.get(InputData, body["id"])
        assert os.path.isfile(item.file_path)

        detail = client.get(f"/api/v1/input-data/{body['id']}?include_text=1").get_json()
        assert detail["metadata"]["extracted_text"] == SOURCE_TEXT

    def test_docx_upload(self, client, project):
        res = _upload(client, project, "brief.docx", _docx_bytes("First point", "", "Second"))
        body = res.get_json()
        assert body["type"] == "document"
        assert body["metadata"]["paragraph_count"] == 2

    def test_pdf_upload(self, client, project):
        res = _upload(client, project, "process.pdf", _pdf_bytes("Order approval process"))
        body = res.get_json()
        assert body["type"] == "pdf"
        assert body["status"] == "processed"
        assert body["metadata"]["page_count"] == 1

    def test_broken_pdf_marks_error(self, client, project):
        res = _upload(client, project, "broken.pdf", b"this is not a pdf")
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "error"
        assert body["processing_error"].startswith("Text extraction failed")

    def test_unsupported_extension(self, client, project):
        res = _upload(client, project, "tool.exe", b"MZ")
        assert res.status_code == 400
        assert res.get_json()["error"].startswith("Unsupported file type: .exe")

    def test_missing_file(self, client, project):
        res = client.post(f"/api/v1/projects/{project['id']}/input-data",
                          data={"content_type": "general"},
                          content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["error"] == "No file uploaded"

    def test_list_and_delete(self, client, project):
        item = _upload(client, project, "notes.txt", SOURCE_TEXT.encode()).get_json()
        path = db.session.get(InputData, item["id"]).file_path
        listed = client.get(f"/api/v1/projects/{project['id']}/input-data").get_json()
        assert [i["id"] for i in listed] == [item["id"]]

        assert client.delete(f"/api/v1/input-data/{item['id']}").status_code == 200
        assert not os.path.exists(path)
        assert client.get(f"/api/v1/input-data/{item['id']}").status_code == 404


class TestProcessing:
    def test_generate_requirements(self, client, project):
        item = _upload(client, project, "notes.txt", SOURCE_TEXT.encode()).get_json()
        res = client.post(f"/api/v1/input-data/{item['id']}/process")
        assert res.status_code == 201
        body = res.get_json()
        assert body["message"] == "Generated 3 requirements"
        assert body["input_data"]["status"] == "requirements_generated"
        reqs = body["requirements"]
        assert [r["code_id"] for r in reqs] == ["REQ-001", "REQ-002", "REQ-003"]
        assert {r["input_data_id"] for r in reqs} == {item["id"]}
        assert reqs[0]["category"] == "security"

        # a second run is refused: the item is no longer in "processed" state
        again = client.post(f"/api/v1/input-data/{item['id']}/process")
        assert again.status_code == 400

    def test_existing_titles_are_skipped(self, client, project, make_requirement):
        make_requirement("User authentication")
        item = _upload(client, project, "notes.txt", SOURCE_TEXT.encode()).get_json()
        body = client.post(f"/api/v1/input-data/{item['id']}/process").get_json()
        assert [r["title"] for r in body["requirements"]] == [
            "Customer data export", "Order approval workflow"]

    def test_expert_review(self, client, project):
        item = _upload(client, project, "notes.txt", SOURCE_TEXT.encode()).get_json()
        reqs = client.post(f"/api/v1/input-data/{item['id']}/process").get_json()["requirements"]

        res = client.post(f"/api/v1/input-data/{item['id']}/expert-review")
        assert res.status_code == 200
        review = res.get_json()["review"]
        assert review["gaps"] == ["No requirement covers audit reporting"]
        assert {rv["requirement_id"] for rv in review["requirement_reviews"]} == {
            r["id"] for r in reqs}

        stored = client.get(f"/api/v1/requirements/{reqs[0]['id']}").get_json()
        assert stored["expert_review"]["assessment"] == "needs_detail"

    def test_expert_review_needs_processed_input(self, client, project):
        item = _upload(client, project, "broken.pdf", b"garbage").get_json()
        res = client.post(f"/api/v1/input-data/{item['id']}/expert-review")
        assert res.status_code == 400

    def test_pdf_summary(self, client, project):
        item = _upload(client, project, "process.pdf", _pdf_bytes("Order approval")).get_json()
        res = client.post(f"/api/v1/input-data/{item['id']}/pdf-summary")
        assert res.status_code == 200
        assert res.get_json()["summary"].startswith("## Summary")
        detail = client.get(f"/api/v1/input-data/{item['id']}").get_json()
        assert detail["status"] == "summary_generated"

    def test_pdf_summary_rejects_other_types(self, client, project):
        item = _upload(client, project, "notes.txt", SOURCE_TEXT.encode()).get_json()
        res = client.post(f"/api/v1/input-data/{item['id']}/pdf-summary")
        assert res.status_code == 400
        assert res.get_json()["error"] == "Only PDF files can be summarized"

    def test_other_user_forbidden(self, client, project, user_client):
        item = _upload(client, project, "notes.txt", SOURCE_TEXT.encode()).get_json()
        assert user_client.post(f"/api/v1/input-data/{item['id']}/process").status_code == 403
