"""
Document generation tests — templates, field mappings, schema listing,
PDF rendering and field-data resolution.
"""

import io
import os
from datetime import datetime

import pytest
from pypdf import PdfReader

from app.models import db
from app.models.document import Document
from app.models.requirement import Requirement
from app.services.document_service import get_path, substitute_variables
from app.services.pdf_service import render_pdf

LAYOUT = {
    "schemas": [{
        "title": {"type": "text", "position": {"x": 20, "y": 20}, "width": 170,
                  "height": 12, "fontSize": 18},
        "summary": {"type": "text", "position": {"x": 20, "y": 40}, "width": 170,
                    "height": 200},
    }],
}


@pytest.fixture()
def template(client):
    res = client.post("/api/v1/document-templates", json={
        "name": "Requirement brief", "category": "requirements", "template": LAYOUT,
    })
    assert res.status_code == 201
    return res.get_json()


def _mapping(client, template, **fields):
    res = client.post(f"/api/v1/document-templates/{template['id']}/field-mappings", json=fields)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


class TestHelpers:
    def test_get_path(self):
        data = {"a": {"b": [{"c": 1}, {"c": 2}]}}
        assert get_path(data, "a.b.1.c") == 2
        assert get_path(data, "a.x.c") is None
        assert get_path(data, "a.b.5") is None
        assert get_path(data, "") == data

    def test_substitute_variables(self):
        ctx = {"project": {"name": "CRM"}, "requirements": [{"title": "Login"}]}
        text = substitute_variables("Brief for {{project.name}}: {{ requirements.0.title }} "
                                    "{{project.missing}}!", ctx)
        assert text == "Brief for CRM: Login !"

    def test_render_pdf_with_layout(self):
        pdf = render_pdf(LAYOUT, {"title": "Hello", "summary": "Line one\nLine two"}, title="T")
        assert pdf.startswith(b"%PDF")
        assert len(PdfReader(io.BytesIO(pdf)).pages) == 1

    def test_render_pdf_listing_fallback(self):
        pdf = render_pdf({}, {"key": "value " * 400})
        assert pdf.startswith(b"%PDF")


class TestTemplates:
    def test_create_defaults_to_global(self, client, template):
        assert template["is_global"] is True
        assert template["template"] == LAYOUT
        listed = client.get("/api/v1/document-templates/global").get_json()
        assert [t["id"] for t in listed] == [template["id"]]

    def test_create_requires_name_and_category(self, client):
        res = client.post("/api/v1/document-templates", json={"name": "No category"})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Name and category are required"

    def test_layout_must_be_object(self, client):
        res = client.post("/api/v1/document-templates",
                          json={"name": "X", "category": "y", "template": "nope"})
        assert res.status_code == 400

    def test_project_templates_include_global(self, client, project, template):
        scoped = client.post("/api/v1/document-templates", json={
            "name": "Scoped", "category": "c", "is_global": False, "project_id": project["id"],
        }).get_json()
        other = client.post("/api/v1/projects", json={"name": "Other", "type": "x"}).get_json()

        ids = {t["id"] for t in client.get(
            f"/api/v1/document-templates/project/{project['id']}").get_json()}
        assert ids == {template["id"], scoped["id"]}
        ids = {t["id"] for t in client.get(
            f"/api/v1/document-templates/project/{other['id']}").get_json()}
        assert ids == {template["id"]}

    def test_update_and_delete(self, client, template):
        _mapping(client, template, field_key="title", name="Title", type="database",
                 data_source="projects", column_field="name")
        res = client.put(f"/api/v1/document-templates/{template['id']}",
                         json={"description": "One-pager"})
        assert res.get_json()["description"] == "One-pager"

        assert client.delete(f"/api/v1/document-templates/{template['id']}").status_code == 200
        assert client.get(f"/api/v1/document-templates/{template['id']}").status_code == 404


@pytest.fixture()
def scoped_template(client, project):
    res = client.post("/api/v1/document-templates", json={
        "name": "Scoped", "category": "c", "is_global": False, "project_id": project["id"],
    })
    assert res.status_code == 201
    return res.get_json()


class TestTemplateAccess:
    def test_project_template_hidden_from_outsiders(self, user_client, scoped_template):
        tid = scoped_template["id"]
        assert user_client.get(f"/api/v1/document-templates/{tid}").status_code == 403
        assert user_client.get(
            f"/api/v1/document-templates/{tid}/field-mappings").status_code == 403
        assert user_client.put(f"/api/v1/document-templates/{tid}",
                               json={"name": "Mine now"}).status_code == 403
        res = user_client.post(f"/api/v1/document-templates/{tid}/field-mappings",
                               json={"field_key": "k", "name": "n", "type": "database"})
        assert res.status_code == 403
        assert user_client.delete(f"/api/v1/document-templates/{tid}").status_code == 403

    def test_mapping_of_foreign_template(self, client, user_client, scoped_template):
        m = _mapping(client, scoped_template, field_key="k", name="n", type="database")
        assert user_client.put(f"/api/v1/document-templates/field-mappings/{m['id']}",
                               json={"name": "x"}).status_code == 403
        assert user_client.delete(
            f"/api/v1/document-templates/field-mappings/{m['id']}").status_code == 403

    def test_cannot_move_template_into_foreign_project(self, user_client, project):
        own = user_client.post("/api/v1/document-templates",
                               json={"name": "Own", "category": "c"}).get_json()
        res = user_client.put(f"/api/v1/document-templates/{own['id']}",
                              json={"is_global": False, "project_id": project["id"]})
        assert res.status_code == 403
        res = user_client.post("/api/v1/document-templates", json={
            "name": "Sneaky", "category": "c", "is_global": False, "project_id": project["id"],
        })
        assert res.status_code == 403

    def test_global_template_changed_by_creator_only(self, user_client, template):
        assert user_client.get(f"/api/v1/document-templates/{template['id']}").status_code == 200
        res = user_client.put(f"/api/v1/document-templates/{template['id']}",
                              json={"name": "Renamed"})
        assert res.status_code == 403
        assert res.get_json()["error"] == "Only the creator or an admin can change a global template"
        assert user_client.delete(
            f"/api/v1/document-templates/{template['id']}").status_code == 403

        own = user_client.post("/api/v1/document-templates",
                               json={"name": "Own", "category": "c"}).get_json()
        res = user_client.put(f"/api/v1/document-templates/{own['id']}", json={"name": "Renamed"})
        assert res.status_code == 200
        assert res.get_json()["name"] == "Renamed"

    def test_project_id_must_be_numeric(self, client):
        res = client.post("/api/v1/document-templates", json={
            "name": "X", "category": "c", "is_global": False, "project_id": "abc",
        })
        assert res.status_code == 400
        assert "project_id" in res.get_json()["details"]


class TestFieldMappings:
    def test_crud(self, client, template):
        m = _mapping(client, template, field_key="title", name="Title", type="database",
                     data_source="projects", column_field="name", record_id="7")
        assert m["record_id"] == 7

        detail = client.get(f"/api/v1/document-templates/{template['id']}").get_json()
        assert [f["id"] for f in detail["field_mappings"]] == [m["id"]]

        res = client.put(f"/api/v1/document-templates/field-mappings/{m['id']}",
                         json={"record_id": "", "selection_mode": "all"})
        assert res.get_json()["record_id"] is None
        assert res.get_json()["selection_mode"] == "all"

        assert client.delete(
            f"/api/v1/document-templates/field-mappings/{m['id']}").status_code == 200
        assert client.get(
            f"/api/v1/document-templates/{template['id']}/field-mappings").get_json() == []

    def test_required_fields(self, client, template):
        res = client.post(f"/api/v1/document-templates/{template['id']}/field-mappings",
                          json={"name": "No key"})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Field key, name, and type are required"

    def test_invalid_choices(self, client, template):
        res = client.post(f"/api/v1/document-templates/{template['id']}/field-mappings", json={
            "field_key": "k", "name": "n", "type": "magic", "data_source": "planets",
        })
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"type", "data_source"}

    def test_delete_all(self, client, template):
        _mapping(client, template, field_key="a", name="A", type="database")
        _mapping(client, template, field_key="b", name="B", type="database")
        res = client.delete(f"/api/v1/document-templates/{template['id']}/field-mappings")
        assert res.status_code == 200
        assert client.get(
            f"/api/v1/document-templates/{template['id']}/field-mappings").get_json() == []


class TestSchema:
    def test_database_schema(self, client):
        res = client.get("/api/v1/database-schema")
        assert res.status_code == 200
        tables = res.get_json()["tables"]
        assert "acceptance_criteria" in tables
        user_columns = {c["name"] for c in tables["users"]["columns"]}
        assert "email" in user_columns
        assert "password" not in user_columns
        assert "reset_token" not in user_columns
        project_columns = {c["name"]: c["type"] for c in tables["projects"]["columns"]}
        assert project_columns["id"] == "number"
        assert project_columns["created_at"] == "datetime"


class TestDocuments:
    def test_create_renders_pdf(self, client, project, template):
        res = client.post("/api/v1/documents", json={
            "name": "Brief", "template_id": template["id"], "project_id": project["id"],
            "data": {"title": "CRM Migration", "summary": "All the things"},
        })
        assert res.status_code == 201
        doc = res.get_json()
        assert doc["status"] == "draft"
        assert doc["version"] == 1
        assert os.path.isfile(doc["pdf_path"])

        pdf = client.get(f"/api/v1/documents/{doc['id']}/pdf")
        assert pdf.status_code == 200
        assert pdf.mimetype == "application/pdf"
        assert pdf.data.startswith(b"%PDF")
        assert "attachment" not in pdf.headers.get("Content-Disposition", "")

        download = client.get(f"/api/v1/documents/{doc['id']}/pdf?download=1")
        assert 'filename=Brief.pdf' in download.headers["Content-Disposition"]

    def test_create_validation(self, client, project):
        res = client.post("/api/v1/documents", json={"name": "Brief"})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Name, template ID, and project ID are required"

    def test_update_rerenders(self, client, project, template):
        doc = client.post("/api/v1/documents", json={
            "name": "Brief", "template_id": template["id"], "project_id": project["id"],
        }).get_json()

        res = client.put(f"/api/v1/documents/{doc['id']}", json={"status": "final"})
        assert res.get_json()["version"] == 1
        assert res.get_json()["pdf_path"] == doc["pdf_path"]

        res = client.put(f"/api/v1/documents/{doc['id']}", json={
            "template_id": template["id"], "data": {"title": "v2"}, "project_id": 999,
        })
        body = res.get_json()
        assert body["version"] == 2
        assert body["project_id"] == project["id"]
        assert body["pdf_path"] != doc["pdf_path"]
        assert not os.path.exists(doc["pdf_path"])

    def test_list_and_delete(self, client, project, template):
        doc = client.post("/api/v1/documents", json={
            "name": "Brief", "template_id": template["id"], "project_id": project["id"],
        }).get_json()
        listed = client.get(f"/api/v1/documents/project/{project['id']}").get_json()
        assert [d["id"] for d in listed] == [doc["id"]]

        assert client.delete(f"/api/v1/documents/{doc['id']}").status_code == 200
        assert not os.path.exists(doc["pdf_path"])
        assert client.get(f"/api/v1/documents/{doc['id']}").status_code == 404

    def test_other_user_forbidden(self, client, project, template, user_client):
        doc = client.post("/api/v1/documents", json={
            "name": "Brief", "template_id": template["id"], "project_id": project["id"],
        }).get_json()
        assert user_client.get(f"/api/v1/documents/{doc['id']}/pdf").status_code == 403

    def test_non_numeric_ids_rejected(self, client, template):
        res = client.post("/api/v1/documents",
                          json={"name": "d", "template_id": template["id"], "project_id": "abc"})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"project_id": "must be a positive integer"}

    def test_template_from_other_project_rejected(self, client, project, scoped_template):
        other = client.post("/api/v1/projects", json={"name": "Other", "type": "x"}).get_json()
        res = client.post("/api/v1/documents", json={
            "name": "d", "template_id": scoped_template["id"], "project_id": other["id"],
        })
        assert res.status_code == 400
        assert res.get_json()["error"] == "Template does not belong to this project"

        doc = client.post("/api/v1/documents", json={
            "name": "d", "template_id": scoped_template["id"], "project_id": project["id"],
        })
        assert doc.status_code == 201
        other_tpl = client.post("/api/v1/document-templates", json={
            "name": "Other tpl", "category": "c", "is_global": False, "project_id": other["id"],
        }).get_json()
        res = client.put(f"/api/v1/documents/{doc.get_json()['id']}",
                         json={"template_id": other_tpl["id"]})
        assert res.status_code == 400

    def test_updated_at_bumped(self, client, project, template):
        doc = client.post("/api/v1/documents", json={
            "name": "Brief", "template_id": template["id"], "project_id": project["id"],
        }).get_json()
        row = db.session.get(Document, doc["id"])
        row.updated_at = datetime(2020, 1, 1)
        db.session.commit()

        body = client.put(f"/api/v1/documents/{doc['id']}", json={"status": "final"}).get_json()
        assert not body["updated_at"].startswith("2020-01-01")


class TestGenerateData:
    def test_database_fields(self, client, project, customer, template, make_requirement):
        make_requirement("Login", category="security", description="SSO login")
        make_requirement("Export", category="functional")
        _mapping(client, template, field_key="title", name="Title", type="database",
                 data_source="projects", column_field="name")
        _mapping(client, template, field_key="customer", name="Customer", type="database",
                 data_source="customers", column_field="industry")
        _mapping(client, template, field_key="count", name="Count", type="database",
                 data_source="requirements", selection_mode="single")
        _mapping(client, template, field_key="titles", name="Titles", type="database",
                 data_source="requirements", selection_mode="all", column_field="title")
        _mapping(client, template, field_key="security", name="Security", type="database",
                 data_source="requirements", selection_mode="custom", selection_filter="Security")
        _mapping(client, template, field_key="tasks", name="Tasks", type="database",
                 data_source="tasks", default_value="No tasks yet")

        res = client.post(f"/api/v1/documents/generate-data/{template['id']}",
                          json={"project_id": project["id"]})
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["title"] == "CRM Migration"
        assert data["customer"] == "Retail"
        assert data["count"] == "2 requirements"
        assert data["titles"] == "1. Login\n2. Export"
        assert data["security"] == "1. REQ-001: Login\n   SSO login"
        assert data["tasks"] == "No tasks yet"

    def test_task_filters(self, client, project, template, task):
        _mapping(client, template, field_key="target", name="Target", type="database",
                 data_source="tasks", selection_mode="custom", selection_filter="system:target")
        _mapping(client, template, field_key="bad", name="Bad", type="database",
                 data_source="tasks", selection_mode="custom", selection_filter="owner:me")
        data = client.post(f"/api/v1/documents/generate-data/{template['id']}",
                           json={"project_id": project["id"]}).get_json()["data"]
        assert data["target"].startswith("1. Configure queues (General)")
        assert data["bad"] == ""

    def test_ai_field(self, client, project, template):
        _mapping(client, template, field_key="summary", name="Summary", type="ai-generated",
                 prompt="Write an overview of {{project.name}}")
        data = client.post(f"/api/v1/documents/generate-data/{template['id']}",
                           json={"project_id": project["id"]}).get_json()["data"]
        assert data["summary"] == "Generated content for: Write an overview of CRM Migration"

    def test_project_id_required(self, client, template):
        res = client.post(f"/api/v1/documents/generate-data/{template['id']}", json={})
        assert res.status_code == 400
        assert res.get_json()["error"] == "Project ID is required"

    def test_project_id_must_be_numeric(self, client, template):
        res = client.post(f"/api/v1/documents/generate-data/{template['id']}",
                          json={"project_id": "abc"})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"project_id": "must be a positive integer"}

    def test_template_from_other_project_rejected(self, client, scoped_template):
        other = client.post("/api/v1/projects", json={"name": "Other", "type": "x"}).get_json()
        res = client.post(f"/api/v1/documents/generate-data/{scoped_template['id']}",
                          json={"project_id": other["id"]})
        assert res.status_code == 400

    def test_plain_string_criteria_are_skipped(self, client, project, template, requirement):
        row = db.session.get(Requirement, requirement["id"])
        row.acceptance_criteria = ["User can log in", {"description": "Logs out", "gherkin": None}]
        db.session.commit()
        _mapping(client, template, field_key="ac", name="AC", type="database",
                 data_source="acceptance_criteria", selection_mode="all")
        res = client.post(f"/api/v1/documents/generate-data/{template['id']}",
                          json={"project_id": project["id"]})
        assert res.status_code == 200
