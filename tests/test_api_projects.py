"""
Customer & project API tests — CRUD, ownership, search, export and the
ordered cascade delete.
"""

import io
import os
from datetime import datetime

from openpyxl import load_workbook

from app.models import db
from app.models.activity import Activity
from app.models.document import Document, DocumentTemplate, FieldMapping
from app.models.project import InputData, Project
from app.models.requirement import ImplementationTask, Requirement
from app.models.roles import ProjectRole, RequirementRoleEffort, TaskRoleEffort
from app.models.workflow import Workflow


# ═══════════════════════════════════════════════════════════════
# Customers
# ═══════════════════════════════════════════════════════════════

class TestCustomers:
    def test_create_and_list(self, client, customer):
        assert customer["name"] == "Acme Corp"
        res = client.get("/api/v1/customers")
        assert res.status_code == 200
        assert [c["name"] for c in res.get_json()] == ["Acme Corp"]

    def test_create_requires_name(self, client):
        res = client.post("/api/v1/customers", json={"industry": "Retail"})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"name": "required"}

    def test_update(self, client, customer):
        res = client.put(f"/api/v1/customers/{customer['id']}", json={"website": "acme.example"})
        assert res.status_code == 200
        assert res.get_json()["website"] == "acme.example"

    def test_customer_projects(self, client, customer, project):
        res = client.get(f"/api/v1/customers/{customer['id']}/projects")
        assert [p["id"] for p in res.get_json()] == [project["id"]]

    def test_delete_with_projects_conflicts(self, client, customer, project):
        res = client.delete(f"/api/v1/customers/{customer['id']}")
        assert res.status_code == 409

    def test_delete(self, client, customer):
        assert client.delete(f"/api/v1/customers/{customer['id']}").status_code == 200
        res = client.get(f"/api/v1/customers/{customer['id']}")
        assert res.status_code == 404
        assert res.get_json()["error"] == "Customer not found"


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════

class TestProjects:
    def test_create(self, project, admin_user):
        assert project["name"] == "CRM Migration"
        assert project["stage"] == "discovery"
        assert project["customer"] == "Acme Corp"
        assert project["user_id"] == admin_user.id

    def test_create_missing_fields(self, client):
        res = client.post("/api/v1/projects", json={"description": "no name"})
        assert res.status_code == 400
        body = res.get_json()
        assert body["error"] == "Missing required fields: name, type"
        assert body["details"] == {"name": "required", "type": "required"}

    def test_invalid_stage(self, client, project):
        res = client.put(f"/api/v1/projects/{project['id']}", json={"stage": "someday"})
        assert res.status_code == 400
        assert "stage" in res.get_json()["details"]

    def test_update(self, client, project):
        res = client.put(f"/api/v1/projects/{project['id']}",
                         json={"stage": "design", "user_id": 999})
        assert res.status_code == 200
        body = res.get_json()
        assert body["stage"] == "design"
        assert body["user_id"] == project["user_id"]

    def test_update_bumps_updated_at(self, client, project):
        row = db.session.get(Project, project["id"])
        row.updated_at = datetime(2020, 1, 1)
        db.session.commit()

        body = client.put(f"/api/v1/projects/{project['id']}",
                          json={"description": "Rescoped"}).get_json()
        assert not body["updated_at"].startswith("2020-01-01")

    def test_missing_project(self, client):
        res = client.get("/api/v1/projects/424242")
        assert res.status_code == 404
        assert res.get_json()["error"] == "Project not found"

    def test_other_users_project_forbidden(self, project, user_client):
        res = user_client.get(f"/api/v1/projects/{project['id']}")
        assert res.status_code == 403
        res = user_client.get(f"/api/v1/projects/{project['id']}/requirements")
        assert res.status_code == 403

    def test_list_only_own_projects(self, project, user_client):
        user_client.post("/api/v1/projects", json={"name": "Jane's", "type": "implementation"})
        names = [p["name"] for p in user_client.get("/api/v1/projects").get_json()]
        assert names == ["Jane's"]

    def test_admin_sees_all_projects(self, client, project, user_client):
        user_client.post("/api/v1/projects", json={"name": "Jane's", "type": "implementation"})
        names = {p["name"] for p in client.get("/api/v1/projects").get_json()}
        assert names == {"CRM Migration", "Jane's"}

    def test_search(self, client, project):
        res = client.get("/api/v1/projects/search?query=service desk")
        assert [p["id"] for p in res.get_json()] == [project["id"]]
        assert client.get("/api/v1/projects/search?query=zzz").get_json() == []

    def test_search_requires_query(self, client):
        res = client.get("/api/v1/projects/search")
        assert res.status_code == 400
        assert res.get_json()["error"] == "Search query is required"

    def test_recent_limit(self, client, project):
        client.post("/api/v1/projects", json={"name": "Second", "type": "implementation"})
        res = client.get("/api/v1/projects/recent?limit=1")
        assert res.status_code == 200
        assert len(res.get_json()) == 1

    def test_recent_invalid_limit(self, client):
        assert client.get("/api/v1/projects/recent?limit=0").status_code == 400
        assert client.get("/api/v1/projects/recent?limit=abc").status_code == 400


# ═══════════════════════════════════════════════════════════════
# Export
# ═══════════════════════════════════════════════════════════════

class TestExport:
    def test_json(self, client, project, requirement):
        res = client.get(f"/api/v1/projects/{project['id']}/export")
        assert res.status_code == 200
        body = res.get_json()
        assert body["project"]["name"] == "CRM Migration"
        assert body["requirements"][0]["id"] == "REQ-001"
        assert body["requirements"][0]["text"].startswith("Incoming cases")

    def test_csv(self, client, project, requirement):
        res = client.get(f"/api/v1/projects/{project['id']}/export?format=csv")
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert "attachment" in res.headers["Content-Disposition"]
        lines = res.data.decode("utf-8").splitlines()
        assert lines[0] == "id,title,text,category,priority,source"
        assert lines[1].startswith("REQ-001,Case routing,")

    def test_xlsx(self, client, project, requirement):
        res = client.get(f"/api/v1/projects/{project['id']}/export?format=xlsx")
        assert res.status_code == 200
        wb = load_workbook(io.BytesIO(res.data))
        ws = wb["Requirements"]
        assert ws["A1"].value == "Id"
        assert ws["A2"].value == "REQ-001"
        assert ws["B2"].value == "Case routing"
        assert "Project" in wb.sheetnames

    def test_unsupported_format(self, client, project):
        res = client.get(f"/api/v1/projects/{project['id']}/export?format=pdf")
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════
# Cascade delete
# ═══════════════════════════════════════════════════════════════

class TestProjectDelete:
    def test_delete_removes_children(self, client, project, requirement, task):
        role = client.post(f"/api/v1/projects/{project['id']}/roles", json={
            "name": "Consultant", "role_type": "consultant", "location_type": "onsite",
            "seniority_level": "senior", "cost_rate": "900",
        }).get_json()
        res = client.post(f"/api/v1/tasks/{task['id']}/role-efforts",
                          json={"role_id": role["id"], "estimated_effort": "4"})
        assert res.status_code == 201
        res = client.post(f"/api/v1/requirements/{requirement['id']}/role-efforts",
                          json={"role_id": role["id"], "estimated_effort": "2"})
        assert res.status_code == 201

        wf = client.post(f"/api/v1/projects/{project['id']}/workflows",
                         json={"name": "Intake"}).get_json()
        upload = client.post(
            f"/api/v1/projects/{project['id']}/input-data",
            data={"file": (io.BytesIO(b"Cases are routed by category."), "notes.txt")},
            content_type="multipart/form-data",
        ).get_json()
        upload_path = db.session.get(InputData, upload["id"]).file_path
        assert os.path.isfile(upload_path)

        scoped = client.post("/api/v1/document-templates", json={
            "name": "Brief", "category": "c", "is_global": False, "project_id": project["id"],
        }).get_json()
        client.post(f"/api/v1/document-templates/{scoped['id']}/field-mappings",
                    json={"field_key": "k", "name": "n", "type": "database"})
        shared = client.post("/api/v1/document-templates",
                             json={"name": "Shared", "category": "c"}).get_json()
        doc = client.post("/api/v1/documents", json={
            "name": "Brief", "template_id": scoped["id"], "project_id": project["id"],
        }).get_json()
        assert os.path.isfile(doc["pdf_path"])

        res = client.delete(f"/api/v1/projects/{project['id']}")
        assert res.status_code == 200

        assert client.get(f"/api/v1/projects/{project['id']}").status_code == 404
        assert Requirement.query.filter_by(project_id=project["id"]).count() == 0
        assert db.session.get(ImplementationTask, task["id"]) is None
        assert TaskRoleEffort.query.count() == 0
        assert ProjectRole.query.filter_by(project_id=project["id"]).count() == 0
        assert RequirementRoleEffort.query.count() == 0
        assert db.session.get(Workflow, wf["id"]) is None
        assert db.session.get(InputData, upload["id"]) is None
        assert not os.path.exists(upload_path)
        assert db.session.get(Document, doc["id"]) is None
        assert not os.path.exists(doc["pdf_path"])
        assert db.session.get(DocumentTemplate, scoped["id"]) is None
        assert FieldMapping.query.count() == 0
        assert db.session.get(DocumentTemplate, shared["id"]) is not None
        assert Activity.query.filter_by(project_id=project["id"]).count() == 0
        # the deletion itself is logged without a project
        assert Activity.query.filter_by(type="deleted_project").count() == 1
