"""
Admin API tests — user management, application settings and audit listings.
"""


class TestUserManagement:
    def test_list_users(self, client, regular_user):
        res = client.get("/api/v1/admin/users")
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 2
        assert [u["username"] for u in body["items"]] == ["admin", "jane"]

    def test_non_admin_forbidden(self, user_client):
        res = user_client.get("/api/v1/admin/users")
        assert res.status_code == 403
        assert res.get_json()["error"] == "Insufficient permissions"

    def test_get_missing_user(self, client):
        res = client.get("/api/v1/admin/users/999")
        assert res.status_code == 404
        assert res.get_json()["error"] == "User not found"

    def test_promote_user(self, client, regular_user):
        res = client.put(f"/api/v1/admin/users/{regular_user.id}", json={"role": "admin"})
        assert res.status_code == 200
        assert res.get_json()["role"] == "admin"

    def test_invalid_role(self, client, regular_user):
        res = client.put(f"/api/v1/admin/users/{regular_user.id}", json={"role": "superuser"})
        assert res.status_code == 400

    def test_cannot_delete_self(self, client, admin_user):
        res = client.delete(f"/api/v1/admin/users/{admin_user.id}")
        assert res.status_code == 400

    def test_delete_user_with_projects_conflicts(self, client, user_client, regular_user):
        user_client.post("/api/v1/projects", json={"name": "Mine", "type": "implementation"})
        res = client.delete(f"/api/v1/admin/users/{regular_user.id}")
        assert res.status_code == 409

    def test_delete_user(self, client, regular_user):
        res = client.delete(f"/api/v1/admin/users/{regular_user.id}")
        assert res.status_code == 200
        assert client.get(f"/api/v1/admin/users/{regular_user.id}").status_code == 404


class TestSettings:
    def test_defaults(self, user_client):
        res = user_client.get("/api/v1/settings")
        assert res.status_code == 200
        body = res.get_json()
        assert body["version"] == 0
        assert body["settings"]["contradiction"]["similarity_threshold"] == 0.6
        assert body["settings"]["contradiction"]["max_pairs"] == 30

    def test_update_merges_and_bumps_version(self, client):
        res = client.put("/api/v1/settings", json={
            "settings": {"contradiction": {"nli_threshold": 0.7}},
            "description": "stricter NLI",
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["version"] == 1
        assert body["description"] == "stricter NLI"
        assert body["settings"]["contradiction"]["nli_threshold"] == 0.7
        # untouched keys keep their defaults
        assert body["settings"]["contradiction"]["similarity_threshold"] == 0.6

        res = client.put("/api/v1/settings", json={"settings": {"contradiction": {"max_pairs": 10}}})
        assert res.get_json()["version"] == 2
        assert res.get_json()["settings"]["contradiction"]["nli_threshold"] == 0.7

    def test_out_of_range_rejected(self, client):
        res = client.put("/api/v1/settings", json={
            "settings": {"contradiction": {"similarity_threshold": 1.5, "max_pairs": 0}},
        })
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert "contradiction.similarity_threshold" in details
        assert "contradiction.max_pairs" in details

    def test_unknown_key_rejected(self, client):
        res = client.put("/api/v1/settings", json={"settings": {"contradiction": {"foo": 1}}})
        assert res.status_code == 400
        assert res.get_json()["details"] == {"contradiction.foo": "Unknown setting"}

    def test_update_requires_admin(self, user_client):
        res = user_client.put("/api/v1/settings", json={"settings": {"ai": {"tasks_model": "x"}}})
        assert res.status_code == 403

    def test_reset(self, client):
        client.put("/api/v1/settings", json={"settings": {"contradiction": {"max_pairs": 5}}})
        res = client.post("/api/v1/settings/reset")
        assert res.status_code == 200
        assert res.get_json()["settings"]["contradiction"]["max_pairs"] == 30
        assert res.get_json()["version"] == 2


class TestAudit:
    def test_email_log_lists_invites(self, client):
        client.post("/api/v1/invites", json={"email": "one@example.com"})
        client.post("/api/v1/invites", json={"email": "two@example.com"})
        res = client.get("/api/v1/admin/email-log?category=invite")
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 2
        assert {e["recipient_email"] for e in body["items"]} == {"one@example.com", "two@example.com"}
        assert all(e["status"] == "sent" for e in body["items"])

    def test_email_log_rejects_unknown_status(self, client):
        res = client.get("/api/v1/admin/email-log?status=bounced")
        assert res.status_code == 400
        assert "status" in res.get_json()["details"]

    def test_ai_usage_totals(self, client, requirement):
        client.post(f"/api/v1/requirements/{requirement['id']}/acceptance-criteria")
        res = client.get(f"/api/v1/admin/ai-usage?project_id={requirement['project_id']}")
        assert res.status_code == 200
        body = res.get_json()
        assert [i["purpose"] for i in body["items"]] == ["acceptance_criteria"]
        assert body["items"][0]["username"] == "admin"
        assert body["totals"]["local"]["calls"] == 1
        assert body["totals"]["local"]["cost_usd"] == 0.0

    def test_audit_requires_admin(self, user_client):
        assert user_client.get("/api/v1/admin/email-log").status_code == 403
        assert user_client.get("/api/v1/admin/ai-usage").status_code == 403
