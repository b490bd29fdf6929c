from app.models import db, iso, utcnow

EMAIL_STATUSES = ("queued", "sent", "failed")
EMAIL_CATEGORIES = ("invite", "password_reset")


class EmailLog(db.Model):
    """One row per message handed to ``EmailService``, delivered or not."""

    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(30), nullable=False, index=True)
    template_name = db.Column(db.String(100), nullable=False)
    recipient_email = db.Column(db.String(255), nullable=False, index=True)
    recipient_name = db.Column(db.String(150))
    subject = db.Column(db.String(500), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="queued")
    error_message = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    sent_at = db.Column(db.DateTime)

    def to_dict(self):
        data = {c: getattr(self, c) for c in (
            "id", "category", "template_name", "recipient_email", "recipient_name",
            "subject", "status", "error_message",
        )}
        data["created_at"] = iso(self.created_at)
        data["sent_at"] = iso(self.sent_at)
        return data
