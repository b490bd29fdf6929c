"""Customer model — the organisation a project is delivered for."""

from app.models import db, iso, utcnow


class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    industry = db.Column(db.String(100))
    background_info = db.Column(db.Text)
    website = db.Column(db.String(300))
    contact_email = db.Column(db.String(200))
    contact_phone = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    projects = db.relationship("Project", back_populates="customer_ref", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "industry": self.industry,
            "background_info": self.background_info,
            "website": self.website,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
