"""Customer service — CRUD for the organisations projects are delivered for."""

import logging

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.activity import write_activity
from app.models.customer import Customer
from app.models.project import Project

logger = logging.getLogger(__name__)

_FIELDS = ("name", "description", "industry", "background_info", "website",
           "contact_email", "contact_phone")


def list_customers() -> list[Customer]:
    return Customer.query.order_by(Customer.name).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer", customer_id)
    return customer


def create_customer(data: dict) -> Customer:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Customer name is required", details={"name": "required"})
    customer = Customer(name=name, **{f: data.get(f) for f in _FIELDS if f != "name"})
    db.session.add(customer)
    db.session.flush()
    write_activity(
        type="created_customer",
        description=f'Created customer "{customer.name}"',
        related_entity_id=customer.id,
    )
    db.session.commit()
    return customer


def update_customer(customer_id: int, data: dict) -> Customer:
    customer = get_customer(customer_id)
    if "name" in data and not (data["name"] or "").strip():
        raise ValidationError("Customer name cannot be empty", details={"name": "required"})
    for field in _FIELDS:
        if field in data:
            setattr(customer, field, data[field])
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    customer = get_customer(customer_id)
    if customer.projects.count():
        raise ConflictError("Customer has projects; reassign or delete them first")
    db.session.delete(customer)
    db.session.commit()
    logger.info("Customer %s deleted", customer_id)


def customer_projects(customer_id: int) -> list[Project]:
    customer = get_customer(customer_id)
    return customer.projects.order_by(Project.updated_at.desc()).all()
