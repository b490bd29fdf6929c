"""
Customer Blueprint.

Endpoints:
  GET/POST       /api/v1/customers
  GET/PUT/DELETE /api/v1/customers/<id>
  GET            /api/v1/customers/<id>/projects
"""

from flask import Blueprint, jsonify, request

from app.services import customer_service

customer_bp = Blueprint("customer", __name__, url_prefix="/api/v1/customers")


@customer_bp.route("", methods=["GET"])
def list_customers():
    return jsonify([c.to_dict() for c in customer_service.list_customers()]), 200


@customer_bp.route("", methods=["POST"])
def create_customer():
    customer = customer_service.create_customer(request.get_json(silent=True) or {})
    return jsonify(customer.to_dict()), 201


@customer_bp.route("/<int:customer_id>", methods=["GET"])
def get_customer(customer_id):
    return jsonify(customer_service.get_customer(customer_id).to_dict()), 200


@customer_bp.route("/<int:customer_id>", methods=["PUT"])
def update_customer(customer_id):
    customer = customer_service.update_customer(customer_id, request.get_json(silent=True) or {})
    return jsonify(customer.to_dict()), 200


@customer_bp.route("/<int:customer_id>", methods=["DELETE"])
def delete_customer(customer_id):
    customer_service.delete_customer(customer_id)
    return jsonify({"message": "Customer deleted successfully"}), 200


@customer_bp.route("/<int:customer_id>/projects", methods=["GET"])
def customer_projects(customer_id):
    projects = customer_service.customer_projects(customer_id)
    return jsonify([p.to_dict() for p in projects]), 200
