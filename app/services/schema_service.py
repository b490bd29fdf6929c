"""Database schema introspection for the field-mapping editor.

Lists the tables a ``database`` field mapping may read from, with their
columns taken from the SQLAlchemy metadata. Credential columns are never
exposed. Acceptance criteria live in a JSON column of ``requirements`` and
are offered as a pseudo-table.
"""

from sqlalchemy import Boolean, DateTime, Float, Integer, JSON, Numeric

from app.models import db

MAPPABLE_TABLES = {
    "users": "Users",
    "customers": "Customers",
    "projects": "Projects",
    "requirements": "Requirements",
    "implementation_tasks": "Implementation Tasks",
    "activities": "Activities",
    "input_data": "Input Data",
}

_HIDDEN_COLUMNS = {"password", "reset_token", "reset_token_expires", "file_path"}

_ACCEPTANCE_CRITERIA_COLUMNS = [
    {"name": "id", "type": "string", "nullable": False},
    {"name": "requirement_id", "type": "number", "nullable": False},
    {"name": "description", "type": "string", "nullable": False},
    {"name": "status", "type": "string", "nullable": False},
    {"name": "notes", "type": "string", "nullable": True},
    {"name": "gherkin", "type": "json", "nullable": True},
]


def _column_type(column) -> str:
    col_type = column.type
    if isinstance(col_type, Boolean):
        return "boolean"
    if isinstance(col_type, (Integer, Float, Numeric)):
        return "number"
    if isinstance(col_type, DateTime):
        return "datetime"
    if isinstance(col_type, JSON):
        return "json"
    return "string"


def describe_tables() -> dict:
    tables = {}
    for name, display_name in MAPPABLE_TABLES.items():
        table = db.metadata.tables[name]
        tables[name] = {
            "display_name": display_name,
            "columns": [
                {"name": col.name, "type": _column_type(col), "nullable": bool(col.nullable)}
                for col in table.columns
                if col.name not in _HIDDEN_COLUMNS
            ],
        }
    tables["acceptance_criteria"] = {
        "display_name": "Acceptance Criteria",
        "columns": _ACCEPTANCE_CRITERIA_COLUMNS,
    }
    return {"tables": tables}
