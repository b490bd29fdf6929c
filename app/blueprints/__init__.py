"""
ReqBridge
Blueprint registry.

Every module exposes one or more ``*_bp`` objects; ``register_blueprints``
wires them into the app in a fixed order.
"""


def register_blueprints(app):
    from app.blueprints.activity_bp import activity_bp
    from app.blueprints.admin_bp import admin_bp, invite_bp, settings_bp
    from app.blueprints.analysis_bp import analysis_bp
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.customer_bp import customer_bp
    from app.blueprints.document_bp import document_bp, document_template_bp, schema_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.input_data_bp import input_data_bp
    from app.blueprints.project_bp import project_bp
    from app.blueprints.requirement_bp import requirement_bp
    from app.blueprints.role_bp import role_bp
    from app.blueprints.search_bp import search_bp
    from app.blueprints.task_bp import task_bp
    from app.blueprints.workflow_bp import workflow_bp

    for bp in (
        auth_bp, admin_bp, invite_bp, settings_bp,
        customer_bp, project_bp, input_data_bp,
        requirement_bp, task_bp, activity_bp, workflow_bp,
        search_bp, role_bp,
        document_template_bp, schema_bp, document_bp,
        analysis_bp, health_bp,
    ):
        app.register_blueprint(bp)
