from biblioteca.health import bp as health_bp
from biblioteca.routes.admin import bp as admin_bp
from biblioteca.routes.payments import bp as payments_bp
from biblioteca.routes.subscription import bp as subscription_bp
from biblioteca.routes.webhooks import bp as webhooks_bp


def register_routes(app):
    """Register all application blueprints."""
    for blueprint in (health_bp, payments_bp, webhooks_bp, subscription_bp, admin_bp):
        app.register_blueprint(blueprint)
