from flask import Flask
from flask_migrate import Migrate
from flask_login import LoginManager
from agrimart.extensions import db
from agrimart.config import Config
from agrimart.errors import register_error_handlers
from agrimart.middleware import setup_auth_middleware
import logging

logger = logging.getLogger(__name__)

migrate = Migrate()
login_manager = LoginManager()


def _configure_logging(app):
    handlers = [logging.StreamHandler()]
    if app.config.get('LOG_FILE'):
        handlers.append(logging.FileHandler(app.config['LOG_FILE']))

    # No-op when the root logger is already configured (tests, reloader).
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from agrimart.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Bearer tokens resolve into current_user
    setup_auth_middleware(app, login_manager)
    register_error_handlers(app)

    # Register blueprints
    from agrimart.blueprints import (
        auth,
        cart,
        chat,
        content,
        notifications,
        orders,
        products,
        public,
        reviews,
        scan,
        users,
    )

    app.register_blueprint(public.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(users.bp)
    app.register_blueprint(products.bp)
    app.register_blueprint(reviews.bp)
    app.register_blueprint(cart.bp)
    app.register_blueprint(orders.bp)
    app.register_blueprint(content.bp)
    app.register_blueprint(notifications.bp)
    app.register_blueprint(chat.bp)
    app.register_blueprint(scan.bp)

    # Note: Database tables are managed via Flask-Migrate
    # Use 'flask db upgrade' to create/update tables

    logger.info("Flask application initialized")
    return app
