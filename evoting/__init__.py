# evoting/__init__.py

import logging

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_jwt_extended import JWTManager
from sqlalchemy import event
from werkzeug.middleware.proxy_fix import ProxyFix

from evoting.config import Config


# Extensions are created unbound and attached to each app in create_app()
db = SQLAlchemy()  # Database ORM
migrate = Migrate()  # DB migrations
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address, default_limits=["1000/hour"])


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)

    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if uri.startswith('sqlite'):
        engine_options = app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {})
        connect_args = engine_options.setdefault('connect_args', {})
        connect_args.setdefault('check_same_thread', False)
        connect_args.setdefault('timeout', app.config['SQLITE_BUSY_TIMEOUT'])

    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('evoting').setLevel(app.config['LOG_LEVEL'])

    # Fix proxy headers for HTTPS
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    # for `flask db migrate` and db.create_all().
    from evoting.database import models  # noqa: F401

    with app.app_context():
        if db.engine.dialect.name == 'sqlite':
            event.listen(db.engine, 'connect', _enable_sqlite_foreign_keys)

    from evoting.audit.audit_logger import AuditLogger
    from evoting.authentication.session_resolver import JWTSessionBackend, PrincipalResolver
    from evoting.authentication.rbac import AccessControl

    audit_logger = AuditLogger(log_dir=app.config['AUDIT_LOG_DIR'])
    app.extensions['evoting'] = {
        'audit_logger': audit_logger,
        'principal_resolver': PrincipalResolver(JWTSessionBackend(), user_loader=_load_user),
        'access_control': AccessControl(),
    }

    from evoting.routes import bp
    from evoting.cli import register_commands

    app.register_blueprint(bp)
    register_commands(app)

    return app


def _load_user(user_id):
    from evoting.database.models import User
    return db.session.get(User, user_id)
