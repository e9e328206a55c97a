from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    # Object storage for style images (filesystem-backed bucket directory)
    app.config['IMAGE_STORAGE_DIR'] = os.getenv('IMAGE_STORAGE_DIR', os.path.abspath('storage'))
    app.config['IMAGE_BUCKET'] = os.getenv('IMAGE_BUCKET', 'style-images')
    app.config['IMAGE_PUBLIC_BASE_URL'] = os.getenv('IMAGE_PUBLIC_BASE_URL', '')
    app.config['STYLE_IMAGE_LIMIT'] = int(os.getenv('STYLE_IMAGE_LIMIT', '3'))
    app.config['PO_LINE_IMAGE_LIMIT'] = int(os.getenv('PO_LINE_IMAGE_LIMIT', '3'))
    app.config['INVOICE_NO_PREFIX'] = os.getenv('INVOICE_NO_PREFIX', 'JMI')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('app').setLevel(app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)
    _register_jwt_errors()

    from .routes.iam import iam_bp  # auth + own permissions
    from .routes.admin import admin_bp  # role defaults, user overrides, users
    from .routes.companies import companies_bp
    from .routes.purchase_orders import po_bp
    from .routes.shipments import shipments_bp
    from .routes.invoices import invoices_bp
    from .routes.packing_lists import packing_bp
    from .routes.styles import styles_bp  # dev products + image attachments
    from .routes.proforma import proforma_bp
    from .routes.work_sheets import work_sheets_bp  # per-line factory sheets + vendor prices
    app.register_blueprint(iam_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(companies_bp, url_prefix='/companies')
    app.register_blueprint(po_bp, url_prefix='/orders')
    app.register_blueprint(shipments_bp, url_prefix='/shipments')
    app.register_blueprint(invoices_bp, url_prefix='/invoices')
    app.register_blueprint(packing_bp, url_prefix='/packing-lists')
    app.register_blueprint(styles_bp)
    app.register_blueprint(proforma_bp, url_prefix='/proforma')
    app.register_blueprint(work_sheets_bp, url_prefix='/work-sheets')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing the {success: false, error} envelope
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        from .errors import error_payload
        if isinstance(e, HTTPException):
            if e.code and e.code >= 500:
                app.logger.error('HTTP %s: %s', e.code, e.description)
            return error_payload(e), e.code
        # Unhandled exception: pass the underlying message through
        app.logger.exception('Unhandled exception')
        try:
            get_db().rollback()
        except Exception:
            app.logger.warning('Session rollback after error failed')
        return {
            'success': False,
            'ok': False,
            'error': str(e) or 'Unexpected error',
            'status': 500,
            'title': 'Internal Server Error',
        }, 500

    return app


def _register_jwt_errors():
    """Token failures answer 401 in the same envelope as every other error."""
    from werkzeug.exceptions import Unauthorized
    from .errors import error_payload

    def unauthorized(reason: str):
        return error_payload(Unauthorized(description=reason)), 401

    jwt.unauthorized_loader(unauthorized)
    jwt.invalid_token_loader(unauthorized)
    jwt.expired_token_loader(lambda _header, _payload: unauthorized('Token has expired'))
    jwt.revoked_token_loader(lambda _header, _payload: unauthorized('Token has been revoked'))
    jwt.needs_fresh_token_loader(lambda _header, _payload: unauthorized('Fresh token required'))
    jwt.user_lookup_error_loader(lambda _header, payload: unauthorized(f"User {payload.get('sub')} not found"))


def get_db():
    return SessionLocal()
