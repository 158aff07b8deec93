"""Flask application factory and common utilities."""

import os
import time
import logging
from datetime import datetime, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

from flask import Flask, request, redirect, g
from flask_login import LoginManager, current_user
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from flask_compress import Compress
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError

from config import Config

SAO_PAULO_TZ = ZoneInfo("America/Sao_Paulo")

app = Flask(__name__)

logger = logging.getLogger(__name__)

app.config['SQLALCHEMY_DATABASE_URI'] = Config.database_uri(app.instance_path)
app.config['SECRET_KEY'] = Config.secret_key()
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['MAX_CONTENT_LENGTH'] = 20 * 1024 * 1024  # importacoes CSV
app.config['ENFORCE_HTTPS'] = Config.ENFORCE_HTTPS
app.config['SESSION_COOKIE_SECURE'] = app.config['ENFORCE_HTTPS']
app.config['REMEMBER_COOKIE_SECURE'] = app.config['ENFORCE_HTTPS']
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['REMEMBER_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
app.config['REMEMBER_COOKIE_DURATION'] = timedelta(days=30)
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=30)
app.config['PREFERRED_URL_SCHEME'] = 'https' if app.config['ENFORCE_HTTPS'] else 'http'
app.config['WTF_CSRF_TIME_LIMIT'] = 60 * 60 * 24  # 24 horas
app.config['WTF_CSRF_SSL_STRICT'] = app.config['ENFORCE_HTTPS']
app.config['SESSION_COOKIE_NAME'] = Config.SESSION_COOKIE_NAME
app.config['SLOW_REQUEST_THRESHOLD_MS'] = Config.SLOW_REQUEST_THRESHOLD_MS
app.config['EMPRESAS_PER_PAGE'] = Config.EMPRESAS_PER_PAGE
app.config['CEP_API_BASE_URL'] = Config.CEP_API_BASE_URL
app.config['CEP_API_TOKEN'] = Config.CEP_API_TOKEN
app.config['EXTERNAL_API_TIMEOUT'] = Config.EXTERNAL_API_TIMEOUT
app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {})
if app.config['SQLALCHEMY_DATABASE_URI'].startswith('mysql'):
    # Pool tuning only makes sense for server databases; SQLite uses its own pools.
    app.config['SQLALCHEMY_ENGINE_OPTIONS'].setdefault('pool_pre_ping', True)
    app.config['SQLALCHEMY_ENGINE_OPTIONS'].setdefault('pool_recycle', 1800)
    app.config['SQLALCHEMY_ENGINE_OPTIONS'].setdefault('pool_size', 10)
    app.config['SQLALCHEMY_ENGINE_OPTIONS'].setdefault('max_overflow', 20)
    app.config['SQLALCHEMY_ENGINE_OPTIONS'].setdefault('pool_timeout', 30)

Config.validate()

csrf = CSRFProtect(app)
db = SQLAlchemy(app)
migrate = Migrate(app, db)
login_manager = LoginManager(app)
login_manager.login_view = 'auth.login'
login_manager.login_message = "Faça login para acessar esta página."

# Rate limiting configuration for brute-force protection
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    storage_uri=Config.RATELIMIT_STORAGE_URI,
    strategy="fixed-window",
    headers_enabled=True,
)

compress = Compress(app)
app.config['COMPRESS_MIMETYPES'] = [
    'text/html',
    'text/css',
    'text/javascript',
    'application/javascript',
    'application/json',
]
app.config['COMPRESS_LEVEL'] = 6
app.config['COMPRESS_MIN_SIZE'] = 500


@app.before_request
def _enforce_https():
    """Redirect incoming HTTP requests to HTTPS when enforcement is enabled."""
    if app.config['ENFORCE_HTTPS'] and request.headers.get('X-Forwarded-Proto', request.scheme) != 'https':
        url = request.url.replace('http://', 'https://', 1)
        return redirect(url, code=301)


@app.before_request
def _start_request_timer():
    """Store the request id and high-resolution start time."""
    g.request_id = request.headers.get('X-Request-ID') or uuid4().hex
    g.request_started_at = time.perf_counter()


@app.after_request
def _log_slow_requests(response):
    """Emit warnings for requests that exceed the configured threshold."""
    started_at = getattr(g, 'request_started_at', None)
    threshold_ms = app.config.get('SLOW_REQUEST_THRESHOLD_MS', 0) or 0
    if started_at is not None and threshold_ms > 0:
        duration_ms = (time.perf_counter() - started_at) * 1000
        endpoint = request.endpoint or 'unknown'
        if duration_ms >= threshold_ms and endpoint != 'static':
            user_id = current_user.get_id() if current_user.is_authenticated else 'anonymous'
            app.logger.warning(
                "Slow request: %s %s took %.1f ms (status=%s, user=%s, endpoint=%s, ip=%s)",
                request.method,
                request.path,
                duration_ms,
                response.status_code,
                user_id,
                endpoint,
                request.remote_addr,
            )
    return response


@app.after_request
def _set_security_headers(response):
    """Apply security-related HTTP headers to responses."""
    if app.config['ENFORCE_HTTPS'] and request.headers.get('X-Forwarded-Proto', request.scheme) == 'https':
        response.headers.setdefault(
            'Strict-Transport-Security',
            'max-age=31536000; includeSubDomains',
        )
    response.headers.setdefault('X-Content-Type-Options', 'nosniff')
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
    response.headers.setdefault('X-XSS-Protection', '0')
    return response


# Importa rotas e modelos depois da criação do db
from app.models import tables
from app.controllers import routes
routes.register_blueprints(app)


@login_manager.user_loader
def load_user(user_id):
    """Load a :class:`User` instance for Flask-Login."""
    from app.models.tables import User  # importa aqui para evitar circular import
    return db.session.get(User, int(user_id))


@app.context_processor
def inject_now():
    """Inject current São Paulo time into templates as ``now()``."""
    return {'now': lambda: datetime.now(SAO_PAULO_TZ).replace(tzinfo=None)}


@app.template_filter('percentual')
def _percentual_filter(value):
    """Format a participation as ``12,50%``."""
    if value is None:
        return '-'
    return f"{value:.2f}%".replace('.', ',')


@app.template_filter('data_br')
def _data_br_filter(value):
    """Format a date or datetime as dd/mm/yyyy (with time for datetimes)."""
    from app.utils.datetime_utils import format_date_br, format_datetime_br

    if isinstance(value, datetime):
        return format_datetime_br(value)
    return format_date_br(value)


@app.template_filter('centavos')
def _centavos_filter(value):
    """Format an integer amount in cents as ``R$ 1.234,56``."""
    if value is None:
        return 'R$ -'
    reais = value / 100
    return f"R$ {reais:,.2f}".replace(',', '_').replace('.', ',').replace('_', '.')


@app.template_filter('cpf')
def _cpf_filter(value):
    from app.utils.documentos import formatar_cpf
    return formatar_cpf(value)


@app.template_filter('cnpj')
def _cnpj_filter(value):
    from app.utils.documentos import formatar_cnpj
    return formatar_cnpj(value)


with app.app_context():
    # Import models inside the application context so SQLAlchemy metadata
    # knows about every table before ``create_all`` runs.
    from app.models import tables as _models  # noqa: F401

    try:
        db.create_all()
    except SQLAlchemyError as exc:
        app.logger.warning("Não foi possível criar as tabelas automaticamente: %s", exc)

# Setup structured logging with rotation (after app context is ready)
from app.utils.logging_config import setup_logging, log_request_info

with app.app_context():
    setup_logging(app, engine=db.engine)


@app.after_request
def _log_request_end(response):
    """Log request completion with timing information."""
    started_at = getattr(g, 'request_started_at', None)
    duration_ms = (time.perf_counter() - started_at) * 1000 if started_at is not None else 0.0
    request_id = getattr(g, "request_id", None)
    if request_id:
        response.headers.setdefault("X-Request-ID", request_id)
    log_request_info(request, response, duration_ms, request_id=request_id)
    return response
