"""
Blueprint para autenticacao.

Rotas:
    - GET/POST /login: Login com usuario/senha
    - GET /logout: Logout do usuario

Dependencias:
    - models: User
    - forms: LoginForm
"""

from datetime import timedelta
import logging

from flask import (
    Blueprint,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required, login_user, logout_user

from app import db, limiter
from app.forms import LoginForm
from app.models.tables import User
from app.utils.datetime_utils import now_naive
from app.utils.logging_utils import log_autenticacao

# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

auth_bp = Blueprint('auth', __name__)

user_actions_logger = logging.getLogger('user_actions')


def _log_failed_login(username: str, reason: str, description: str) -> None:
    user_actions_logger.warning(
        f"[{username}] FAILED_LOGIN session - {description} - IP: {request.remote_addr}",
        extra={
            'username': username,
            'action_type': 'failed_login',
            'resource_type': 'session',
            'ip_address': request.remote_addr,
            'reason': reason,
        }
    )
    log_autenticacao(request.remote_addr, username, reason)


# =============================================================================
# ROTAS DE LOGIN/LOGOUT
# =============================================================================

@auth_bp.route("/login", methods=["GET", "POST"])
@limiter.limit("5 per minute", methods=["POST"])  # Protecao contra brute-force
def login():
    """
    Renderiza a pagina de login e processa autenticacao.

    GET: Exibe formulario de login
    POST: Valida credenciais e cria sessao
    """
    from app.utils.audit import log_user_action, ActionType, ResourceType

    if current_user.is_authenticated:
        return redirect(url_for("empresas.listar"))

    form = LoginForm()

    if form.validate_on_submit():
        user = User.query.filter_by(username=form.username.data).first()

        if user and user.check_password(form.password.data):
            if not user.ativo:
                flash("Seu usuário está inativo. Contate o administrador.", "danger")
                _log_failed_login(form.username.data, 'inactive_user', 'Usuario inativo')
                return redirect(url_for("auth.login"))

            login_user(
                user,
                remember=form.remember_me.data,
                duration=timedelta(days=30),
            )
            session.permanent = form.remember_me.data
            user.last_seen = now_naive()
            db.session.commit()

            log_user_action(
                action_type=ActionType.LOGIN,
                resource_type=ResourceType.SESSION,
                action_description=f'Usuario {user.username} fez login com sucesso',
                resource_id=user.id,
                new_values={'remember_me': form.remember_me.data}
            )
            log_autenticacao(request.remote_addr, user.username, "login")

            flash("Login bem-sucedido!", "success")
            next_url = request.args.get("next")
            if next_url and next_url.startswith("/") and not next_url.startswith("//"):
                return redirect(next_url)
            return redirect(url_for("empresas.listar"))

        _log_failed_login(form.username.data, 'invalid_credentials', 'Credenciais invalidas')
        flash("Credenciais inválidas", "danger")

    return render_template("login.html", form=form)


@auth_bp.route("/logout", methods=["GET"])
@login_required
def logout():
    """Encerra a sessao do usuario atual."""
    from app.utils.audit import log_user_action, ActionType, ResourceType

    # Log de logout antes de efetivamente deslogar
    if current_user.is_authenticated:
        log_user_action(
            action_type=ActionType.LOGOUT,
            resource_type=ResourceType.SESSION,
            action_description=f'Usuario {current_user.username} fez logout',
            resource_id=current_user.id,
        )
        log_autenticacao(request.remote_addr, current_user.username, "logout")

    logout_user()
    return redirect(url_for("auth.login"))
