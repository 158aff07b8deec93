"""
Blueprint para rotas principais (redirecionamento inicial).

Rotas:
    - GET /: Redireciona para a lista de empresas ou para o login
"""

from flask import Blueprint, redirect, url_for
from flask_login import current_user

core_bp = Blueprint("core", __name__)


@core_bp.route("/")
def index():
    """Redirect users to the appropriate first page."""
    if current_user.is_authenticated:
        return redirect(url_for("empresas.listar"))
    return redirect(url_for("auth.login"))
