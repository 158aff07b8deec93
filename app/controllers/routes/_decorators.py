"""
Decorators de autenticacao e autorizacao para rotas.

Decorators Disponiveis:
    - admin_required: Restringe acesso a usuarios admin (importacao de empresas)
"""

from functools import wraps

from flask import abort, current_app
from flask_login import current_user, login_required


def admin_required(f):
    """
    Decorator que restringe acesso a usuarios admin.

    Com ``LOGIN_DISABLED`` (testes) a verificacao de perfil e ignorada,
    assim como ``login_required``.

    Uso:
        @empresas_bp.route('/empresas/importar')
        @admin_required
        def importar():
            ...

    Raises:
        403: Se usuario nao for admin.
    """
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if current_app.config.get("LOGIN_DISABLED"):
            return f(*args, **kwargs)
        if getattr(current_user, "role", None) != "admin":
            abort(403)
        return f(*args, **kwargs)

    return decorated_function
