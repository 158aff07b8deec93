"""
Handlers de rotas Flask para o portal societario.

As rotas ficam em blueprints separados em:
    app/controllers/routes/blueprints/

ARQUIVOS AUXILIARES:
    - _decorators.py: Decorators de autorizacao
    - _error_handlers.py: Tratamento centralizado de erros
"""

from flask import Flask


def register_blueprints(flask_app: Flask) -> None:
    """
    Registra todos os blueprints e os handlers de erro da aplicacao.

    Args:
        flask_app: Instancia da aplicacao Flask.
    """
    from app.controllers.routes.blueprints import register_all_blueprints
    from app.controllers.routes._error_handlers import register_error_handlers

    register_all_blueprints(flask_app)
    register_error_handlers(flask_app)
