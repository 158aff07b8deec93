"""
Registro centralizado de blueprints da aplicacao.

Blueprints Disponiveis:
    - health_bp: Health checks (/ping, /health)
    - auth_bp: Autenticacao (/login, /logout)
    - core_bp: Pagina inicial (/)
    - empresas_bp: Cadastro de empresas, quadro societario e importacao CSV
    - socios_bp: Consulta e edicao de socios
    - societario_api_bp: API JSON (/api/...)

Uso:
    from app.controllers.routes.blueprints import register_all_blueprints
    register_all_blueprints(app)
"""

from flask import Flask


def register_all_blueprints(app: Flask) -> None:
    """
    Registra todos os blueprints na aplicacao Flask.

    Os blueprints sao registrados sem url_prefix; as rotas declaram o
    caminho completo.

    Args:
        app: Instancia da aplicacao Flask.
    """
    from app import csrf

    # Health - endpoints de infraestrutura (/ping, /health)
    from app.controllers.routes.blueprints.health import health_bp
    app.register_blueprint(health_bp)

    # Auth - login e logout
    from app.controllers.routes.blueprints.auth import auth_bp
    app.register_blueprint(auth_bp)

    # Core - pagina inicial
    from app.controllers.routes.blueprints.core import core_bp
    app.register_blueprint(core_bp)

    # Empresas - cadastro, edicao com quadro societario, status, historico, importacao
    from app.controllers.routes.blueprints.empresas import empresas_bp
    app.register_blueprint(empresas_bp)

    # Socios - busca, edicao de dados pessoais, desligamento, historico
    from app.controllers.routes.blueprints.socios import socios_bp
    app.register_blueprint(socios_bp)

    # API JSON - consumida pelo front-end e integracoes; autenticada por sessao
    from app.controllers.routes.blueprints.societario_api import societario_api_bp
    csrf.exempt(societario_api_bp)
    app.register_blueprint(societario_api_bp)
