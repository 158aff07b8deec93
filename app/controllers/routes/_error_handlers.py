"""
Handlers de erro centralizados para a aplicacao.

Respostas consistentes para a API JSON (``/api/...``) e para a interface web.

Error Handlers:
    - 404: Recurso nao encontrado
    - 403: Acesso proibido
    - 429: Rate limit excedido
    - 500: Erro interno do servidor
    - SocietarioError: Erros de dominio (validacao, conflito, inexistente)
    - SQLAlchemyError: Erros de banco de dados
    - RequestEntityTooLarge: Arquivo muito grande

Funcoes Auxiliares:
    - status_para_erro: Codigo HTTP de cada excecao de dominio
    - api_error_response: Resposta JSON padronizada para erros
    - web_error_redirect: Redirecionamento com flash message
"""

from flask import Flask, Response, current_app, flash, jsonify, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import RequestEntityTooLarge

from app import db
from app.services.exceptions import (
    ConflictError,
    IntegracaoExternaError,
    NotFoundError,
    PersistenceError,
    SocietarioError,
    ValidationError,
)


# =============================================================================
# FUNCOES AUXILIARES
# =============================================================================

def is_api_request() -> bool:
    """
    Verifica se a requisicao atual e para a API.

    Returns:
        bool: True se path comeca com /api/.
    """
    return request.path.startswith('/api/')


def status_para_erro(error: SocietarioError) -> int:
    """
    Mapeia excecoes de dominio para codigos HTTP.

    ValidationError -> 400, NotFoundError -> 404,
    ConflictError/PersistenceError -> 409, IntegracaoExternaError -> status do servico.
    """
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, (ConflictError, PersistenceError)):
        return 409
    if isinstance(error, IntegracaoExternaError):
        return error.status_code if error.status_code >= 400 else 502
    return 400


def api_error_response(message: str, status_code: int, **extra) -> tuple[Response, int]:
    """
    Cria resposta JSON padronizada para erros de API.

    Args:
        message: Mensagem legivel, exibida ao usuario sem alteracao.
        status_code: Codigo HTTP do erro.
        extra: Campos adicionais (ex: ``total`` da reconciliacao).

    Returns:
        tuple[Response, int]: ``{"success": false, "error": message}`` e o status.
    """
    response_data = {"success": False, "error": message, **extra}
    return jsonify(response_data), status_code


def web_error_redirect(message: str, category: str = "error", fallback_url: str | None = None) -> Response:
    """
    Redireciona com flash message para erros de interface web.

    Args:
        message: Mensagem a exibir para o usuario.
        category: Categoria do flash (error, warning, info, success).
        fallback_url: URL de fallback se referrer nao disponivel.
    """
    flash(message, category)
    redirect_url = request.referrer or fallback_url or url_for('empresas.listar')
    return redirect(redirect_url)


# =============================================================================
# REGISTRO DE ERROR HANDLERS
# =============================================================================

def register_error_handlers(app: Flask) -> None:
    """
    Registra todos os error handlers na aplicacao Flask.

    Args:
        app: Instancia da aplicacao Flask.
    """

    @app.errorhandler(404)
    def handle_not_found(e):
        if is_api_request():
            return api_error_response("Recurso não encontrado.", 404)
        return render_template('errors/404.html'), 404

    @app.errorhandler(403)
    def handle_forbidden(e):
        if is_api_request():
            return api_error_response("Acesso negado.", 403)
        flash("Voce nao tem permissao para acessar este recurso.", "error")
        return redirect(url_for('empresas.listar'))

    @app.errorhandler(429)
    def handle_rate_limit(e):
        from app.utils.logging_config import log_exception
        log_exception(e, request)

        if is_api_request():
            return api_error_response("Muitas requisições. Aguarde e tente novamente.", 429)
        flash("Muitas tentativas. Aguarde alguns instantes e tente novamente.", "warning")
        return redirect(request.referrer or url_for('auth.login'))

    @app.errorhandler(500)
    def handle_internal_error(e):
        """
        Trata erros 500 - Erro interno do servidor.

        Registra excecao, faz rollback de transacoes pendentes
        e retorna mensagem apropriada.
        """
        from app.utils.logging_config import log_exception
        log_exception(e, request)

        db.session.rollback()

        if is_api_request():
            return api_error_response("Erro interno. Tente novamente mais tarde.", 500)
        return render_template('errors/500.html'), 500

    @app.errorhandler(SocietarioError)
    def handle_domain_error(e):
        """Erros de dominio nao tratados pela rota: rollback e mensagem legivel."""
        db.session.rollback()
        status = status_para_erro(e)
        current_app.logger.warning("Erro de dominio em %s: %s", request.path, e.message)
        if is_api_request():
            return api_error_response(e.message, status)
        if status == 404:
            return render_template('errors/404.html'), 404
        return web_error_redirect(e.message)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        from app.utils.logging_config import log_exception
        log_exception(e, request)

        db.session.rollback()

        if is_api_request():
            return api_error_response("Erro de banco de dados. Tente novamente.", 500)

        flash("Erro ao processar sua solicitacao. Tente novamente.", "error")
        return redirect(request.referrer or url_for('empresas.listar'))

    @app.errorhandler(RequestEntityTooLarge)
    def handle_large_file(e):
        """Retorna mensagem com o limite de tamanho configurado."""
        from app.utils.logging_config import log_exception
        log_exception(e, request)

        max_len = current_app.config.get("MAX_CONTENT_LENGTH")
        if max_len:
            limit_mb = max_len / (1024 * 1024)
            message = f"Arquivo excede o tamanho permitido ({limit_mb:.0f} MB)."
        else:
            message = "Arquivo excede o tamanho permitido."

        if is_api_request():
            return api_error_response(message, 413)
        return web_error_redirect(message)
