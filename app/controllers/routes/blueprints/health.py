"""
Blueprint para health checks e endpoints de infraestrutura.

Rotas:
    - GET /ping: Keep-alive para sessao ativa
    - GET /health: Verifica a conexao com o banco de dados

Dependencias:
    - Nenhuma dependencia de models
    - Usa session do Flask para verificacao
"""

import logging

from flask import Blueprint, jsonify, session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import db, limiter


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

health_bp = Blueprint('health', __name__)

logger = logging.getLogger(__name__)


# =============================================================================
# ROTAS
# =============================================================================

@health_bp.route("/ping")
@limiter.exempt  # Health check - nao aplica rate limit para evitar falsos positivos
def ping():
    """
    Endpoint leve para manter sessao ativa sem acessar ORM.

    Returns:
        204: Sessao valida e atualizada
        401: Sessao invalida ou expirada
    """
    if "_user_id" not in session:
        return ("", 401)
    session.modified = True
    return ("", 204)


@health_bp.route("/health")
@limiter.exempt
def health():
    """
    Verifica se a aplicacao consegue consultar o banco.

    Returns:
        200: {"status": "ok", "database": "ok"}
        503: {"status": "error", "database": "unavailable"}
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check falhou ao consultar o banco")
        db.session.rollback()
        return jsonify({"status": "error", "database": "unavailable"}), 503
    return jsonify({"status": "ok", "database": "ok"})
