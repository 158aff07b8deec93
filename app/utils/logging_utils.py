"""Utility functions for standardized application logging."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from app.utils.logging_config import mask_cpf

logger = logging.getLogger(__name__)


def log_autenticacao(ip: str, username: str, status: str) -> None:
    """Log authentication attempts and results."""
    level = logging.INFO if status.lower() in {"login", "logout", "sucesso"} else logging.WARNING
    logger.log(
        level,
        "Autenticacao | ip=%s | usuario=%s | status=%s",
        ip,
        username,
        status,
    )


def log_alteracao_dados(
    action: str,
    resource_type: str,
    resource_id: int | None,
    fields: Iterable[str],
    origem: str,
) -> None:
    """Log creation or update of companies, partners and links."""
    logger.info(
        "Alteracao de dados | acao=%s | %s_id=%s | campos=%s | origem=%s",
        action,
        resource_type,
        resource_id,
        sorted(fields),
        origem,
    )


def log_quadro_rejeitado(empresa_id: int, motivo: str, cpfs: Iterable[str]) -> None:
    """Log a rejected partner roster without exposing full CPFs."""
    logger.warning(
        "Quadro societario rejeitado | empresa=%s | motivo=%s | cpfs=%s",
        empresa_id,
        motivo,
        [mask_cpf(cpf) for cpf in cpfs],
    )


def log_integracao_externa(
    service: str,
    payload: Dict[str, Any],
    status: str,
    reference: str | None = None,
) -> None:
    """Log interactions with external lookup APIs."""
    level = logging.INFO if status.lower() in {"sucesso", "ok", "200"} else logging.ERROR
    logger.log(
        level,
        "Integracao externa | servico=%s | referencia=%s | status=%s | payload=%s",
        service,
        reference,
        status,
        payload,
    )
