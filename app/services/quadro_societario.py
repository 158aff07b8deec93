"""Gravacao do quadro societario de uma empresa.

Fluxo de uma submissao (uma unica transacao):

    1. resolve a empresa;
    2. rejeita CPFs repetidos no mesmo quadro;
    3. valida a soma das participacoes (somente quadro nao vazio);
    4. aplica os dados da empresa, se enviados;
    5. grava cada socio por CPF, na ordem recebida, e o respectivo vinculo;
    6. registra um snapshot da empresa e faz o commit.

Qualquer falha desfaz a transacao inteira.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.services.empresas import aplicar_dados_empresa, obter_empresa
from app.services.exceptions import PersistenceError, SocietarioError, ValidationError
from app.services.historico import ORIGEM_FORMULARIO_EMPRESA, registrar_snapshot_empresa
from app.services.reconciliacao import normalizar_percentual, validar_participacoes
from app.services.socios import SocioRepository, normalizar_cpf, upsert_vinculo
from app.utils.logging_utils import log_alteracao_dados, log_quadro_rejeitado

logger = logging.getLogger(__name__)


def _normalizar_quadro(socios: Iterable[dict]) -> list:
    quadro = []
    vistos = set()
    for posicao, item in enumerate(socios or [], start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Sócio #{posicao} em formato inválido.")
        cpf = normalizar_cpf(item.get("cpf"))
        if cpf in vistos:
            raise ValidationError(f"CPF {cpf} informado mais de uma vez no quadro societário.")
        vistos.add(cpf)
        quadro.append({**item, "cpf": cpf})
    return quadro


def processar_quadro_societario(
    empresa_id: int,
    socios: Optional[Iterable[dict]],
    dados_empresa: Optional[dict] = None,
    origem: str = ORIGEM_FORMULARIO_EMPRESA,
    usuario_id: Optional[int] = None,
) -> dict:
    """Grava o quadro societario da empresa de forma atomica.

    Args:
        empresa_id: empresa de destino.
        socios: socios na ordem recebida; cada um com ``cpf``, ``nome``,
            dados pessoais/endereco e ``participacao``.
        dados_empresa: campos da empresa a atualizar no mesmo lote (opcional).
        origem: origem gravada em cada snapshot.
        usuario_id: autor gravado em cada snapshot.

    Returns:
        dict com ``empresa``, ``socios`` (socios gravados), ``total``
        (Decimal aprovado ou None) e ``conflito`` (ConflictError da alteracao
        descartada de codigo/CNPJ, ou None).

    Raises:
        NotFoundError, ValidationError, ReconciliationError, ConflictError,
        PersistenceError. Nada e gravado quando qualquer um deles ocorre.
    """
    try:
        empresa = obter_empresa(empresa_id)
        quadro = _normalizar_quadro(socios)

        total = None
        if quadro:
            total = validar_participacoes(quadro)

        conflito = None
        if dados_empresa:
            _, conflito = aplicar_dados_empresa(empresa, dados_empresa)

        gravados = []
        for item in quadro:
            percentual = normalizar_percentual(item.get("participacao"))
            socio = SocioRepository.upsert(
                item,
                origem,
                empresa_id=empresa.id,
                participacao=percentual,
                usuario_id=usuario_id,
            )
            upsert_vinculo(empresa, socio, percentual)
            gravados.append(socio)

        registrar_snapshot_empresa(empresa, origem, usuario_id=usuario_id)
        db.session.commit()
    except SocietarioError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Erro de banco ao gravar quadro societario da empresa %s", empresa_id)
        raise PersistenceError("Não foi possível salvar o quadro societário.") from exc

    log_alteracao_dados(
        "update_roster",
        "empresa",
        empresa.id,
        [s.cpf for s in gravados],
        origem,
    )
    return {"empresa": empresa, "socios": gravados, "total": total, "conflito": conflito}


def salvar_quadro_societario(
    empresa_id: int,
    socios: Optional[Iterable[dict]],
    dados_empresa: Optional[dict] = None,
    origem: str = ORIGEM_FORMULARIO_EMPRESA,
    usuario_id: Optional[int] = None,
) -> dict:
    """Versao de ``processar_quadro_societario`` que devolve ``{"success": ..., "error": ...}``."""
    socios = list(socios or [])
    try:
        resultado = processar_quadro_societario(
            empresa_id,
            socios,
            dados_empresa=dados_empresa,
            origem=origem,
            usuario_id=usuario_id,
        )
    except SocietarioError as exc:
        log_quadro_rejeitado(
            empresa_id,
            exc.message,
            [str(s.get("cpf", "")) for s in socios if isinstance(s, dict)],
        )
        resposta = {"success": False, "error": exc.message}
        if getattr(exc, "total", None) is not None:
            resposta["total"] = str(exc.total)
        return resposta

    if resultado["conflito"] is not None:
        return {
            "success": False,
            "error": resultado["conflito"].message,
            "parcial": True,
            "empresa_id": resultado["empresa"].id,
        }
    return {
        "success": True,
        "empresa_id": resultado["empresa"].id,
        "socios": len(resultado["socios"]),
        "total": str(resultado["total"]) if resultado["total"] is not None else None,
    }
