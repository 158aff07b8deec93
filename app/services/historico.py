"""Gravacao e consulta do historico (snapshots) de empresas e socios.

Os snapshots sao adicionados a sessao corrente, na mesma transacao da
gravacao que os originou; o commit fica a cargo do chamador.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from app import db
from app.models.tables import Empresa, EmpresaHistorico, Socio, SocioHistorico

logger = logging.getLogger(__name__)

ORIGEM_FORMULARIO_EMPRESA = "company_form"
ORIGEM_FORMULARIO_SOCIO = "socio_form"
ORIGEM_IMPORTACAO_CSV = "csv_import"
ORIGEM_API = "api"


def registrar_snapshot_empresa(empresa: Empresa, origem: str, usuario_id: Optional[int] = None) -> EmpresaHistorico:
    """Append one immutable snapshot of ``empresa`` to the current session."""
    if empresa.id is None:
        db.session.flush()
    snapshot = EmpresaHistorico(
        empresa_id=empresa.id,
        origem=origem,
        usuario_id=usuario_id,
        **empresa.campos_snapshot(),
    )
    db.session.add(snapshot)
    logger.debug("Snapshot de empresa %s registrado (origem=%s)", empresa.id, origem)
    return snapshot


def registrar_snapshot_socio(
    socio: Socio,
    origem: str,
    empresa_id: Optional[int] = None,
    participacao: Optional[Decimal] = None,
    usuario_id: Optional[int] = None,
) -> SocioHistorico:
    """Append one immutable snapshot of ``socio``.

    ``empresa_id`` and ``participacao`` record the roster that produced the
    write, when there is one.
    """
    if socio.id is None:
        db.session.flush()
    snapshot = SocioHistorico(
        socio_id=socio.id,
        empresa_id=empresa_id,
        participacao_percent=participacao,
        origem=origem,
        usuario_id=usuario_id,
        **socio.campos_snapshot(),
    )
    db.session.add(snapshot)
    logger.debug("Snapshot de socio %s registrado (origem=%s)", socio.id, origem)
    return snapshot


def listar_historico_empresa(empresa_id: int) -> List[EmpresaHistorico]:
    return (
        EmpresaHistorico.query
        .filter_by(empresa_id=empresa_id)
        .order_by(EmpresaHistorico.snapshot_em.desc(), EmpresaHistorico.id.desc())
        .all()
    )


def listar_historico_socio(socio_id: int) -> List[SocioHistorico]:
    return (
        SocioHistorico.query
        .filter_by(socio_id=socio_id)
        .order_by(SocioHistorico.snapshot_em.desc(), SocioHistorico.id.desc())
        .all()
    )


def serializar_snapshot(snapshot) -> dict:
    """Convert a snapshot row into a JSON-friendly dict."""
    dados = {}
    for campo in snapshot.CAMPOS:
        valor = getattr(snapshot, campo)
        if hasattr(valor, "isoformat"):
            valor = valor.isoformat()
        dados[campo] = valor
    dados.update(
        id=snapshot.id,
        origem=snapshot.origem,
        usuario_id=snapshot.usuario_id,
        snapshot_em=snapshot.snapshot_em.isoformat() if snapshot.snapshot_em else None,
    )
    if isinstance(snapshot, SocioHistorico):
        dados["socio_id"] = snapshot.socio_id
        dados["empresa_id"] = snapshot.empresa_id
        dados["participacao_percent"] = (
            str(snapshot.participacao_percent) if snapshot.participacao_percent is not None else None
        )
    else:
        dados["empresa_id"] = snapshot.empresa_id
    return dados
