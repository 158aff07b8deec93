"""Cadastro de empresas e regra de imutabilidade de codigo/CNPJ."""

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from sqlalchemy import exists, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from app.models.tables import (
    Admissao,
    Empresa,
    Funcionario,
    Transferencia,
    UsuarioEmpresa,
)
from app.services.exceptions import ConflictError, NotFoundError, PersistenceError, ValidationError
from app.services.historico import ORIGEM_FORMULARIO_EMPRESA, registrar_snapshot_empresa
from app.utils.datetime_utils import now_naive, parse_date
from app.utils.documentos import normalizar_digitos
from app.utils.logging_utils import log_alteracao_dados

logger = logging.getLogger(__name__)

CAMPOS_IMUTAVEIS = ("codigo", "cnpj")
CAMPOS_EDITAVEIS = tuple(c for c in Empresa.CAMPOS if c != "ativo")

MENSAGEM_CODIGO_DUPLICADO = "Código já cadastrado."
MENSAGEM_CNPJ_DUPLICADO = "CNPJ já cadastrado."
MENSAGEM_CODIGO_IMUTAVEL = (
    "Não é permitido alterar o CÓDIGO de uma empresa que possui vínculos "
    "(funcionários, admissões, etc)."
)
MENSAGEM_CNPJ_IMUTAVEL = (
    "Não é permitido alterar o CNPJ de uma empresa que possui vínculos "
    "(funcionários, admissões, etc)."
)


def possui_vinculos(empresa_id: int) -> bool:
    """Indica se a empresa possui algum registro operacional.

    Contam funcionarios, admissoes, transferencias (origem ou destino) e
    usuarios vinculados.
    """
    probes = (
        exists().where(Funcionario.empresa_id == empresa_id),
        exists().where(Admissao.empresa_id == empresa_id),
        exists().where(
            or_(
                Transferencia.empresa_origem_id == empresa_id,
                Transferencia.empresa_destino_id == empresa_id,
            )
        ),
        exists().where(UsuarioEmpresa.empresa_id == empresa_id),
    )
    return any(db.session.query(probe).scalar() for probe in probes)


def _texto(valor):
    if valor is None:
        return None
    texto = str(valor).strip()
    return texto or None


def _capital_em_centavos(dados: dict):
    if dados.get("capital_social_centavos") not in (None, ""):
        try:
            return int(dados["capital_social_centavos"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("Capital social inválido.") from exc

    valor = dados.get("capital_social")
    if valor in (None, ""):
        return None
    texto = str(valor).replace("R$", "").strip()
    if "," in texto:
        texto = texto.replace(".", "").replace(",", ".")
    try:
        reais = Decimal(texto)
    except InvalidOperation as exc:
        raise ValidationError("Capital social inválido.") from exc
    if not reais.is_finite() or reais < 0:
        raise ValidationError("Capital social inválido.")
    return int((reais * 100).to_integral_value())


def normalizar_dados_empresa(dados: dict) -> dict:
    """Normaliza os campos da empresa presentes em ``dados``.

    Apenas as chaves enviadas sao devolvidas; a atualizacao e parcial.
    """
    campos = {}
    for campo in CAMPOS_EDITAVEIS:
        if campo == "capital_social_centavos":
            if "capital_social_centavos" in dados or "capital_social" in dados:
                campos[campo] = _capital_em_centavos(dados)
            continue
        if campo not in dados:
            continue
        valor = dados[campo]
        if campo in ("cnpj", "endereco_cep", "telefone"):
            campos[campo] = normalizar_digitos(valor) or None
        elif campo == "data_abertura":
            try:
                campos[campo] = parse_date(valor)
            except ValueError as exc:
                raise ValidationError("Data de abertura inválida.") from exc
        elif campo == "uf":
            texto = _texto(valor)
            campos[campo] = texto.upper()[:2] if texto else None
        else:
            campos[campo] = _texto(valor)

    if campos.get("cnpj") and len(campos["cnpj"]) != 14:
        raise ValidationError("CNPJ inválido. Informe os 14 dígitos.")
    return campos


def _verificar_unicidade(campos: dict, empresa_id: Optional[int] = None) -> None:
    if campos.get("codigo"):
        outra = Empresa.query.filter(Empresa.codigo == campos["codigo"])
        if empresa_id is not None:
            outra = outra.filter(Empresa.id != empresa_id)
        if outra.first() is not None:
            raise ConflictError(MENSAGEM_CODIGO_DUPLICADO, campos=("codigo",))
    if campos.get("cnpj"):
        outra = Empresa.query.filter(Empresa.cnpj == campos["cnpj"])
        if empresa_id is not None:
            outra = outra.filter(Empresa.id != empresa_id)
        if outra.first() is not None:
            raise ConflictError(MENSAGEM_CNPJ_DUPLICADO, campos=("cnpj",))


def aplicar_dados_empresa(empresa: Empresa, dados: dict) -> Tuple[List[str], Optional[ConflictError]]:
    """Aplica ``dados`` em ``empresa`` sem commit.

    Em empresa com vinculos, a alteracao de ``codigo``/``cnpj`` e descartada e
    informada pelo ``ConflictError`` devolvido; os demais campos sao aplicados.

    Returns:
        (campos alterados, conflito ou None)

    Raises:
        ValidationError: campo mal formado ou obrigatorio em branco.
        ConflictError: ``codigo``/``cnpj`` ja pertence a outra empresa.
    """
    campos = normalizar_dados_empresa(dados)
    for obrigatorio in ("codigo", "cnpj", "razao_social"):
        if obrigatorio in campos and not campos[obrigatorio]:
            raise ValidationError(f"O campo {obrigatorio} não pode ficar em branco.")

    conflito = None
    mudancas_imutaveis = [
        c for c in CAMPOS_IMUTAVEIS
        if c in campos and campos[c] != getattr(empresa, c)
    ]
    if mudancas_imutaveis and possui_vinculos(empresa.id):
        mensagem = MENSAGEM_CODIGO_IMUTAVEL if "codigo" in mudancas_imutaveis else MENSAGEM_CNPJ_IMUTAVEL
        conflito = ConflictError(mensagem, campos=mudancas_imutaveis)
        logger.warning(
            "Empresa %s possui vinculos; alteracao de %s ignorada",
            empresa.id,
            ", ".join(mudancas_imutaveis),
        )
        for campo in mudancas_imutaveis:
            campos.pop(campo)

    _verificar_unicidade(
        {c: campos[c] for c in CAMPOS_IMUTAVEIS if c in campos},
        empresa_id=empresa.id,
    )

    alterados = [c for c, v in campos.items() if getattr(empresa, c) != v]
    for campo, valor in campos.items():
        setattr(empresa, campo, valor)
    empresa.updated_at = now_naive()
    return alterados, conflito


def criar_empresa(dados: dict, origem: str = ORIGEM_FORMULARIO_EMPRESA, usuario_id: Optional[int] = None) -> Empresa:
    """Cadastra a empresa, registra o primeiro snapshot e faz o commit.

    Raises:
        ValidationError: ``codigo``, ``cnpj`` ou ``razao_social`` ausente.
        ConflictError: ``codigo`` ou ``cnpj`` duplicado.
        PersistenceError: falha no banco.
    """
    campos = normalizar_dados_empresa(dados)
    faltando = [c for c in ("codigo", "cnpj", "razao_social") if not campos.get(c)]
    if faltando:
        raise ValidationError(f"Campos obrigatórios ausentes: {', '.join(faltando)}.")
    _verificar_unicidade(campos)

    empresa = Empresa(ativo=True, **campos)
    try:
        db.session.add(empresa)
        db.session.flush()
        registrar_snapshot_empresa(empresa, origem, usuario_id=usuario_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Conflito ao criar empresa %s: %s", campos.get("codigo"), exc.orig)
        raise PersistenceError("Código ou CNPJ já cadastrado.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Erro ao criar empresa %s", campos.get("codigo"))
        raise PersistenceError("Não foi possível cadastrar a empresa.") from exc

    log_alteracao_dados("create", "empresa", empresa.id, campos.keys(), origem)
    return empresa


def obter_empresa(empresa_id: int) -> Empresa:
    empresa = db.session.get(Empresa, empresa_id)
    if empresa is None:
        raise NotFoundError("Empresa não encontrada.")
    return empresa


def atualizar_empresa(
    empresa_id: int,
    dados: dict,
    origem: str = ORIGEM_FORMULARIO_EMPRESA,
    usuario_id: Optional[int] = None,
) -> Tuple[Empresa, Optional[ConflictError]]:
    """Atualiza a empresa, registra um snapshot e faz o commit.

    Devolve a empresa e, quando uma empresa com vinculos tentou alterar
    ``codigo``/``cnpj``, o ``ConflictError`` que descreve a alteracao descartada.
    """
    empresa = obter_empresa(empresa_id)
    try:
        alterados, conflito = aplicar_dados_empresa(empresa, dados)
        registrar_snapshot_empresa(empresa, origem, usuario_id=usuario_id)
        db.session.commit()
    except (ValidationError, ConflictError):
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        raise PersistenceError("Código ou CNPJ já cadastrado.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Erro ao atualizar empresa %s", empresa_id)
        raise PersistenceError("Não foi possível salvar a empresa.") from exc

    log_alteracao_dados("update", "empresa", empresa.id, alterados, origem)
    return empresa, conflito


def alternar_status(
    empresa_id: int,
    ativo: Optional[bool] = None,
    origem: str = ORIGEM_FORMULARIO_EMPRESA,
    usuario_id: Optional[int] = None,
) -> Empresa:
    """Define (ou inverte, com ``ativo`` None) o status da empresa e registra snapshot."""
    empresa = obter_empresa(empresa_id)
    empresa.ativo = (not empresa.ativo) if ativo is None else bool(ativo)
    empresa.updated_at = now_naive()
    try:
        registrar_snapshot_empresa(empresa, origem, usuario_id=usuario_id)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Erro ao alterar status da empresa %s", empresa_id)
        raise PersistenceError("Não foi possível alterar o status da empresa.") from exc

    log_alteracao_dados("toggle_status", "empresa", empresa.id, ["ativo"], origem)
    return empresa


def consultar_empresas(termo: Optional[str] = None, mostrar_inativas: bool = False):
    """Consulta base da listagem, filtrada por nome, codigo ou CNPJ."""
    query = Empresa.query
    if not mostrar_inativas:
        query = query.filter(Empresa.ativo.is_(True))
    termo = (termo or "").strip()
    if termo:
        filtros = [
            Empresa.razao_social.ilike(f"%{termo}%"),
            Empresa.nome_fantasia.ilike(f"%{termo}%"),
            Empresa.codigo == termo,
        ]
        digitos = normalizar_digitos(termo)
        if digitos:
            filtros.append(Empresa.cnpj.like(f"{digitos}%"))
        query = query.filter(or_(*filtros))
    return query.order_by(Empresa.razao_social)


def serializar_empresa(empresa: Empresa, incluir_socios: bool = False) -> dict:
    dados = {"id": empresa.id}
    for campo in Empresa.CAMPOS:
        valor = getattr(empresa, campo)
        dados[campo] = valor.isoformat() if hasattr(valor, "isoformat") else valor
    if incluir_socios:
        from app.services.socios import serializar_socio

        dados["socios"] = [serializar_socio(v.socio, v) for v in empresa.socios_ativos]
    return dados
