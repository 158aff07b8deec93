"""Cadastro de socios (upsert por CPF) e vinculos empresa-socio."""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from app.models.tables import Empresa, EmpresaSocio, Socio
from app.services.exceptions import ConflictError, NotFoundError, PersistenceError, ValidationError
from app.services.historico import ORIGEM_FORMULARIO_SOCIO, registrar_snapshot_socio
from app.utils.datetime_utils import now_naive, parse_date
from app.utils.documentos import normalizar_digitos
from app.utils.logging_utils import log_alteracao_dados

logger = logging.getLogger(__name__)

CAMPOS_DATA = {"data_nascimento", "data_expedicao"}
CAMPOS_UF = {"uf", "uf_orgao_expedidor"}


def normalizar_cpf(cpf) -> str:
    """CPF somente com digitos; ``ValidationError`` se nao tiver 11 digitos."""
    digitos = normalizar_digitos(cpf)
    if len(digitos) != 11:
        raise ValidationError(f"CPF inválido: {cpf!r}. Informe os 11 dígitos.")
    return digitos


def _texto(valor):
    if valor is None:
        return None
    texto = str(valor).strip()
    return texto or None


def normalizar_dados_socio(dados: dict) -> dict:
    """Monta o conjunto completo de campos do socio a partir dos dados enviados.

    Todos os campos editaveis aparecem no resultado; os ausentes viram ``None``
    (sobrescrita completa na atualizacao).
    """
    campos = {}
    for campo in Socio.CAMPOS:
        valor = dados.get(campo)
        if campo == "cpf":
            campos[campo] = normalizar_cpf(valor)
        elif campo in CAMPOS_DATA:
            try:
                campos[campo] = parse_date(valor)
            except ValueError as exc:
                raise ValidationError(f"Data inválida em {campo}: {valor!r}.") from exc
        elif campo == "cep":
            campos[campo] = normalizar_digitos(valor) or None
        elif campo in CAMPOS_UF:
            texto = _texto(valor)
            campos[campo] = texto.upper()[:2] if texto else None
        else:
            campos[campo] = _texto(valor)

    if not campos["nome"]:
        raise ValidationError(f"Nome do sócio é obrigatório (CPF {campos['cpf']}).")
    return campos


class SocioRepository:
    """Cadastro de socios indexado por CPF (indice unico em ``socios.cpf``)."""

    @staticmethod
    def find_by_cpf(cpf) -> Optional[Socio]:
        digitos = normalizar_digitos(cpf)
        if not digitos:
            return None
        return Socio.query.filter_by(cpf=digitos).first()

    @classmethod
    def upsert(
        cls,
        dados: dict,
        origem: str,
        empresa_id: Optional[int] = None,
        participacao: Optional[Decimal] = None,
        usuario_id: Optional[int] = None,
    ) -> Socio:
        """Cria ou sobrescreve por completo o socio identificado por ``dados["cpf"]``.

        Registra sempre um snapshot do socio. Nao faz commit.

        Raises:
            ValidationError: CPF sem 11 digitos ou nome ausente.
            PersistenceError: violacao do indice unico (mesmo CPF gravado por outra operacao).
        """
        campos = normalizar_dados_socio(dados)
        socio = cls.find_by_cpf(campos["cpf"])
        acao = "update" if socio else "create"
        if socio is None:
            socio = Socio()
            db.session.add(socio)
        for campo, valor in campos.items():
            setattr(socio, campo, valor)
        socio.updated_at = now_naive()

        try:
            db.session.flush()
        except IntegrityError as exc:
            logger.warning("Conflito ao gravar socio CPF %s***: %s", campos["cpf"][:3], exc.orig)
            raise PersistenceError(
                f"Não foi possível gravar o sócio {campos['nome']}: CPF já cadastrado por outra operação."
            ) from exc

        registrar_snapshot_socio(
            socio,
            origem,
            empresa_id=empresa_id,
            participacao=participacao,
            usuario_id=usuario_id,
        )
        log_alteracao_dados(acao, "socio", socio.id, campos.keys(), origem)
        return socio


def upsert_vinculo(empresa: Empresa, socio: Socio, percentual: Decimal) -> EmpresaSocio:
    """Insere ou atualiza o vinculo ``(empresa, socio)`` e o reativa.

    A soma do quadro deve ter sido validada antes.
    """
    vinculo = EmpresaSocio.query.filter_by(empresa_id=empresa.id, socio_id=socio.id).first()
    if vinculo is None:
        vinculo = EmpresaSocio(empresa=empresa, socio=socio)
        db.session.add(vinculo)
    vinculo.participacao_percent = percentual
    vinculo.ativo = True
    vinculo.updated_at = now_naive()
    db.session.flush()
    return vinculo


def desligar_socio(empresa_id: int, socio_id: int) -> EmpresaSocio:
    """Inativa o vinculo do socio com a empresa, mantendo o registro."""
    vinculo = EmpresaSocio.query.filter_by(empresa_id=empresa_id, socio_id=socio_id).first()
    if vinculo is None:
        raise NotFoundError("Vínculo entre sócio e empresa não encontrado.")

    vinculo.ativo = False
    vinculo.updated_at = now_naive()
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Erro ao desligar socio %s da empresa %s", socio_id, empresa_id)
        raise PersistenceError("Não foi possível desligar o sócio.") from exc

    log_alteracao_dados("disengage", "empresa_socio", vinculo.id, ["ativo"], "socio_form")
    return vinculo


def atualizar_socio(
    socio_id: int,
    dados: dict,
    origem: str = ORIGEM_FORMULARIO_SOCIO,
    usuario_id: Optional[int] = None,
) -> Socio:
    """Sobrescreve os dados pessoais de um socio existente e faz o commit.

    As participacoes nao sao alteradas. O CPF so pode mudar para um que nao
    pertenca a outro socio.
    """
    socio = db.session.get(Socio, socio_id)
    if socio is None:
        raise NotFoundError("Sócio não encontrado.")

    if not dados.get("cpf"):
        dados = {**dados, "cpf": socio.cpf}
    campos = normalizar_dados_socio(dados)

    if campos["cpf"] != socio.cpf:
        outro = SocioRepository.find_by_cpf(campos["cpf"])
        if outro is not None and outro.id != socio.id:
            raise ConflictError("CPF já cadastrado para outro sócio.", campos=("cpf",))

    try:
        for campo, valor in campos.items():
            setattr(socio, campo, valor)
        socio.updated_at = now_naive()
        db.session.flush()
        registrar_snapshot_socio(socio, origem, usuario_id=usuario_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise PersistenceError("CPF já cadastrado para outro sócio.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Erro ao atualizar socio %s", socio_id)
        raise PersistenceError("Não foi possível salvar os dados do sócio.") from exc

    log_alteracao_dados("update", "socio", socio.id, campos.keys(), origem)
    return socio


def buscar_socios(termo: Optional[str] = None, limite: int = 50) -> List[Socio]:
    """Busca socios por nome ou prefixo do CPF."""
    query = Socio.query
    termo = (termo or "").strip()
    if termo:
        filtros = [Socio.nome.ilike(f"%{termo}%")]
        digitos = normalizar_digitos(termo)
        if digitos:
            filtros.append(Socio.cpf.like(f"{digitos}%"))
        query = query.filter(or_(*filtros))
    return query.order_by(Socio.nome).limit(limite).all()


def serializar_socio(socio: Socio, vinculo: Optional[EmpresaSocio] = None) -> dict:
    dados = {}
    for campo in Socio.CAMPOS:
        valor = getattr(socio, campo)
        dados[campo] = valor.isoformat() if hasattr(valor, "isoformat") else valor
    dados["id"] = socio.id
    if vinculo is not None:
        dados["participacao"] = str(vinculo.participacao_percent)
        dados["ativo"] = vinculo.ativo
    return dados
