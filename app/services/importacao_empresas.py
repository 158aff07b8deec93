"""Importacao em lote de empresas a partir do CSV exportado pelo ERP.

Colunas esperadas::

    CODIGOEMPRESA, CODIGOESTAB, INSCRFEDERAL, DATAINICIOATIV,
    NOMEESTABCOMPLETO, NOMEFANTASIA, DESCRTIPOLOGRAD, ENDERECOESTAB,
    NUMENDERESTAB, COMPLENDERESTAB, BAIRROENDERESTAB, NOMEMUNIC,
    SIGLAESTADO, CEPENDERESTAB, EMAILDPO

Regras:
    - a empresa e localizada pelo CNPJ (``INSCRFEDERAL``) e atualizada, ou criada;
    - empresa com vinculos operacionais mantem o codigo ja gravado;
    - codigo pertencente a outro CNPJ descarta a linha;
    - linhas sem CNPJ ou razao social sao descartadas;
    - cada empresa importada recebe um snapshot com origem ``csv_import``.

Todo o arquivo e gravado em uma unica transacao.
"""

import csv
import io
import logging
import re
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.models.tables import Empresa
from app.services.empresas import possui_vinculos
from app.services.exceptions import PersistenceError, ValidationError
from app.services.historico import ORIGEM_IMPORTACAO_CSV, registrar_snapshot_empresa
from app.utils.datetime_utils import now_naive, parse_date
from app.utils.documentos import normalizar_digitos, remover_acentos
from app.utils.logging_utils import log_alteracao_dados

logger = logging.getLogger(__name__)

COLUNAS = {
    "CODIGOEMPRESA": "codigo",
    "CODIGOESTAB": "filial",
    "INSCRFEDERAL": "cnpj",
    "DATAINICIOATIV": "data_abertura",
    "NOMEESTABCOMPLETO": "razao_social",
    "NOMEFANTASIA": "nome_fantasia",
    "DESCRTIPOLOGRAD": "endereco_tipo",
    "ENDERECOESTAB": "endereco_logradouro",
    "NUMENDERESTAB": "endereco_numero",
    "COMPLENDERESTAB": "endereco_complemento",
    "BAIRROENDERESTAB": "endereco_bairro",
    "NOMEMUNIC": "municipio",
    "SIGLAESTADO": "uf",
    "CEPENDERESTAB": "endereco_cep",
    "EMAILDPO": "email_contato",
}
CAMPOS_SANITIZADOS = {
    "razao_social",
    "nome_fantasia",
    "endereco_logradouro",
    "endereco_complemento",
    "endereco_bairro",
    "municipio",
}
_CARACTERES_INVALIDOS = re.compile(r"[^a-zA-Z0-9\s\-./,]")


def decodificar_arquivo(conteudo: bytes) -> str:
    """Decode as UTF-8, falling back to Windows-1252 (ANSI exports from Excel)."""
    try:
        return conteudo.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    try:
        return conteudo.decode("cp1252")
    except UnicodeDecodeError as exc:
        raise ValidationError("Erro de codificação do arquivo. Salve como UTF-8 ou ANSI.") from exc


def sanitizar_texto(valor) -> Optional[str]:
    """Strip accents and keep only letters, digits, spaces and ``-./,``."""
    texto = remover_acentos(valor)
    if not texto:
        return None
    return _CARACTERES_INVALIDOS.sub("", texto).strip() or None


def _detectar_delimitador(texto: str) -> str:
    cabecalho = texto.splitlines()[0] if texto else ""
    return ";" if cabecalho.count(";") > cabecalho.count(",") else ","


def _mapear_linha(linha: dict) -> dict:
    dados = {}
    for coluna, campo in COLUNAS.items():
        valor = (linha.get(coluna) or "").strip()
        if campo in CAMPOS_SANITIZADOS:
            dados[campo] = sanitizar_texto(valor)
        elif campo in ("cnpj", "endereco_cep"):
            dados[campo] = normalizar_digitos(valor) or None
        elif campo == "data_abertura":
            dados[campo] = parse_date(valor)
        elif campo == "uf":
            dados[campo] = valor.upper()[:2] or None
        else:
            dados[campo] = valor or None
    return dados


def importar_empresas_csv(conteudo: bytes, usuario_id: Optional[int] = None) -> dict:
    """Import the ERP company CSV.

    Returns:
        ``{"success": True, "count": imported, "errors": skipped}``

    Raises:
        ValidationError: undecodable file or missing ``INSCRFEDERAL`` column.
        PersistenceError: database failure; nothing is imported.
    """
    texto = decodificar_arquivo(conteudo)
    leitor = csv.DictReader(io.StringIO(texto), delimiter=_detectar_delimitador(texto))
    cabecalho = {(c or "").strip().upper() for c in (leitor.fieldnames or [])}
    if "INSCRFEDERAL" not in cabecalho:
        raise ValidationError("Arquivo CSV sem a coluna INSCRFEDERAL.")

    importadas = 0
    erros = 0
    try:
        for numero, bruta in enumerate(leitor, start=2):
            linha = {(k or "").strip().upper(): v for k, v in bruta.items()}
            try:
                dados = _mapear_linha(linha)
            except ValueError as exc:
                logger.warning("Linha %s ignorada: %s", numero, exc)
                erros += 1
                continue

            if not dados["cnpj"] or not dados["razao_social"]:
                logger.warning("Linha %s ignorada: CNPJ ou razao social ausente", numero)
                erros += 1
                continue

            empresa = Empresa.query.filter_by(cnpj=dados["cnpj"]).first()
            if empresa is not None and dados["codigo"] != empresa.codigo and possui_vinculos(empresa.id):
                logger.warning(
                    "Empresa %s possui vinculos; codigo %s mantido (CSV trouxe %s)",
                    dados["cnpj"],
                    empresa.codigo,
                    dados["codigo"],
                )
                dados["codigo"] = empresa.codigo

            if not dados["codigo"]:
                if empresa is None:
                    logger.warning("Linha %s ignorada: empresa nova sem CODIGOEMPRESA", numero)
                    erros += 1
                    continue
                dados["codigo"] = empresa.codigo

            dono_codigo = Empresa.query.filter_by(codigo=dados["codigo"]).first()
            if dono_codigo is not None and dono_codigo.cnpj != dados["cnpj"]:
                logger.warning(
                    "Linha %s ignorada: codigo %s pertence ao CNPJ %s",
                    numero,
                    dados["codigo"],
                    dono_codigo.cnpj,
                )
                erros += 1
                continue

            if empresa is None:
                empresa = Empresa(ativo=True)
                db.session.add(empresa)
            for campo, valor in dados.items():
                setattr(empresa, campo, valor)
            empresa.updated_at = now_naive()
            db.session.flush()
            registrar_snapshot_empresa(empresa, ORIGEM_IMPORTACAO_CSV, usuario_id=usuario_id)
            importadas += 1

        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Erro ao importar empresas do CSV")
        raise PersistenceError("Erro ao processar importação.") from exc

    log_alteracao_dados("import", "empresa", None, ["count", "errors"], ORIGEM_IMPORTACAO_CSV)
    logger.info("Importacao de empresas concluida: %s importadas, %s com erro", importadas, erros)
    return {"success": True, "count": importadas, "errors": erros}
