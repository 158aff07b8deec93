import re
from datetime import datetime

import requests
from flask import current_app
from requests import RequestException

from app.services.exceptions import ValidationError
from app.utils.documentos import validar_cnpj
from app.utils.logging_utils import log_integracao_externa

BRASILAPI_URL = "https://brasilapi.com.br/api/cnpj/v1/{cnpj}"
RECEITAWS_URL = "https://www.receitaws.com.br/v1/cnpj/{cnpj}"


def somente_numeros(s: str) -> str:
    return re.sub(r"\D", "", s or "")


def ymd(d: str) -> str | None:
    if not d:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y%m%d"):
        try:
            return datetime.strptime(d, fmt).strftime("%Y-%m-%d")
        except ValueError:
            pass
    return None


def pick(d: dict, *keys):
    """Retorna o primeiro valor nao vazio encontrado nas chaves fornecidas."""
    if not isinstance(d, dict):
        return ""
    for key in keys:
        v = d.get(key)
        if v not in (None, "", [], {}):
            return v
    return ""


def _timeout() -> int:
    return current_app.config.get("EXTERNAL_API_TIMEOUT", 20)


def _get_json(servico: str, url: str, cnpj: str) -> dict | None:
    try:
        r = requests.get(url, timeout=_timeout(), proxies={"http": None, "https": None})
    except RequestException as e:
        log_integracao_externa(servico, {"cnpj": cnpj, "erro": str(e)}, "exception", cnpj)
        return None
    log_integracao_externa(servico, {"cnpj": cnpj}, str(r.status_code), cnpj)
    if r.status_code != 200:
        return None
    try:
        return r.json()
    except ValueError:
        return None


def get_brasilapi_cnpj(cnpj: str) -> dict | None:
    return _get_json("brasilapi", BRASILAPI_URL.format(cnpj=cnpj), cnpj)


def get_receitaws_cnpj(cnpj: str) -> dict | None:
    data = _get_json("receitaws", RECEITAWS_URL.format(cnpj=cnpj), cnpj)
    if not data or data.get("status") == "ERROR":
        return None
    return data


def _capital_em_centavos(valor) -> int | None:
    if valor in (None, ""):
        return None
    try:
        return int(round(float(str(valor).replace(",", ".")) * 100))
    except ValueError:
        return None


def _socios_qsa(d: dict) -> list:
    """Partners listed in the public register (names only; CPFs come masked)."""
    socios = []
    qsa = pick(d, "qsa", "quadro_societario")
    if isinstance(qsa, list):
        for s in qsa:
            nome = pick(s, "nome_socio", "nome", "nome_rep_legal")
            if nome:
                socios.append({
                    "nome": nome,
                    "qualificacao": pick(s, "qualificacao_socio", "qualificacao"),
                })
    return socios


def mapear_para_form(d: dict) -> dict:
    """Converte a resposta da BrasilAPI/ReceitaWS nos campos do cadastro de empresa."""
    logradouro = pick(d, "logradouro")
    tipo = pick(d, "descricao_tipo_de_logradouro")
    if not tipo and logradouro:
        tipo = str(logradouro).split(" ")[0]

    payload = {
        "cnpj": somente_numeros(pick(d, "cnpj")),
        "razao_social": pick(d, "razao_social", "nome"),
        "nome_fantasia": pick(d, "nome_fantasia", "fantasia"),
        "data_abertura": ymd(pick(d, "data_inicio_atividade", "abertura", "data_abertura")),
        "telefone": somente_numeros(pick(d, "ddd_telefone_1", "telefone")),
        "email_contato": pick(d, "email"),
        "endereco_cep": somente_numeros(pick(d, "cep")),
        "endereco_tipo": tipo,
        "endereco_logradouro": logradouro,
        "endereco_numero": pick(d, "numero"),
        "endereco_complemento": pick(d, "complemento"),
        "endereco_bairro": pick(d, "bairro"),
        "municipio": pick(d, "municipio", "cidade"),
        "uf": pick(d, "uf", "estado"),
        "capital_social_centavos": _capital_em_centavos(pick(d, "capital_social")),
    }
    payload = {k: v for k, v in payload.items() if v not in ("", None)}

    socios = _socios_qsa(d)
    if socios:
        payload["socios"] = socios
    return payload


def consultar_cnpj(cnpj_input: str) -> dict | None:
    """Consulta a BrasilAPI e, na falha, a ReceitaWS. ``None`` quando nenhuma responde."""
    cnpj = somente_numeros(cnpj_input)
    if not validar_cnpj(cnpj):
        raise ValidationError("CNPJ inválido")
    dados = get_brasilapi_cnpj(cnpj)
    if not dados:
        dados = get_receitaws_cnpj(cnpj)
    if not dados:
        return None
    return mapear_para_form(dados)
