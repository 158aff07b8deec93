"""Consulta de endereco por CEP.

Usa a base configurada em ``CEP_API_BASE_URL`` (compativel com a API dos
Correios, autenticada por ``CEP_API_TOKEN``) quando as duas variaveis estao
definidas; caso contrario consulta o ViaCEP.
"""

import requests
from flask import current_app
from requests import RequestException

from app.services.exceptions import IntegracaoExternaError, NotFoundError, ValidationError
from app.utils.documentos import normalizar_digitos
from app.utils.logging_utils import log_integracao_externa

VIACEP_URL = "https://viacep.com.br/ws/{cep}/json/"


def mapear_endereco(raw: dict) -> dict:
    """Normalize ViaCEP/Correios payloads to the fields used by the forms.

    ``tipo`` is the first word of the street (``Rua``, ``Avenida``) and
    ``nome`` the remainder.
    """
    raw = raw or {}
    logradouro = raw.get("logradouro") or raw.get("street") or ""
    partes = str(logradouro).split(" ")
    return {
        "logradouro": logradouro,
        "complemento": raw.get("complemento") or raw.get("complement") or "",
        "bairro": raw.get("bairro") or raw.get("neighborhood") or "",
        "localidade": raw.get("localidade") or raw.get("city") or raw.get("municipio") or "",
        "uf": raw.get("uf") or raw.get("state") or "",
        "tipo": partes[0] if logradouro else "",
        "nome": " ".join(partes[1:]) if logradouro else "",
    }


def _timeout() -> int:
    return current_app.config.get("EXTERNAL_API_TIMEOUT", 20)


def _consultar_base_configurada(cep: str, base_url: str, token: str) -> dict:
    headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
    try:
        r = requests.get(f"{base_url}{cep}", headers=headers, timeout=_timeout())
    except RequestException as e:
        log_integracao_externa("correios_cep", {"cep": cep, "erro": str(e)}, "exception", cep)
        raise IntegracaoExternaError("Falha na consulta Correios") from e

    log_integracao_externa("correios_cep", {"cep": cep}, str(r.status_code), cep)
    if r.status_code != 200:
        raise IntegracaoExternaError("Falha na consulta Correios", status_code=r.status_code)
    data = r.json()
    return data[0] if isinstance(data, list) and data else data


def _consultar_viacep(cep: str) -> dict:
    try:
        r = requests.get(VIACEP_URL.format(cep=cep), timeout=_timeout())
    except RequestException as e:
        log_integracao_externa("viacep", {"cep": cep, "erro": str(e)}, "exception", cep)
        raise IntegracaoExternaError("Falha na consulta ViaCEP") from e

    log_integracao_externa("viacep", {"cep": cep}, str(r.status_code), cep)
    if r.status_code != 200:
        raise IntegracaoExternaError("Falha na consulta ViaCEP", status_code=r.status_code)
    data = r.json()
    if data.get("erro"):
        raise NotFoundError("CEP não encontrado")
    return data


def consultar_cep(cep_input: str) -> dict:
    """Return the mapped address for ``cep_input``.

    Raises:
        ValidationError: CEP without 8 digits.
        NotFoundError: unknown CEP.
        IntegracaoExternaError: upstream failure.
    """
    cep = normalizar_digitos(cep_input)
    if len(cep) != 8:
        raise ValidationError("CEP inválido")

    base_url = (current_app.config.get("CEP_API_BASE_URL") or "").strip()
    token = (current_app.config.get("CEP_API_TOKEN") or "").strip()
    if base_url and token:
        data = _consultar_base_configurada(cep, base_url, token)
    else:
        data = _consultar_viacep(cep)
    return mapear_endereco(data or {})
