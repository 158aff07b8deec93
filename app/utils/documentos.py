"""Normalizacao e validacao de documentos brasileiros (CPF, CNPJ, CEP)."""

import re
import unicodedata

_NAO_DIGITOS = re.compile(r"\D")


def normalizar_digitos(valor) -> str:
    """Retorna apenas os digitos de ``valor`` (``None`` vira string vazia)."""
    if valor is None:
        return ""
    return _NAO_DIGITOS.sub("", str(valor))


def _digito_verificador(numeros: str, pesos) -> int:
    soma = sum(int(num) * peso for num, peso in zip(numeros, pesos))
    resto = soma % 11
    return 0 if resto < 2 else 11 - resto


def validar_cpf(cpf) -> bool:
    """Valida um CPF utilizando os digitos verificadores."""
    cpf = normalizar_digitos(cpf)
    if len(cpf) != 11 or cpf == cpf[0] * 11:
        return False

    digito1 = _digito_verificador(cpf[:9], range(10, 1, -1))
    digito2 = _digito_verificador(cpf[:10], range(11, 1, -1))
    return cpf[-2:] == f"{digito1}{digito2}"


def validar_cnpj(cnpj) -> bool:
    """Valida um CNPJ utilizando os digitos verificadores."""
    cnpj = normalizar_digitos(cnpj)
    if len(cnpj) != 14 or cnpj == cnpj[0] * 14:
        return False

    pesos1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    digito1 = _digito_verificador(cnpj[:12], pesos1)
    digito2 = _digito_verificador(cnpj[:13], [6] + pesos1)
    return cnpj[-2:] == f"{digito1}{digito2}"


def formatar_cpf(cpf) -> str:
    cpf = normalizar_digitos(cpf)
    if len(cpf) != 11:
        return cpf
    return f"{cpf[:3]}.{cpf[3:6]}.{cpf[6:9]}-{cpf[9:]}"


def formatar_cnpj(cnpj) -> str:
    cnpj = normalizar_digitos(cnpj)
    if len(cnpj) != 14:
        return cnpj
    return f"{cnpj[:2]}.{cnpj[2:5]}.{cnpj[5:8]}/{cnpj[8:12]}-{cnpj[12:]}"


def remover_acentos(texto):
    """Remove acentos e caracteres de controle, preservando ``None``."""
    if texto is None:
        return None
    normalizado = unicodedata.normalize("NFKD", str(texto))
    sem_acento = "".join(c for c in normalizado if not unicodedata.combining(c))
    return "".join(c for c in sem_acento if c.isprintable()).strip()
