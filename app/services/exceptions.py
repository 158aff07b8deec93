"""Excecoes do dominio societario.

Os servicos levantam estas excecoes; as funcoes de fronteira
(``salvar_quadro_societario``, rotas e API) as convertem em
``{"success": False, "error": ...}`` ou em mensagens flash.
"""

from decimal import Decimal
from typing import Iterable, Optional


MENSAGEM_SOMA_PARTICIPACOES = "A soma das participações dos sócios deve ser exatamente 100%."


class SocietarioError(Exception):
    """Base das falhas de validacao e persistencia do quadro societario."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(SocietarioError):
    """Dados de entrada invalidos (CPF, percentual, campos obrigatorios)."""


class ReconciliationError(ValidationError):
    """Soma das participacoes diferente de 100,00%."""

    def __init__(self, total: Decimal, message: str = MENSAGEM_SOMA_PARTICIPACOES):
        super().__init__(message)
        self.total = total


class ConflictError(SocietarioError):
    """Alteracao de campo imutavel ou duplicidade de codigo/CNPJ."""

    def __init__(self, message: str, campos: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.campos = tuple(campos or ())


class NotFoundError(SocietarioError):
    """Empresa, socio ou vinculo inexistente."""


class PersistenceError(SocietarioError):
    """Falha de banco traduzida para mensagem legivel."""


class HistoricoImutavelError(SocietarioError):
    """Tentativa de alterar ou remover um snapshot de historico."""


class IntegracaoExternaError(SocietarioError):
    """Falha ao consultar um servico externo (CEP, CNPJ)."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code
