"""Regra de reconciliacao das participacoes societarias.

As participacoes sao convertidas para ``Decimal`` e somadas sem perda; apenas o
total e arredondado em duas casas (ROUND_HALF_UP) e comparado em pontos-base
(1% = 100). Assim ``33.33 * 3`` totaliza 9999 e e rejeitado, enquanto
``33.333 + 33.333 + 33.334`` totaliza exatamente 100.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

from app.services.exceptions import ReconciliationError, ValidationError

CENTESIMO = Decimal("0.01")
TOTAL_PONTOS_BASE = 10000
PERCENTUAL_MAXIMO = Decimal("100")


def converter_percentual(valor) -> Decimal:
    """Converte ``valor`` em ``Decimal`` exato, validando o intervalo [0, 100].

    Aceita numeros ou strings, inclusive com virgula decimal (``"12,5"``).
    """
    if valor is None or isinstance(valor, bool):
        raise ValidationError("Participação do sócio é obrigatória.")
    texto = str(valor).strip().replace("%", "")
    if "," in texto:
        texto = texto.replace(".", "").replace(",", ".")
    try:
        percentual = Decimal(texto)
    except InvalidOperation as exc:
        raise ValidationError(f"Participação inválida: {valor!r}.") from exc

    if not percentual.is_finite():
        raise ValidationError(f"Participação inválida: {valor!r}.")
    if percentual < 0 or percentual > PERCENTUAL_MAXIMO:
        raise ValidationError("A participação de cada sócio deve estar entre 0 e 100%.")
    return percentual


def normalizar_percentual(valor) -> Decimal:
    """Percentual com duas casas, como e gravado no vinculo."""
    return converter_percentual(valor).quantize(CENTESIMO, rounding=ROUND_HALF_UP)


def para_pontos_base(percentual: Decimal) -> int:
    return int(percentual * 100)


def _extrair_percentual(item):
    if isinstance(item, dict):
        return item.get("participacao", item.get("percentual"))
    if isinstance(item, (tuple, list)):
        return item[-1]
    return item


def somar_participacoes(itens: Iterable) -> Decimal:
    """Soma exata das participacoes, arredondada em duas casas."""
    total = sum((converter_percentual(_extrair_percentual(item)) for item in itens), Decimal(0))
    return total.quantize(CENTESIMO, rounding=ROUND_HALF_UP)


def validar_participacoes(itens) -> Optional[Decimal]:
    """Valida que as participacoes somam exatamente 100,00%.

    ``itens`` pode conter pares ``(socio, percentual)``, dicionarios com a chave
    ``participacao`` ou percentuais soltos. Um quadro vazio nao e validado e
    retorna ``None``; caso contrario retorna o total aprovado.

    Raises:
        ValidationError: percentual ausente, nao numerico ou fora de [0, 100].
        ReconciliationError: soma diferente de 100,00.
    """
    itens = list(itens or [])
    if not itens:
        return None

    total = somar_participacoes(itens)
    if para_pontos_base(total) != TOTAL_PONTOS_BASE:
        raise ReconciliationError(total)
    return total
