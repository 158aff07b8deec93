"""
Utilitarios centralizados para datas do portal.

Padroes da aplicacao:
    - Timezone principal: America/Sao_Paulo (SAO_PAULO_TZ)
    - Armazenamento: DATETIME sem timezone (naive) em horario de Sao Paulo
    - Entrada: datas ISO (``2024-01-31``), brasileiras (``31/01/2024``)
      ou compactas do ERP (``20240131``)
    - Exibicao: sempre ``DD/MM/YYYY``

Uso:
    created_at = db.Column(db.DateTime, default=now_naive, nullable=False)
    data_nascimento = parse_date(dados.get("data_nascimento"))
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

SAO_PAULO_TZ = ZoneInfo("America/Sao_Paulo")

_FORMATOS_ENTRADA = ("%Y-%m-%d", "%d/%m/%Y", "%Y%m%d", "%d-%m-%Y")


def now_naive() -> datetime:
    """
    Retorna datetime atual em Sao Paulo, sem timezone (naive).

    Example:
        >>> created_at = db.Column(db.DateTime, default=now_naive)
    """
    return datetime.now(SAO_PAULO_TZ).replace(tzinfo=None)


def parse_date(valor) -> date | None:
    """
    Converte ``valor`` em ``date``.

    Aceita ``date``/``datetime``, strings nos formatos de ``_FORMATOS_ENTRADA``
    e timestamps ISO com hora (``2024-01-31T00:00:00``). Valores vazios
    retornam ``None``.

    Raises:
        ValueError: string em formato nao reconhecido.
    """
    if valor is None:
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor

    texto = str(valor).strip()
    if not texto:
        return None
    texto = texto.split("T", 1)[0].split(" ", 1)[0]
    for formato in _FORMATOS_ENTRADA:
        try:
            return datetime.strptime(texto, formato).date()
        except ValueError:
            continue
    raise ValueError(f"Data inválida: {valor!r}")


def format_datetime_br(dt: datetime | None, include_time: bool = True) -> str:
    """Formata datetime como "DD/MM/YYYY HH:MM" (ou apenas a data)."""
    if dt is None:
        return "-"

    if include_time and isinstance(dt, datetime):
        return dt.strftime("%d/%m/%Y %H:%M")
    return dt.strftime("%d/%m/%Y")


def format_date_br(dt: date | None) -> str:
    return format_datetime_br(dt, include_time=False)
