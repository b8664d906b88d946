"""
Resultado de enriquecimento e política de extração de componentes de endereço.

A mesma política vale para os metadados brutos gravados na ingestão (nível 3)
e para a resposta da Geocoding API (nível 4):

  - **cidade**: primeiro componente ``locality``; na falta, primeiro
    ``administrative_area_level_2``
  - **região**: primeiro ``administrative_area_level_1`` (nome curto preferido)
  - **país**: primeiro ``country`` (apenas o nome curto / código)

Strings de endereço livre NÃO são interpretadas aqui.
"""

from dataclasses import dataclass, replace
from typing import Any

TIPO_CIDADE = "locality"
TIPO_CIDADE_FALLBACK = "administrative_area_level_2"
TIPO_REGIAO = "administrative_area_level_1"
TIPO_PAIS = "country"

# Provedores diferentes usam camelCase (Places API nova) ou snake_case (Geocoding)
_CHAVES_NOME_LONGO = ("long_name", "longName", "name")
_CHAVES_NOME_CURTO = ("short_name", "shortName")


@dataclass(frozen=True)
class EnrichmentResult:
    """Cidade/região/país resolvidos por um dos níveis do pipeline."""

    city: str | None = None
    region: str | None = None
    country: str | None = None
    source: str = "api"

    @property
    def vazio(self) -> bool:
        """``True`` quando não há cidade nem região (país sozinho não basta)."""
        return not self.city and not self.region

    def com_fonte(self, source: str) -> "EnrichmentResult":
        return replace(self, source=source)


def texto_ou_none(valor: object) -> str | None:
    """Normaliza para ``str`` sem espaços extras; vazio/nulo vira ``None``."""
    if valor is None:
        return None
    if isinstance(valor, (list, tuple, dict, set)):
        return None
    texto = str(valor).strip()
    return texto or None


def _primeiro_nome(componente: dict[str, Any], chaves: tuple[str, ...]) -> str | None:
    for chave in chaves:
        nome = texto_ou_none(componente.get(chave))
        if nome:
            return nome
    return None


def _tipos(componente: dict[str, Any]) -> list[str]:
    tipos = componente.get("types") or []
    if isinstance(tipos, str):
        return [tipos]
    if not isinstance(tipos, (list, tuple)):
        return []
    return [str(t) for t in tipos]


def _primeiro_com_tipo(
    componentes: list[dict[str, Any]], tipo: str
) -> dict[str, Any] | None:
    for componente in componentes:
        if tipo in _tipos(componente):
            return componente
    return None


def extrair_de_componentes(
    componentes: list[Any], source: str
) -> EnrichmentResult:
    """Aplica a política de extração a uma lista de componentes tipados.

    Args:
        componentes: Lista no formato ``[{"types": [...], "long_name": ...,
                     "short_name": ...}, ...]``.  Itens que não são ``dict``
                     são ignorados.
        source:      Tag de origem gravada no resultado.

    Returns:
        :class:`EnrichmentResult` — possivelmente vazio (ver
        :attr:`EnrichmentResult.vazio`).
    """
    validos = [c for c in componentes if isinstance(c, dict)]

    city = None
    comp_cidade = _primeiro_com_tipo(validos, TIPO_CIDADE) or _primeiro_com_tipo(
        validos, TIPO_CIDADE_FALLBACK
    )
    if comp_cidade:
        city = _primeiro_nome(comp_cidade, _CHAVES_NOME_LONGO)

    region = None
    comp_regiao = _primeiro_com_tipo(validos, TIPO_REGIAO)
    if comp_regiao:
        region = _primeiro_nome(comp_regiao, _CHAVES_NOME_CURTO + _CHAVES_NOME_LONGO)

    country = None
    comp_pais = _primeiro_com_tipo(validos, TIPO_PAIS)
    if comp_pais:
        country = _primeiro_nome(comp_pais, _CHAVES_NOME_CURTO)

    return EnrichmentResult(city=city, region=region, country=country, source=source)
