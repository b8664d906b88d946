"""
Nível 3 — extração de cidade/região/país dos metadados brutos (``raw``).

Quando o provedor de origem (Google Places) gravou os componentes de
endereço tipados na ingestão, eles são reaproveitados sem chamada de rede.

NÃO interpretamos a string de endereço livre: a heurística antiga de
regex por país se mostrou pouco confiável e ficou fora do pipeline.
"""

import logging
from typing import Any

from escalada.componentes import EnrichmentResult, extrair_de_componentes, texto_ou_none
from escalada.repositorio import Record

log = logging.getLogger(__name__)

# Caminhos onde cada formato de resposta guarda a lista de componentes
CAMINHOS_COMPONENTES: tuple[tuple[str, ...], ...] = (
    ("addressComponents",),
    ("details", "addressComponents"),
    ("result", "address_components"),
    ("address_components",),
)


def localizar_componentes(raw: Any) -> list[Any] | None:
    """Retorna a primeira lista de componentes não vazia encontrada em ``raw``."""
    if not isinstance(raw, dict):
        return None
    for caminho in CAMINHOS_COMPONENTES:
        atual: Any = raw
        for chave in caminho:
            atual = atual.get(chave) if isinstance(atual, dict) else None
        if isinstance(atual, list) and atual:
            return atual
    return None


class RawMetadataExtractor:
    """Aplica a política de componentes aos metadados gravados na ingestão."""

    tier = "raw"

    def resolve(self, record: Record) -> EnrichmentResult | None:
        componentes = localizar_componentes(record.raw)
        if componentes is None:
            return None

        result = extrair_de_componentes(componentes, source=self.tier)
        if not result.country and isinstance(record.raw, dict):
            pais = texto_ou_none(record.raw.get("country"))
            if pais:
                result = EnrichmentResult(
                    city=result.city,
                    region=result.region,
                    country=pais.upper(),
                    source=self.tier,
                )

        if result.vazio:
            log.debug("  raw sem cidade/região para %s", record.id)
            return None
        return result
