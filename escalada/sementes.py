"""
Nível 1 — datasets semente locais por proveniência (sem rede).

Cada dataset é um JSON versionado em ``data/seed/`` que mapeia o id externo
da academia (``provider_poi_id``) para cidade/região.  Dois formatos são
aceitos::

    [{"id": "B0FFG...", "city": "上海市", "province": "上海市"}, ...]
    {"B0FFG...": {"city": "上海市", "province": "上海市"}, ...}

A região pode vir como ``region``, ``state`` ou ``province``; o país como
``country`` / ``country_code`` ou, na falta, pelo país implícito do dataset
(:data:`~escalada.config.SEED_PAISES`).
"""

import json
import logging
from pathlib import Path
from typing import Any

from escalada.componentes import EnrichmentResult, texto_ou_none
from escalada.config import SEED_DATASETS, SEED_PAISES
from escalada.repositorio import Record

log = logging.getLogger(__name__)

_CHAVES_REGIAO = ("region", "state", "province")
_CHAVES_PAIS = ("country", "country_code")


def carregar_dataset_semente(path: Path) -> dict[str, dict[str, Any]]:
    """Lê um dataset semente e indexa por id externo.

    Arquivo ausente ou JSON inválido resulta em dataset vazio (com warning);
    itens sem id são descartados.

    Args:
        path: Caminho do arquivo JSON.

    Returns:
        Dicionário ``{id_externo: entrada}``.
    """
    if not path.exists():
        log.warning("  Dataset semente não encontrado: '%s'", path)
        return {}
    try:
        dados = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("  Dataset semente ilegível '%s': %s", path, exc)
        return {}

    indice: dict[str, dict[str, Any]] = {}
    if isinstance(dados, list):
        for item in dados:
            if isinstance(item, dict) and texto_ou_none(item.get("id")):
                indice[str(item["id"]).strip()] = item
    elif isinstance(dados, dict):
        for chave, item in dados.items():
            if isinstance(item, dict):
                indice[str(item.get("id") or chave).strip()] = item
            else:
                # validado de novo no lookup, que registra o warning
                indice[str(chave).strip()] = item
    else:
        log.warning("  Formato inesperado em '%s': %s", path, type(dados).__name__)

    log.info("  Semente '%s': %d entradas", path.name, len(indice))
    return indice


def _primeiro_campo(entrada: dict[str, Any], chaves: tuple[str, ...]) -> str | None:
    for chave in chaves:
        valor = texto_ou_none(entrada.get(chave))
        if valor:
            return valor
    return None


class SeedResolver:
    """Resolve academias cuja proveniência tem um dataset semente configurado."""

    tier = "seed"

    def __init__(
        self,
        datasets: dict[str, dict[str, Any]],
        paises: dict[str, str] | None = None,
    ) -> None:
        self.datasets = datasets
        self.paises = dict(SEED_PAISES if paises is None else paises)

    @classmethod
    def from_paths(
        cls,
        paths: dict[str, Path] | None = None,
        paises: dict[str, str] | None = None,
    ) -> "SeedResolver":
        """Carrega todos os datasets configurados (padrão: :data:`SEED_DATASETS`)."""
        paths = SEED_DATASETS if paths is None else paths
        datasets = {
            provider: carregar_dataset_semente(Path(path))
            for provider, path in paths.items()
        }
        return cls(datasets, paises=paises)

    def aplicavel(self, record: Record) -> bool:
        return record.provider in self.datasets

    def resolve(self, record: Record) -> EnrichmentResult | None:
        """Busca a academia no dataset da sua proveniência.

        Returns:
            Resultado com ``source="seed"`` ou ``None`` (sem match / sem dados /
            entrada malformada).
        """
        dataset = self.datasets.get(record.provider)
        if not dataset or not record.provider_poi_id:
            return None

        entrada = dataset.get(str(record.provider_poi_id).strip())
        if entrada is None:
            return None
        if not isinstance(entrada, dict):
            log.warning(
                "  Entrada semente malformada para %s/%s: %r",
                record.provider,
                record.provider_poi_id,
                entrada,
            )
            return None

        result = EnrichmentResult(
            city=texto_ou_none(entrada.get("city")),
            region=_primeiro_campo(entrada, _CHAVES_REGIAO),
            country=_primeiro_campo(entrada, _CHAVES_PAIS)
            or self.paises.get(record.provider),
            source=self.tier,
        )
        return None if result.vazio else result
