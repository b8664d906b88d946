"""
Orquestrador do enriquecimento de cidade/região/país das academias.

Cascata em 4 níveis, do mais barato ao mais caro, parando no primeiro
resultado com cidade ou região:

  - **Nível 1** (``"seed"``): dataset semente da proveniência (sem rede)
  - **Nível 2** (``"cache"``): resultado da API gravado em execuções anteriores
  - **Nível 3** (``"raw"``): componentes de endereço gravados na ingestão
  - **Nível 4** (``"api"``): Google Geocoding API, em grupos concorrentes de
    tamanho fixo com pausa entre grupos (só com ``--api``)

Os níveis 1–3 rodam em sequência, sem I/O de rede.  O nível 4 usa um pool
de threads do tamanho do grupo: cada grupo é aguardado por inteiro antes do
próximo, então nunca há mais que ``tamanho_grupo`` requisições em voo.
Gravações no repositório e no cache acontecem na thread principal.

Um campo já preenchido na academia nunca é sobrescrito; o país só é
preenchido quando está vazio.

Uso::

    python -m escalada enriquecer                 # sementes + cache + raw
    python -m escalada enriquecer --api           # inclui a Geocoding API
    python -m escalada enriquecer --api --limite 100
"""

import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from tqdm import tqdm

from escalada.cache import CacheStore
from escalada.componentes import EnrichmentResult
from escalada.config import (
    CHECKPOINT_EVERY,
    GEOCACHE_CSV,
    GEOCODING_GROUP_PAUSE,
    GEOCODING_GROUP_SIZE,
    ConfigurationError,
)
from escalada.geocodificacao import GeocodeOutcome, GeocodeStatus, GeocodingClient
from escalada.metadados import RawMetadataExtractor
from escalada.repositorio import Completude, Record, RecordStore
from escalada.sementes import SeedResolver

log = logging.getLogger(__name__)

CAMPOS_GEO = ("city", "region", "country")

#: Chave dos contadores para desfechos sem nível (nenhum nível respondeu)
SEM_NIVEL = "sem nível"


# ===========================================================================
# Tipos
# ===========================================================================


class Resolver(Protocol):
    """Nível síncrono da cascata (1–3)."""

    tier: str

    def resolve(self, record: Record) -> EnrichmentResult | None: ...


class CacheResolver:
    """Adapta o :class:`CacheStore` à interface de :class:`Resolver`."""

    tier = "cache"

    def __init__(self, cache: CacheStore) -> None:
        self.cache = cache

    def resolve(self, record: Record) -> EnrichmentResult | None:
        result = self.cache.get(record.id)
        return None if result is None or result.vazio else result


class OutcomeKind(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERRORED = "errored"


@dataclass(frozen=True)
class CandidateOutcome:
    """Desfecho do processamento de uma academia (sem exceções de controle)."""

    record_id: str
    kind: OutcomeKind
    tier: str | None = None
    campos: tuple[str, ...] = ()
    detalhe: str = ""


@dataclass
class RunOptions:
    """Parâmetros do operador para uma execução."""

    limite: int | None = None
    usar_api: bool = False
    provider: str | None = None


@dataclass
class RunSummary:
    """Contadores da execução, particionados por nível."""

    atualizados: Counter = field(default_factory=Counter)
    erros: Counter = field(default_factory=Counter)
    ignorados: Counter = field(default_factory=Counter)
    limitados: int = 0
    chamadas_api: int = 0
    candidatos: int = 0
    completude_antes: Completude | None = None
    completude_depois: Completude | None = None

    @property
    def total_atualizados(self) -> int:
        return sum(self.atualizados.values())

    @property
    def total_erros(self) -> int:
        return sum(self.erros.values())

    @property
    def total_ignorados(self) -> int:
        return sum(self.ignorados.values())

    def registrar(self, outcome: CandidateOutcome) -> None:
        if outcome.kind is OutcomeKind.UPDATED:
            self.atualizados[outcome.tier] += 1
        elif outcome.kind is OutcomeKind.ERRORED:
            self.erros[outcome.tier or SEM_NIVEL] += 1
        else:
            self.ignorados[outcome.tier or SEM_NIVEL] += 1


# ===========================================================================
# Regras de mesclagem
# ===========================================================================


def _vazio(valor: str | None) -> bool:
    return not (valor or "").strip()


def campos_para_preencher(record: Record, result: EnrichmentResult) -> dict[str, str]:
    """Campos do resultado que preenchem lacunas da academia (nunca sobrescreve)."""
    campos: dict[str, str] = {}
    for campo in CAMPOS_GEO:
        novo = getattr(result, campo)
        if novo and _vazio(getattr(record, campo)):
            campos[campo] = novo
    return campos


# ===========================================================================
# Orquestrador
# ===========================================================================


class EnrichmentOrchestrator:
    """Executa a cascata de níveis sobre um lote de academias candidatas.

    O :class:`CacheStore` é construído aqui e pertence ao orquestrador; os
    demais módulos só o veem através de :attr:`cache`.
    """

    def __init__(
        self,
        store: RecordStore,
        cache_path: Path = GEOCACHE_CSV,
        seed: SeedResolver | None = None,
        geocoder: GeocodingClient | None = None,
        tamanho_grupo: int = GEOCODING_GROUP_SIZE,
        pausa_grupo: float = GEOCODING_GROUP_PAUSE,
        checkpoint_a_cada: int = CHECKPOINT_EVERY,
    ) -> None:
        if tamanho_grupo < 1:
            raise ConfigurationError(f"tamanho_grupo inválido: {tamanho_grupo}")
        self.store = store
        self.cache = CacheStore(cache_path)
        self.seed = seed if seed is not None else SeedResolver({})
        self.geocoder = geocoder
        self.tamanho_grupo = tamanho_grupo
        self.pausa_grupo = pausa_grupo
        self.checkpoint_a_cada = checkpoint_a_cada
        self.resolvers: list[Resolver] = [
            self.seed,
            CacheResolver(self.cache),
            RawMetadataExtractor(),
        ]

    # -----------------------------------------------------------------------
    # Níveis 1–3
    # -----------------------------------------------------------------------

    def _resolver_local(
        self, record: Record
    ) -> EnrichmentResult | CandidateOutcome | None:
        """Primeiro resultado aceito dos níveis 1-3, ou desfecho de erro do nível que falhou."""
        for resolver in self.resolvers:
            try:
                result = resolver.resolve(record)
            except Exception as exc:  # falha de um candidato não derruba o lote
                log.exception("  Erro no nível %s para %s", resolver.tier, record.id)
                return CandidateOutcome(
                    record.id, OutcomeKind.ERRORED, resolver.tier, detalhe=str(exc)
                )
            if result is not None and not result.vazio:
                return result
        return None

    def _aplicar(self, record: Record, result: EnrichmentResult) -> CandidateOutcome:
        """Grava no repositório os campos que preenchem lacunas."""
        campos = campos_para_preencher(record, result)
        if not campos:
            return CandidateOutcome(
                record.id, OutcomeKind.SKIPPED, result.source, detalhe="nada a preencher"
            )
        try:
            escritos = self.store.preencher_campos(record.id, campos)
        except SQLAlchemyError as exc:
            log.error("  Erro ao atualizar academia %s: %s", record.id, exc)
            return CandidateOutcome(
                record.id, OutcomeKind.ERRORED, result.source, detalhe=str(exc)
            )
        if not escritos:
            return CandidateOutcome(
                record.id, OutcomeKind.SKIPPED, result.source, detalhe="já preenchida"
            )
        for campo in escritos:
            setattr(record, campo, campos[campo])
        return CandidateOutcome(
            record.id, OutcomeKind.UPDATED, result.source, campos=tuple(escritos)
        )

    # -----------------------------------------------------------------------
    # Nível 4
    # -----------------------------------------------------------------------

    def _geocodificar(self, record: Record) -> GeocodeOutcome:
        try:
            return self.geocoder.resolve(record.lat, record.lng, record.address)
        except Exception as exc:  # falha de um candidato não derruba o lote
            log.exception("  Erro inesperado geocodificando %s", record.id)
            return GeocodeOutcome(GeocodeStatus.ERROR, detalhe=str(exc))

    def _processar_api(
        self, pendentes: list[Record], summary: RunSummary
    ) -> None:
        grupos = [
            pendentes[i : i + self.tamanho_grupo]
            for i in range(0, len(pendentes), self.tamanho_grupo)
        ]
        aceitos_desde_checkpoint = 0

        with ThreadPoolExecutor(
            max_workers=self.tamanho_grupo, thread_name_prefix="geocode"
        ) as executor:
            for n, grupo in enumerate(tqdm(grupos, desc="Geocodificando", unit="grupo")):
                futuros = {executor.submit(self._geocodificar, r): r for r in grupo}
                wait(futuros)
                summary.chamadas_api += len(grupo)

                for futuro, record in futuros.items():
                    outcome = futuro.result()
                    resultado = self._tratar_resposta(record, outcome, summary)
                    summary.registrar(resultado)
                    if outcome.status is GeocodeStatus.OK:
                        aceitos_desde_checkpoint += 1

                if aceitos_desde_checkpoint >= self.checkpoint_a_cada:
                    if self.cache.flush():
                        log.info("  Checkpoint: cache gravado (%d entradas)", len(self.cache))
                    aceitos_desde_checkpoint = 0

                if n + 1 < len(grupos) and self.pausa_grupo > 0:
                    time.sleep(self.pausa_grupo)

    def _tratar_resposta(
        self, record: Record, outcome: GeocodeOutcome, summary: RunSummary
    ) -> CandidateOutcome:
        if outcome.status is GeocodeStatus.OK and outcome.result is not None:
            self.cache.put(record.id, outcome.result)
            return self._aplicar(record, outcome.result)
        if outcome.status is GeocodeStatus.RATE_LIMITED:
            summary.limitados += 1
            return CandidateOutcome(
                record.id, OutcomeKind.SKIPPED, "api", detalhe="rate limit"
            )
        if outcome.status is GeocodeStatus.ERROR:
            return CandidateOutcome(
                record.id, OutcomeKind.ERRORED, "api", detalhe=outcome.detalhe
            )
        return CandidateOutcome(
            record.id, OutcomeKind.SKIPPED, "api", detalhe=outcome.detalhe
        )

    # -----------------------------------------------------------------------
    # Execução
    # -----------------------------------------------------------------------

    def _validar(self, options: RunOptions) -> None:
        if options.usar_api and self.geocoder is None:
            raise ConfigurationError(
                "Nível de API solicitado sem cliente de geocodificação configurado."
            )
        if options.limite is not None and options.limite < 0:
            raise ConfigurationError(f"limite inválido: {options.limite}")

    def run(
        self, candidatos: Sequence[Record], options: RunOptions | None = None
    ) -> RunSummary:
        """Enriquece as academias candidatas.

        Args:
            candidatos: Academias com cidade ou região faltando.
            options:    Limite de registros e habilitação do nível 4.

        Returns:
            :class:`RunSummary` com os contadores da execução.

        Raises:
            ConfigurationError: ``usar_api=True`` sem cliente de geocodificação.
        """
        options = options or RunOptions()
        self._validar(options)

        candidatos = list(candidatos)
        if options.limite is not None:
            candidatos = candidatos[: options.limite]
            log.info("  Limite aplicado: até %d academia(s)", options.limite)

        summary = RunSummary(candidatos=len(candidatos))
        self.cache.load()

        try:
            log.info("[NÍVEIS 1-3] Sementes, cache e metadados brutos...")
            pendentes: list[Record] = []
            for record in candidatos:
                result = self._resolver_local(record)
                if isinstance(result, CandidateOutcome):
                    summary.registrar(result)
                elif result is not None:
                    summary.registrar(self._aplicar(record, result))
                elif options.usar_api and not self.seed.aplicavel(record):
                    pendentes.append(record)
                else:
                    summary.registrar(
                        CandidateOutcome(record.id, OutcomeKind.SKIPPED, detalhe="sem dados")
                    )

            log.info(
                "  Resolvidas localmente: %d | pendentes para API: %d",
                summary.total_atualizados,
                len(pendentes),
            )

            if pendentes:
                log.info("[NÍVEL 4] Geocodificando %d academia(s) via API...", len(pendentes))
                self._processar_api(pendentes, summary)
        finally:
            if self.cache.sujo:
                self.cache.flush()

        return summary

    def enriquecer(self, options: RunOptions | None = None) -> RunSummary:
        """Seleciona candidatas no repositório, executa e registra o resumo."""
        options = options or RunOptions()
        self._validar(options)

        antes = self.store.completude()
        candidatos = self.store.selecionar_candidatos(
            provider=options.provider, limite=options.limite
        )
        log.info("[ENRIQUECIMENTO] %d academia(s) sem cidade/região", len(candidatos))

        summary = self.run(candidatos, options)
        summary.completude_antes = antes
        summary.completude_depois = self.store.completude()
        registrar_resumo(summary)
        return summary


# ===========================================================================
# Resumo
# ===========================================================================


def registrar_resumo(summary: RunSummary) -> None:
    """Loga o resumo final: contadores por nível e completude antes/depois."""
    log.info("=" * 60)
    log.info("[RESUMO] Enriquecimento concluído")
    for rotulo, total, contador in (
        ("Atualizadas", summary.total_atualizados, summary.atualizados),
        ("Ignoradas", summary.total_ignorados, summary.ignorados),
        ("Erros", summary.total_erros, summary.erros),
    ):
        log.info("  %s: %d", rotulo, total)
        log.info("    - Semente:        %d", contador["seed"])
        log.info("    - Cache/raw:      %d", contador["cache"] + contador["raw"])
        log.info("    - API:            %d", contador["api"])
        if contador[SEM_NIVEL]:
            log.info("    - Sem nível:      %d", contador[SEM_NIVEL])
    if summary.chamadas_api:
        log.info(
            "  Chamadas à API: %d (rate limit: %d)",
            summary.chamadas_api,
            summary.limitados,
        )
    for rotulo, comp in (
        ("antes", summary.completude_antes),
        ("depois", summary.completude_depois),
    ):
        if comp is None:
            continue
        log.info(
            "  Completude %-6s total=%d cidade=%.1f%% região=%.1f%% ambos=%.1f%%",
            rotulo,
            comp.total,
            comp.pct_cidade,
            comp.pct_regiao,
            comp.pct_ambos,
        )
    log.info("=" * 60)
