"""
CLI do enriquecimento geográfico das academias.

Subcomandos disponíveis::

    escalada enriquecer [--api] [--limite N] [--provider P] [--reset-cache]
                        [--grupo G] [--cache PATH] [--db URL]
    escalada status     [--cache PATH] [--db URL]
    escalada limpar     [--cache] [--confirmar] [--cache-path PATH] [--db URL]

``--db`` pode vir antes ou depois do subcomando (``escalada --db URL status``).
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

from escalada.config import (
    GEOCACHE_CSV,
    GEOCODING_GROUP_SIZE,
    ConfigurationError,
    database_url,
)

log = logging.getLogger(__name__)


# ===========================================================================
# Logging
# ===========================================================================


def _setup_logging(verbose: bool = False) -> None:
    """Configura logging do pipeline."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _abrir_store(args: argparse.Namespace):
    from escalada.repositorio import RecordStore

    return RecordStore(database_url(getattr(args, "db", None)))


# ===========================================================================
# Subcomando: enriquecer
# ===========================================================================


def cmd_enriquecer(args: argparse.Namespace) -> int:
    """Preenche cidade/região/país das academias pela cascata de níveis."""
    from escalada.enriquecimento import EnrichmentOrchestrator, RunOptions
    from escalada.geocodificacao import GeocodingClient
    from escalada.sementes import SeedResolver

    cache_path = Path(args.cache) if getattr(args, "cache", None) else GEOCACHE_CSV

    if args.api:
        log.info("Modo: Google Geocoding API habilitada (fará chamadas de rede)")
    else:
        log.info("Modo: apenas sementes, cache e metadados brutos (sem API)")

    try:
        geocoder = GeocodingClient() if args.api else None
        orquestrador = EnrichmentOrchestrator(
            _abrir_store(args),
            cache_path=cache_path,
            seed=SeedResolver.from_paths(),
            geocoder=geocoder,
            tamanho_grupo=args.grupo,
        )
        if getattr(args, "reset_cache", False):
            orquestrador.cache.reset(backup=True)
        orquestrador.enriquecer(
            RunOptions(
                limite=args.limite,
                usar_api=args.api,
                provider=getattr(args, "provider", None),
            )
        )
    except ConfigurationError as exc:
        log.error("Configuração inválida: %s", exc)
        return 1
    return 0


# ===========================================================================
# Subcomando: status
# ===========================================================================


def cmd_status(args: argparse.Namespace) -> int:
    """Exibe completude de cidade/região e tamanho do cache."""
    from escalada.cache import CacheStore

    cache_path = Path(args.cache) if getattr(args, "cache", None) else GEOCACHE_CSV
    comp = _abrir_store(args).completude()

    print(f"\n{'Métrica':<16}  {'Academias':>10}  {'%':>7}")
    print("-" * 40)
    print(f"{'Total':<16}  {comp.total:>10}  {'':>7}")
    print(f"{'Com cidade':<16}  {comp.com_cidade:>10}  {comp.pct_cidade:>6.1f}%")
    print(f"{'Com região':<16}  {comp.com_regiao:>10}  {comp.pct_regiao:>6.1f}%")
    print(f"{'Com ambos':<16}  {comp.com_ambos:>10}  {comp.pct_ambos:>6.1f}%")

    if cache_path.exists():
        cache = CacheStore(cache_path)
        print(f"\nCache: {cache.load()} entradas em {cache_path}")
    else:
        print(f"\nCache: ausente ({cache_path})")
    print()
    return 0


# ===========================================================================
# Subcomando: limpar
# ===========================================================================


def cmd_limpar(args: argparse.Namespace) -> int:
    """Apaga cidade/região do banco (e o cache com --cache); exige --confirmar."""
    from escalada.cache import CacheStore

    store = _abrir_store(args)
    cache_path = (
        Path(args.cache_path) if getattr(args, "cache_path", None) else GEOCACHE_CSV
    )
    comp = store.completude()
    print(
        f"Atual: {comp.total} academias | com cidade: {comp.com_cidade} | "
        f"com região: {comp.com_regiao} | com ambos: {comp.com_ambos}"
    )

    if not args.confirmar:
        print(
            "DRY RUN: nada foi alterado. Adicione --confirmar para limpar.",
            file=sys.stderr,
        )
        if args.cache:
            estado = "seria removido" if cache_path.exists() else "não encontrado"
            print(f"Cache '{cache_path}': {estado}", file=sys.stderr)
        return 1

    n = store.limpar_localizacao()
    print(f"Cidade/região removidas de {n} academia(s).")

    if args.cache:
        backup = CacheStore(cache_path).reset(backup=True)
        if backup:
            print(f"Cache removido (backup em {backup}).")
        else:
            print(f"Cache não encontrado: {cache_path}")
    return 0


# ===========================================================================
# Parser argparse
# ===========================================================================


def _build_parser() -> argparse.ArgumentParser:
    """Constrói o parser principal com todos os subcomandos."""
    parser = argparse.ArgumentParser(
        prog="escalada",
        description="Enriquecimento de cidade/região/país das academias de escalada",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Exemplos:
  escalada enriquecer                       Sementes + cache + metadados (sem API)
  escalada enriquecer --api --limite 100    Inclui a Geocoding API (até 100 academias)
  escalada enriquecer --provider google     Só academias vindas do Google
  escalada status                           Completude atual do banco
  escalada limpar --cache --confirmar       Apaga cidade/região e o cache
""",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Exibe logs de depuração (DEBUG)"
    )
    parser.add_argument(
        "--db",
        default=None,
        metavar="URL",
        help="URL SQLAlchemy do banco (padrão: DATABASE_URL ou variáveis PG*)",
    )

    # --db também é aceito depois do subcomando; SUPPRESS preserva o valor global
    comum = argparse.ArgumentParser(add_help=False)
    comum.add_argument(
        "--db",
        default=argparse.SUPPRESS,
        metavar="URL",
        help="URL SQLAlchemy do banco (padrão: DATABASE_URL ou variáveis PG*)",
    )

    sub = parser.add_subparsers(dest="comando", required=True, metavar="COMANDO")

    # ----------------------------------------------------------- enriquecer
    p_enr = sub.add_parser(
        "enriquecer",
        parents=[comum],
        help="Preenche cidade/região/país faltantes",
        description=(
            "Cascata semente → cache → metadados brutos → Geocoding API. "
            "Nunca sobrescreve campos já preenchidos."
        ),
    )
    p_enr.add_argument(
        "--api",
        action="store_true",
        help="Habilita a Google Geocoding API (requer GOOGLE_MAPS_API_KEY)",
    )
    p_enr.add_argument(
        "--limite",
        type=int,
        default=None,
        metavar="N",
        help="Processa no máximo N academias (economiza cota da API)",
    )
    p_enr.add_argument(
        "--provider",
        default=None,
        metavar="P",
        help="Restringe a uma proveniência (ex: google, amap)",
    )
    p_enr.add_argument(
        "--reset-cache",
        action="store_true",
        help="Faz backup do cache e reinicia do zero",
    )
    p_enr.add_argument(
        "--grupo",
        type=int,
        default=GEOCODING_GROUP_SIZE,
        metavar="G",
        help=f"Requisições simultâneas por grupo (padrão: {GEOCODING_GROUP_SIZE})",
    )
    p_enr.add_argument(
        "--cache",
        default=None,
        metavar="PATH",
        help=f"Arquivo de cache (padrão: {GEOCACHE_CSV})",
    )

    # --------------------------------------------------------------- status
    p_st = sub.add_parser(
        "status",
        parents=[comum],
        help="Exibe completude do banco e tamanho do cache",
    )
    p_st.add_argument(
        "--cache",
        default=None,
        metavar="PATH",
        help=f"Arquivo de cache (padrão: {GEOCACHE_CSV})",
    )

    # --------------------------------------------------------------- limpar
    p_lim = sub.add_parser(
        "limpar",
        parents=[comum],
        help="Apaga cidade/região do banco (dry run sem --confirmar)",
        description=(
            "Remove cidade/região de todas as academias. "
            "--cache remove também o cache de geocodificação (backup mantido)."
        ),
    )
    p_lim.add_argument(
        "--cache",
        action="store_true",
        help="Remove também o cache de geocodificação",
    )
    p_lim.add_argument(
        "--cache-path",
        dest="cache_path",
        default=None,
        metavar="PATH",
        help=f"Arquivo de cache (padrão: {GEOCACHE_CSV})",
    )
    p_lim.add_argument(
        "--confirmar",
        action="store_true",
        help="Executa de fato a limpeza (obrigatório)",
    )

    return parser


# ===========================================================================
# Dispatch e entry point
# ===========================================================================

_HANDLER_MAP: dict[str, Callable[[argparse.Namespace], int]] = {
    "enriquecer": cmd_enriquecer,
    "status": cmd_status,
    "limpar": cmd_limpar,
}


def main(argv: list[str] | None = None) -> None:
    """Entry point público — chamado por ``python -m escalada`` e pelo script ``escalada``."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(verbose=args.verbose)

    handler = _HANDLER_MAP.get(args.comando)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(handler(args))
