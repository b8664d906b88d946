"""
Constantes e caminhos centralizados para o pacote de enriquecimento de academias.

Todas as demais etapas do pipeline devem importar daqui — nunca definir
constantes localmente para evitar divergências.
"""

import os
from pathlib import Path

# ===========================================================================
# Caminhos
# ===========================================================================

#: Diretório dos arquivos semente (versionado junto com o repositório)
DATA_DIR: Path = Path("data/seed")

#: Cache de geocodificação: NUNCA deletar à mão, use ``escalada limpar --cache``
GEOCACHE_CSV: Path = DATA_DIR / "geocoding_cache.csv"

#: Datasets semente por proveniência: ``{provider: arquivo JSON}``
SEED_DATASETS: dict[str, Path] = {
    "amap": DATA_DIR / "china_gyms.json",
}

#: País implícito de cada dataset semente (o arquivo da China não traz o código)
SEED_PAISES: dict[str, str] = {
    "amap": "CN",
}

# ===========================================================================
# Geocodificação (Google Geocoding API via geopy)
# ===========================================================================

#: Variável de ambiente com a chave da API do Google Maps
GOOGLE_API_KEY_ENV: str = "GOOGLE_MAPS_API_KEY"

#: Timeout HTTP de cada requisição (segundos)
GEOCODING_TIMEOUT: float = 10

#: Requisições simultâneas por grupo (nível 4)
GEOCODING_GROUP_SIZE: int = 5

#: Pausa fixa entre grupos de requisições (segundos)
GEOCODING_GROUP_PAUSE: float = 0.1

#: Pausa única após ``OVER_QUERY_LIMIT`` antes de devolver o controle (segundos)
RATE_LIMIT_PAUSE: float = 2.0

#: Flush do cache a cada N resultados aceitos da API
CHECKPOINT_EVERY: int = 50

# ===========================================================================
# Banco de dados
# ===========================================================================

#: Defaults do banco LOCAL quando ``DATABASE_URL`` não está definida
PG_DEFAULTS: dict[str, str] = {
    "PGHOST": "127.0.0.1",
    "PGPORT": "5432",
    "PGUSER": "postgres",
    "PGPASSWORD": "postgres",
    "PGDATABASE": "gyms",
}


class ConfigurationError(ValueError):
    """Configuração inválida detectada antes de qualquer processamento."""


def google_api_key(api_key: str | None = None) -> str:
    """Obtém a API key do Google Maps (parâmetro ou variável de ambiente)."""
    key = api_key or os.environ.get(GOOGLE_API_KEY_ENV, "")
    if not key:
        raise ConfigurationError(
            f"{GOOGLE_API_KEY_ENV} não definida. "
            "Exporte a variável ou rode sem --api para usar apenas sementes/cache."
        )
    return key


def database_url(url: str | None = None) -> str:
    """Resolve a URL do banco: parâmetro > ``DATABASE_URL`` > variáveis ``PG*``."""
    if url:
        return url
    env_url = os.environ.get("DATABASE_URL", "")
    if env_url:
        return env_url
    pg = {nome: os.environ.get(nome, padrao) for nome, padrao in PG_DEFAULTS.items()}
    return (
        f"postgresql://{pg['PGUSER']}:{pg['PGPASSWORD']}"
        f"@{pg['PGHOST']}:{pg['PGPORT']}/{pg['PGDATABASE']}"
    )
