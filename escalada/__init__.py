"""
Pacote escalada — enriquecimento geográfico das academias de escalada.

Módulos disponíveis:

- ``escalada.config``         — constantes, caminhos e variáveis de ambiente
- ``escalada.componentes``    — resultado e política de componentes de endereço
- ``escalada.cache``          — cache persistente de geocodificação (CSV)
- ``escalada.sementes``       — Nível 1: datasets semente por proveniência
- ``escalada.metadados``      — Nível 3: metadados brutos gravados na ingestão
- ``escalada.geocodificacao`` — Nível 4: Google Geocoding API
- ``escalada.repositorio``    — tabela ``gyms`` (SQLAlchemy)
- ``escalada.enriquecimento`` — orquestrador da cascata
- ``escalada.cli``            — CLI ``escalada``
"""

__version__ = "0.1.0"
