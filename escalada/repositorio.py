"""
Repositório de academias (tabela ``gyms``) via SQLAlchemy Core.

O pipeline só lê identidade/proveniência/coordenadas/endereço/metadados e
só escreve ``city``, ``state`` e ``country_code``.  A escrita é protegida no
próprio SQL: uma coluna só é preenchida quando está ``NULL`` ou vazia, de
modo que o repositório também garante que dados existentes nunca são
sobrescritos.

Funciona com PostgreSQL (produção) e SQLite (testes / uso local).
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    MetaData,
    String,
    Table,
    and_,
    case,
    create_engine,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

metadata = MetaData()

gyms = Table(
    "gyms",
    metadata,
    Column("id", String, primary_key=True),
    Column("provider", String, nullable=False, default="amap"),
    Column("provider_poi_id", String, nullable=False),
    Column("name", String, nullable=False, default=""),
    Column("address", String, nullable=True),
    Column("city", String, nullable=True),
    Column("state", String, nullable=True),
    Column("country_code", String, nullable=True),
    Column("lat", Float, nullable=True),
    Column("lng", Float, nullable=True),
    Column("raw", JSON, nullable=True),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

#: Campo do domínio → coluna da tabela (região é ``state`` no banco)
COLUNAS_GEO: dict[str, str] = {
    "city": "city",
    "region": "state",
    "country": "country_code",
}


@dataclass
class Record:
    """Academia geolocalizada, como lida do repositório."""

    id: str
    provider: str
    provider_poi_id: str | None = None
    name: str = ""
    lat: float | None = None
    lng: float | None = None
    address: str | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None
    raw: Any = None

    @property
    def tem_coordenadas(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(frozen=True)
class Completude:
    """Contagem de academias com cidade, região e ambos."""

    total: int
    com_cidade: int
    com_regiao: int
    com_ambos: int

    @staticmethod
    def _pct(parte: int, total: int) -> float:
        return 100.0 * parte / total if total else 0.0

    @property
    def pct_cidade(self) -> float:
        return self._pct(self.com_cidade, self.total)

    @property
    def pct_regiao(self) -> float:
        return self._pct(self.com_regiao, self.total)

    @property
    def pct_ambos(self) -> float:
        return self._pct(self.com_ambos, self.total)


def _vazio(coluna):
    """Expressão SQL: coluna ``NULL`` ou string em branco."""
    return or_(coluna.is_(None), func.trim(coluna) == "")


def _preenchido(coluna):
    return and_(coluna.is_not(None), func.trim(coluna) != "")


def _carregar_raw(valor: Any) -> Any:
    """Metadados podem chegar como ``dict`` (JSON/JSONB) ou texto serializado."""
    if isinstance(valor, str):
        try:
            return json.loads(valor)
        except ValueError:
            log.debug("  raw não é JSON válido; ignorado")
            return None
    return valor


def _linha_para_record(row: Any) -> Record:
    return Record(
        id=str(row.id),
        provider=row.provider,
        provider_poi_id=row.provider_poi_id,
        name=row.name or "",
        lat=row.lat,
        lng=row.lng,
        address=row.address,
        city=row.city,
        region=row.state,
        country=row.country_code,
        raw=_carregar_raw(row.raw),
    )


class RecordStore:
    """Acesso de leitura/atualização parcial à tabela ``gyms``."""

    def __init__(self, bind: str | Engine) -> None:
        self.engine: Engine = create_engine(bind) if isinstance(bind, str) else bind

    def criar_tabelas(self) -> None:
        metadata.create_all(self.engine)
        log.info("Tabelas criadas (se ainda não existiam).")

    def inserir(self, records: Iterable[Record]) -> int:
        """Insere academias (carga inicial / fixtures)."""
        linhas = [
            {
                "id": r.id,
                "provider": r.provider,
                "provider_poi_id": r.provider_poi_id or r.id,
                "name": r.name,
                "address": r.address,
                "city": r.city,
                "state": r.region,
                "country_code": r.country,
                "lat": r.lat,
                "lng": r.lng,
                "raw": r.raw,
            }
            for r in records
        ]
        if not linhas:
            return 0
        with self.engine.begin() as conn:
            conn.execute(gyms.insert(), linhas)
        return len(linhas)

    def obter(self, record_id: str) -> Record | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(gyms).where(gyms.c.id == record_id)).first()
        return _linha_para_record(row) if row is not None else None

    def selecionar_candidatos(
        self, provider: str | None = None, limite: int | None = None
    ) -> list[Record]:
        """Academias sem cidade ou sem região, com coordenadas ou endereço.

        Args:
            provider: Restringe a uma proveniência (``None`` = todas).
            limite:   Máximo de linhas retornadas (``None`` = sem limite).
        """
        stmt = (
            select(gyms)
            .where(or_(_vazio(gyms.c.city), _vazio(gyms.c.state)))
            .where(
                or_(
                    and_(gyms.c.lat.is_not(None), gyms.c.lng.is_not(None)),
                    _preenchido(gyms.c.address),
                )
            )
            .order_by(gyms.c.id)
        )
        if provider:
            stmt = stmt.where(gyms.c.provider == provider)
        if limite is not None:
            stmt = stmt.limit(limite)

        with self.engine.connect() as conn:
            return [_linha_para_record(row) for row in conn.execute(stmt)]

    def preencher_campos(self, record_id: str, campos: dict[str, str]) -> list[str]:
        """Preenche apenas as colunas ainda vazias da academia.

        Args:
            record_id: Id da academia.
            campos:    ``{"city"|"region"|"country": valor}`` (chaves do domínio).

        Returns:
            Campos do domínio efetivamente gravados (vazio se nada mudou).
        """
        gravaveis = {k: v for k, v in campos.items() if k in COLUNAS_GEO and v}
        if not gravaveis:
            return []

        with self.engine.begin() as conn:
            atual = conn.execute(
                select(gyms.c.city, gyms.c.state, gyms.c.country_code).where(
                    gyms.c.id == record_id
                )
            ).first()
            if atual is None:
                return []

            escritos = [
                campo
                for campo in gravaveis
                if not (getattr(atual, COLUNAS_GEO[campo]) or "").strip()
            ]
            if not escritos:
                return []

            valores: dict[str, Any] = {}
            for campo in escritos:
                coluna = gyms.c[COLUNAS_GEO[campo]]
                valores[COLUNAS_GEO[campo]] = case(
                    (_vazio(coluna), gravaveis[campo]), else_=coluna
                )
            valores["updated_at"] = func.now()
            conn.execute(update(gyms).where(gyms.c.id == record_id).values(**valores))
        return escritos

    def completude(self) -> Completude:
        """Estatísticas de preenchimento de cidade/região da tabela inteira."""
        com_cidade = _preenchido(gyms.c.city)
        com_regiao = _preenchido(gyms.c.state)
        stmt = select(
            func.count(),
            func.count(case((com_cidade, 1))),
            func.count(case((com_regiao, 1))),
            func.count(case((and_(com_cidade, com_regiao), 1))),
        ).select_from(gyms)
        with self.engine.connect() as conn:
            total, cidade, regiao, ambos = conn.execute(stmt).one()
        return Completude(
            total=int(total),
            com_cidade=int(cidade),
            com_regiao=int(regiao),
            com_ambos=int(ambos),
        )

    def limpar_localizacao(self) -> int:
        """Apaga cidade/região de todas as academias (reset manual do operador)."""
        stmt = (
            update(gyms)
            .where(or_(gyms.c.city.is_not(None), gyms.c.state.is_not(None)))
            .values(city=None, state=None, updated_at=func.now())
        )
        with self.engine.begin() as conn:
            resultado = conn.execute(stmt)
        return int(resultado.rowcount or 0)
