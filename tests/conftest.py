"""
conftest.py — Fixtures e configurações globais para os testes.

Aplicado automaticamente a todos os módulos de teste (autouse=True):
- tqdm substituído por iteração direta (sem saída de progresso nos testes).

Fixtures compartilhadas:
- ``store``: repositório SQLite em arquivo temporário, com tabelas criadas.
- ``geocoder``: cliente de geocodificação falso, sem rede, que conta chamadas
  e o pico de requisições simultâneas.
"""

import threading
import time
from pathlib import Path
from typing import Callable

import pytest

from escalada.componentes import EnrichmentResult
from escalada.geocodificacao import GeocodeOutcome, GeocodeStatus
from escalada.repositorio import RecordStore

SPRINGFIELD = EnrichmentResult("Springfield", "IL", "US", source="api")


@pytest.fixture(autouse=True)
def desabilitar_tqdm(monkeypatch: pytest.MonkeyPatch) -> None:
    """Substitui tqdm por passthrough para suprimir barras de progresso."""
    monkeypatch.setattr(
        "escalada.enriquecimento.tqdm",
        lambda iterable, **kw: iterable,
    )


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    """Repositório SQLite isolado por teste."""
    repo = RecordStore(f"sqlite:///{tmp_path / 'gyms.db'}")
    repo.criar_tabelas()
    return repo


class GeocoderFalso:
    """Substituto de :class:`~escalada.geocodificacao.GeocodingClient`.

    ``responder(lat, lng, endereco)`` decide o desfecho; por padrão toda
    consulta devolve Springfield/IL/US.
    """

    def __init__(self) -> None:
        self.responder: Callable[..., GeocodeOutcome] = lambda lat, lng, endereco: (
            GeocodeOutcome(GeocodeStatus.OK, result=SPRINGFIELD)
        )
        self.atraso = 0.0
        self.chamadas: list[tuple] = []
        self.em_voo = 0
        self.pico_em_voo = 0
        self._lock = threading.Lock()

    def resolve(self, lat=None, lng=None, endereco=None) -> GeocodeOutcome:
        with self._lock:
            self.chamadas.append((lat, lng, endereco))
            self.em_voo += 1
            self.pico_em_voo = max(self.pico_em_voo, self.em_voo)
        try:
            if self.atraso:
                time.sleep(self.atraso)
            return self.responder(lat, lng, endereco)
        finally:
            with self._lock:
                self.em_voo -= 1


@pytest.fixture
def geocoder() -> GeocoderFalso:
    return GeocoderFalso()
