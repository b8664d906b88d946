"""
Testes para escalada.sementes.

Cobre:
- carregar_dataset_semente: formato lista e formato dicionário
- arquivo ausente / JSON inválido: dataset vazio sem exceção
- SeedResolver: match com province → região e país implícito do dataset
- proveniência sem dataset / id ausente: sem match
- entrada malformada: warning e sem match
"""

import json
import logging
from pathlib import Path

import pytest

from escalada.repositorio import Record
from escalada.sementes import SeedResolver, carregar_dataset_semente


def _escrever(path: Path, dados: object) -> Path:
    path.write_text(json.dumps(dados, ensure_ascii=False), encoding="utf-8")
    return path


# ===========================================================================
# carregar_dataset_semente
# ===========================================================================


def test_carrega_formato_lista(tmp_path: Path) -> None:
    path = _escrever(
        tmp_path / "china.json",
        [
            {"id": "B001", "city": "上海市", "province": "上海市"},
            {"city": "sem id"},
        ],
    )
    dataset = carregar_dataset_semente(path)
    assert list(dataset) == ["B001"]


def test_carrega_formato_dicionario(tmp_path: Path) -> None:
    path = _escrever(tmp_path / "a.json", {"123": {"city": "Springfield", "region": "IL"}})
    dataset = carregar_dataset_semente(path)
    assert dataset["123"]["city"] == "Springfield"


def test_arquivo_ausente_dataset_vazio(tmp_path: Path) -> None:
    assert carregar_dataset_semente(tmp_path / "nao_existe.json") == {}


def test_json_invalido_dataset_vazio(tmp_path: Path) -> None:
    path = tmp_path / "quebrado.json"
    path.write_text("{isto não é json", encoding="utf-8")
    assert carregar_dataset_semente(path) == {}


# ===========================================================================
# SeedResolver
# ===========================================================================


def test_match_com_pais_implicito(tmp_path: Path) -> None:
    path = _escrever(
        tmp_path / "china.json",
        [{"id": "B001", "city": "杭州市", "province": "浙江省"}],
    )
    resolver = SeedResolver.from_paths({"amap": path}, paises={"amap": "CN"})
    record = Record(id="g1", provider="amap", provider_poi_id="B001")

    resultado = resolver.resolve(record)

    assert resultado is not None
    assert resultado.city == "杭州市"
    assert resultado.region == "浙江省"
    assert resultado.country == "CN"
    assert resultado.source == "seed"


def test_pais_explicito_vence_implicito() -> None:
    resolver = SeedResolver(
        {"A": {"123": {"city": "Springfield", "state": "IL", "country": "US"}}},
        paises={"A": "CN"},
    )
    resultado = resolver.resolve(Record(id="g", provider="A", provider_poi_id="123"))
    assert resultado.country == "US"
    assert resultado.region == "IL"


def test_provider_sem_dataset_nao_aplicavel() -> None:
    resolver = SeedResolver({"amap": {"B001": {"city": "X"}}}, paises={})
    record = Record(id="g", provider="google", provider_poi_id="B001")
    assert not resolver.aplicavel(record)
    assert resolver.resolve(record) is None


def test_id_externo_ausente_sem_match() -> None:
    resolver = SeedResolver({"amap": {"B001": {"city": "X"}}}, paises={})
    assert resolver.resolve(Record(id="g", provider="amap", provider_poi_id="B999")) is None
    assert resolver.resolve(Record(id="g", provider="amap", provider_poi_id=None)) is None


def test_entrada_sem_cidade_nem_regiao_sem_match() -> None:
    resolver = SeedResolver({"amap": {"B001": {"name": "Academia"}}}, paises={"amap": "CN"})
    assert resolver.resolve(Record(id="g", provider="amap", provider_poi_id="B001")) is None


def test_entrada_malformada_loga_warning(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = _escrever(tmp_path / "a.json", {"B001": "não é um objeto"})
    resolver = SeedResolver.from_paths({"amap": path}, paises={})

    with caplog.at_level(logging.WARNING, logger="escalada.sementes"):
        resultado = resolver.resolve(Record(id="g", provider="amap", provider_poi_id="B001"))

    assert resultado is None
    assert "malformada" in caplog.text
