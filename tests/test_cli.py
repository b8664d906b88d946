"""
Testes para escalada.cli.

Cobre:
- parser: valores padrão dos subcomandos
- cmd_status: completude e cache ausente / presente
- cmd_limpar sem --confirmar: dry run, nada alterado, código 1
- cmd_limpar --confirmar --cache: limpa banco e faz backup do cache
- enriquecer sem API: resolve pelo raw, sem construir cliente
- enriquecer --api sem chave: código de erro 1
- enriquecer --api com cliente falso e --reset-cache
- --db aceito também depois do subcomando
- --grupo inválido: código de erro 1
"""

import argparse
from pathlib import Path
from unittest.mock import patch

import pytest

from escalada.cache import CacheStore
from escalada.cli import _build_parser, cmd_limpar, cmd_status, main
from escalada.componentes import EnrichmentResult
from escalada.config import GOOGLE_API_KEY_ENV
from escalada.repositorio import Record, RecordStore

_RAW_PORTO = {"addressComponents": [{"types": ["locality"], "longName": "Porto"}]}


def _url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'gyms.db'}"


def _gym(id_: str, **kw) -> Record:
    kw.setdefault("provider", "google")
    kw.setdefault("lat", 41.15)
    kw.setdefault("lng", -8.61)
    return Record(id=id_, **kw)


def _main(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


# ===========================================================================
# Parser
# ===========================================================================


def test_parser_padroes_enriquecer() -> None:
    args = _build_parser().parse_args(["enriquecer"])
    assert args.comando == "enriquecer"
    assert args.api is False
    assert args.limite is None
    assert args.grupo == 5
    assert args.db is None


def test_parser_exige_subcomando() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args([])


# ===========================================================================
# cmd_status
# ===========================================================================


def test_status_cache_ausente(
    store: RecordStore, tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    store.inserir([_gym("g1", city="Porto", region="13"), _gym("g2")])
    args = argparse.Namespace(db=_url(tmp_path), cache=str(tmp_path / "cache.csv"))

    rc = cmd_status(args)

    assert rc == 0
    saida = capsys.readouterr().out
    assert "ausente" in saida
    assert "50.0%" in saida


def test_status_com_cache(
    store: RecordStore, tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    cache = CacheStore(tmp_path / "cache.csv")
    cache.put("g1", EnrichmentResult("Porto", None, "PT"))
    cache.flush()
    args = argparse.Namespace(db=_url(tmp_path), cache=str(tmp_path / "cache.csv"))

    assert cmd_status(args) == 0
    assert "1 entradas" in capsys.readouterr().out


# ===========================================================================
# cmd_limpar
# ===========================================================================


def test_limpar_sem_confirmar_e_dry_run(
    store: RecordStore, tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    store.inserir([_gym("g1", city="Porto")])
    args = argparse.Namespace(
        db=_url(tmp_path), cache=True, cache_path=None, confirmar=False
    )

    rc = cmd_limpar(args)

    assert rc == 1
    assert "DRY RUN" in capsys.readouterr().err
    assert store.obter("g1").city == "Porto"


def test_limpar_confirmado_com_cache(store: RecordStore, tmp_path: Path) -> None:
    store.inserir([_gym("g1", city="Porto", region="13")])
    cache_path = tmp_path / "cache.csv"
    cache = CacheStore(cache_path)
    cache.put("g1", EnrichmentResult("Porto", "13", "PT"))
    cache.flush()

    args = argparse.Namespace(
        db=_url(tmp_path), cache=True, cache_path=str(cache_path), confirmar=True
    )
    rc = cmd_limpar(args)

    assert rc == 0
    assert store.obter("g1").city is None
    assert not cache_path.exists()
    assert (tmp_path / "cache.backup.csv").exists()


# ===========================================================================
# enriquecer
# ===========================================================================


def test_enriquecer_sem_api(store: RecordStore, tmp_path: Path) -> None:
    store.inserir([_gym("g1", raw=_RAW_PORTO)])

    with patch("escalada.geocodificacao.GeocodingClient") as mock_cliente:
        rc = _main(
            ["--db", _url(tmp_path), "enriquecer", "--cache", str(tmp_path / "cache.csv")]
        )

    assert rc == 0
    mock_cliente.assert_not_called()
    assert store.obter("g1").city == "Porto"


def test_enriquecer_api_sem_chave_retorna_erro(
    store: RecordStore, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv(GOOGLE_API_KEY_ENV, raising=False)
    store.inserir([_gym("g1")])

    rc = _main(
        ["--db", _url(tmp_path), "enriquecer", "--api", "--cache", str(tmp_path / "cache.csv")]
    )

    assert rc == 1
    assert store.obter("g1").city is None


def test_enriquecer_api_com_reset_cache(store: RecordStore, geocoder, tmp_path: Path) -> None:
    store.inserir([_gym("g1"), _gym("g2")])
    cache_path = tmp_path / "cache.csv"
    antigo = CacheStore(cache_path)
    antigo.put("g1", EnrichmentResult("Cidade Antiga", None, None))
    antigo.flush()

    with patch("escalada.geocodificacao.GeocodingClient", return_value=geocoder):
        rc = _main(
            [
                "--db", _url(tmp_path),
                "enriquecer", "--api", "--grupo", "2", "--limite", "10",
                "--reset-cache", "--cache", str(cache_path),
            ]
        )

    assert rc == 0
    # cache antigo descartado (com backup): g1 foi à API
    assert (tmp_path / "cache.backup.csv").exists()
    assert len(geocoder.chamadas) == 2
    assert store.obter("g1").city == "Springfield"


def test_db_depois_do_subcomando(
    store: RecordStore, tmp_path: Path, capsys: pytest.CaptureFixture
) -> None:
    store.inserir([_gym("g1", city="Porto", region="13")])

    rc = _main(["status", "--db", _url(tmp_path), "--cache", str(tmp_path / "cache.csv")])

    assert rc == 0
    assert "100.0%" in capsys.readouterr().out


def test_db_global_preservado_pelo_subcomando(tmp_path: Path) -> None:
    args = _build_parser().parse_args(["--db", _url(tmp_path), "status"])
    assert args.db == _url(tmp_path)


def test_grupo_invalido_retorna_erro(store: RecordStore, tmp_path: Path) -> None:
    store.inserir([_gym("g1", raw=_RAW_PORTO)])

    rc = _main(
        [
            "--db", _url(tmp_path),
            "enriquecer", "--grupo", "0", "--cache", str(tmp_path / "cache.csv"),
        ]
    )

    assert rc == 1
    assert store.obter("g1").city is None
