"""
Cache persistente de geocodificação (CSV) indexado pelo id da academia.

Ciclo de vida:

  1. :meth:`CacheStore.load` — lido por inteiro no início (arquivo ausente ⇒
     cache vazio; arquivo ilegível ⇒ cache vazio + warning)
  2. :meth:`CacheStore.get` / :meth:`CacheStore.put` — somente em memória
  3. :meth:`CacheStore.flush` — reescrito por inteiro a cada checkpoint e no
     fim da execução

Entradas nunca expiram: só saem do cache via :meth:`CacheStore.reset`, que
é uma operação manual do operador (``escalada limpar --cache``).
"""

import logging
import os
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from escalada.componentes import EnrichmentResult, texto_ou_none
from escalada.config import GEOCACHE_CSV

log = logging.getLogger(__name__)

COLUNAS_CACHE = ["RECORD_ID", "CIDADE", "REGIAO", "PAIS", "RESOLVIDO_EM"]

# (resultado, resolvido_em ISO-8601)
CacheEntry = tuple[EnrichmentResult, str]


class CacheStore:
    """Mapa ``record_id → (EnrichmentResult, resolvido_em)`` com flush em CSV."""

    def __init__(self, path: Path = GEOCACHE_CSV) -> None:
        self.path = Path(path)
        self._entradas: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sujo = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._entradas)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return str(record_id) in self._entradas

    @property
    def sujo(self) -> bool:
        """``True`` quando há alterações em memória ainda não gravadas."""
        return self._sujo

    # -----------------------------------------------------------------------
    # Leitura / escrita em memória
    # -----------------------------------------------------------------------

    def get(self, record_id: object) -> EnrichmentResult | None:
        """Retorna o resultado em cache (com ``source="cache"``) ou ``None``."""
        with self._lock:
            entrada = self._entradas.get(str(record_id))
        if entrada is None:
            return None
        return entrada[0].com_fonte("cache")

    def resolvido_em(self, record_id: object) -> str | None:
        with self._lock:
            entrada = self._entradas.get(str(record_id))
        return entrada[1] if entrada else None

    def put(self, record_id: object, result: EnrichmentResult) -> None:
        """Grava (sobrescrevendo) a entrada do registro com timestamp atual."""
        agora = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with self._lock:
            self._entradas[str(record_id)] = (result, agora)
            self._sujo = True

    # -----------------------------------------------------------------------
    # Persistência
    # -----------------------------------------------------------------------

    def load(self) -> int:
        """Carrega o CSV inteiro para memória, substituindo o conteúdo atual.

        Returns:
            Número de entradas carregadas.
        """
        entradas: dict[str, CacheEntry] = {}

        if self.path.exists():
            try:
                df_cache = pd.read_csv(
                    self.path, dtype=str, keep_default_na=False, encoding="utf-8-sig"
                )
                # Retrocompatibilidade: caches antigos sem coluna RESOLVIDO_EM
                if "RESOLVIDO_EM" not in df_cache.columns:
                    df_cache["RESOLVIDO_EM"] = ""
                for rec in df_cache.to_dict(orient="records"):
                    record_id = texto_ou_none(rec["RECORD_ID"])
                    result = EnrichmentResult(
                        city=texto_ou_none(rec.get("CIDADE")),
                        region=texto_ou_none(rec.get("REGIAO")),
                        country=texto_ou_none(rec.get("PAIS")),
                        source="api",
                    )
                    if not record_id or result.vazio:
                        continue  # ignora entradas corrompidas
                    entradas[record_id] = (result, str(rec.get("RESOLVIDO_EM") or ""))
                log.info("  Cache: %d entradas carregadas de '%s'", len(entradas), self.path)
            except (
                pd.errors.ParserError,
                OSError,
                KeyError,
                ValueError,
                UnicodeDecodeError,
            ) as exc:
                log.warning("  Erro ao ler cache (%s). Iniciando cache vazio.", exc)
                entradas = {}
        else:
            log.info("  Cache inexistente em '%s'. Iniciando vazio.", self.path)

        with self._lock:
            self._entradas = entradas
            self._sujo = False
        return len(entradas)

    def flush(self) -> bool:
        """Reescreve o arquivo inteiro a partir da memória.

        A gravação é feita em arquivo temporário e trocada atomicamente.  Uma
        falha de I/O é registrada e mantém o cache "sujo" para que o próximo
        checkpoint tente novamente.

        Returns:
            ``True`` se o arquivo foi gravado.
        """
        with self._lock:
            linhas = [
                (record_id, r.city, r.region, r.country, resolvido_em)
                for record_id, (r, resolvido_em) in sorted(self._entradas.items())
            ]

        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            pd.DataFrame(linhas, columns=COLUNAS_CACHE).to_csv(
                tmp, index=False, encoding="utf-8-sig"
            )
            os.replace(tmp, self.path)
        except OSError as exc:
            log.error("  Falha ao gravar cache em '%s': %s", self.path, exc)
            return False

        with self._lock:
            self._sujo = False
        log.debug("  Cache gravado: %d entradas em '%s'", len(linhas), self.path)
        return True

    def reset(self, backup: bool = True) -> Path | None:
        """Esvazia o cache em memória e em disco (operação manual do operador).

        Args:
            backup: Se ``True``, copia o arquivo atual para
                    ``<nome>.backup.csv`` antes de apagar.

        Returns:
            Caminho do backup criado, ou ``None`` se nada foi copiado.
        """
        destino = None
        if self.path.exists():
            if backup:
                destino = self.path.with_suffix(".backup.csv")
                shutil.copy2(self.path, destino)
            self.path.unlink()
            log.warning("  Cache zerado (backup: %s).", destino or "nenhum")

        with self._lock:
            self._entradas = {}
            self._sujo = False
        return destino
