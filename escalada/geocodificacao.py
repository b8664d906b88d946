"""
Nível 4 — geocodificação reversa via Google Geocoding API (geopy ``GoogleV3``).

Estratégia de requisição:

  - **coordenadas** (``latlng``) quando a academia tem lat/lng — mais precisa
  - **endereço** (``address``) como fallback quando só há texto

Classificação da resposta (:class:`GeocodeStatus`):

  - ``OK``           — componentes com cidade ou região
  - ``NO_RESULT``    — ``ZERO_RESULTS`` ou resposta sem cidade/região
  - ``RATE_LIMITED`` — ``OVER_QUERY_LIMIT`` / HTTP 429; o cliente faz UMA
    pausa fixa (:data:`~escalada.config.RATE_LIMIT_PAUSE`) antes de retornar
  - ``ERROR``        — falha de transporte, timeout, chave negada ou JSON
    malformado

O cliente nunca levanta exceção por falha de uma requisição individual: o
orquestrador decide o que fazer com cada desfecho.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum

from geopy.adapters import RequestsAdapter
from geopy.exc import (
    GeocoderQuotaExceeded,
    GeocoderServiceError,
    GeocoderTimedOut,
    GeocoderUnavailable,
)
from geopy.geocoders import GoogleV3

from escalada.componentes import EnrichmentResult, extrair_de_componentes
from escalada.config import GEOCODING_TIMEOUT, RATE_LIMIT_PAUSE, google_api_key

log = logging.getLogger(__name__)


class GeocodeStatus(str, Enum):
    OK = "ok"
    NO_RESULT = "no_result"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


@dataclass(frozen=True)
class GeocodeOutcome:
    """Desfecho de uma chamada à API: status + resultado quando ``OK``."""

    status: GeocodeStatus
    result: EnrichmentResult | None = None
    detalhe: str = ""


class GeocodingClient:
    """Cliente fino sobre ``GoogleV3`` que classifica cada resposta."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = GEOCODING_TIMEOUT,
        pausa_rate_limit: float = RATE_LIMIT_PAUSE,
    ) -> None:
        self.pausa_rate_limit = pausa_rate_limit
        self._geolocator = GoogleV3(
            api_key=google_api_key(api_key),
            timeout=timeout,
            adapter_factory=RequestsAdapter,
        )

    def _consultar(
        self, lat: float | None, lng: float | None, endereco: str | None
    ):
        if lat is not None and lng is not None:
            return self._geolocator.reverse((lat, lng), exactly_one=True)
        return self._geolocator.geocode(endereco, exactly_one=True)

    def resolve(
        self,
        lat: float | None = None,
        lng: float | None = None,
        endereco: str | None = None,
    ) -> GeocodeOutcome:
        """Geocodifica por coordenadas (preferido) ou por endereço.

        Args:
            lat:      Latitude (usada só se ``lng`` também estiver presente).
            lng:      Longitude.
            endereco: Texto livre usado quando não há coordenadas.

        Returns:
            :class:`GeocodeOutcome` classificado.
        """
        tem_coords = lat is not None and lng is not None
        if not tem_coords and not (endereco or "").strip():
            return GeocodeOutcome(GeocodeStatus.NO_RESULT, detalhe="sem coordenadas nem endereço")

        alvo = f"({lat}, {lng})" if tem_coords else repr(endereco)
        try:
            location = self._consultar(lat, lng, endereco)
        except GeocoderQuotaExceeded as exc:
            log.warning(
                "  Rate limit em %s (%s). Pausando %.1fs...",
                alvo,
                exc,
                self.pausa_rate_limit,
            )
            time.sleep(self.pausa_rate_limit)
            return GeocodeOutcome(GeocodeStatus.RATE_LIMITED, detalhe=str(exc))
        except (GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable) as exc:
            log.warning("  Falha em %s: %s", alvo, exc)
            return GeocodeOutcome(GeocodeStatus.ERROR, detalhe=str(exc))

        if location is None:
            return GeocodeOutcome(GeocodeStatus.NO_RESULT, detalhe="ZERO_RESULTS")

        raw = getattr(location, "raw", None)
        componentes = raw.get("address_components") if isinstance(raw, dict) else None
        if not isinstance(componentes, list):
            log.warning("  Resposta sem address_components para %s", alvo)
            return GeocodeOutcome(GeocodeStatus.ERROR, detalhe="resposta malformada")

        result = extrair_de_componentes(componentes, source="api")
        if result.vazio:
            return GeocodeOutcome(GeocodeStatus.NO_RESULT, detalhe="sem cidade/região")
        return GeocodeOutcome(GeocodeStatus.OK, result=result)
