"""
Reports API client used by the dashboard widgets

Each method fetches one report. As on the server, the reaction to a failed
request depends on the report:
- SILENT reports log the failure and return an empty value
- PROPAGATE reports raise ReportUnavailableError so the widget can show
  its error state
"""

from typing import Any, Dict, List, Optional, Type, TypeVar
import logging

import httpx
from pydantic import TypeAdapter, ValidationError

from sales_indicators.config.settings import settings
from sales_indicators.api.services.report_service import ErrorPolicy
from sales_indicators.api.models.report import (
    CommandeObjectif,
    Commercial,
    TauxConversion,
    CAParPays,
    CAParMois,
    MotifRepartition,
    PredictionCA,
    FunnelBucket,
    TopSale,
    TempsCAConversion,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReportUnavailableError(Exception):
    """Raised when a PROPAGATE report cannot be fetched."""

    def __init__(self, path: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message
        self.status_code = status_code


def filter_params(annee: Optional[int] = None, commercial: Optional[str] = None) -> Dict[str, str]:
    """Query parameters for the active filters only"""
    params = {}
    if annee:
        params["annee"] = str(annee)
    if commercial:
        params["commercial"] = commercial
    return params


class DashboardClient:
    """
    Async client for the reports API

    Usage:
        async with DashboardClient() as client:
            rows = await client.get_commandes_objectifs(annee=2023)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.DASHBOARD_API_URL,
            timeout=timeout or settings.DASHBOARD_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "DashboardClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        """GET a report and decode its JSON body, raising ReportUnavailableError on failure"""
        try:
            response = await self._client.get(path, params=params or {})
        except httpx.HTTPError as e:
            raise ReportUnavailableError(path, str(e)) from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get("error") if isinstance(body, dict) else None
            raise ReportUnavailableError(path, message or response.reason_phrase, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ReportUnavailableError(path, "Invalid JSON response", response.status_code) from e

    async def _report(
        self,
        path: str,
        result_type: Type[T],
        policy: ErrorPolicy,
        default: Any = None,
        annee: Optional[int] = None,
        commercial: Optional[str] = None
    ) -> T:
        try:
            data = await self._get(path, filter_params(annee, commercial))
            return TypeAdapter(result_type).validate_python(data)
        except (ReportUnavailableError, ValidationError) as e:
            logger.error(f"Error fetching {path}: {str(e)}")
            if policy is ErrorPolicy.PROPAGATE:
                if isinstance(e, ReportUnavailableError):
                    raise
                raise ReportUnavailableError(path, "Invalid report payload") from e
            return default() if callable(default) else default

    # =====================================================================
    # REPORTS
    # =====================================================================

    async def get_commandes_objectifs(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[CommandeObjectif]:
        return await self._report("/commandes", List[CommandeObjectif], ErrorPolicy.SILENT, list, annee, commercial)

    async def get_commerciaux(self) -> List[Commercial]:
        return await self._report("/commerciaux", List[Commercial], ErrorPolicy.SILENT, list)

    async def get_annees(self) -> List[int]:
        return await self._report("/annees", List[int], ErrorPolicy.SILENT, list)

    async def get_taux_conversion(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[TauxConversion]:
        return await self._report("/taux-conversion", List[TauxConversion], ErrorPolicy.SILENT, list, annee, commercial)

    async def get_ca_par_pays(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[CAParPays]:
        return await self._report("/ca-par-pays", List[CAParPays], ErrorPolicy.SILENT, list, annee, commercial)

    async def get_ca_par_mois(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[CAParMois]:
        return await self._report("/ca-par-mois", List[CAParMois], ErrorPolicy.PROPAGATE, None, annee, commercial)

    async def get_motif_repartition(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[MotifRepartition]:
        return await self._report("/motif-repartition", List[MotifRepartition], ErrorPolicy.PROPAGATE, None, annee, commercial)

    async def get_prediction_ca(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> PredictionCA:
        return await self._report("/prediction-ca", PredictionCA, ErrorPolicy.SILENT, PredictionCA, annee, commercial)

    async def get_funnel_data(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[FunnelBucket]:
        return await self._report("/funnel-data", List[FunnelBucket], ErrorPolicy.PROPAGATE, None, annee, commercial)

    async def get_top_sales(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[TopSale]:
        return await self._report("/top-sales", List[TopSale], ErrorPolicy.PROPAGATE, None, annee, commercial)

    async def get_temps_ca_conversion(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> List[TempsCAConversion]:
        return await self._report("/temps-ca-conversion", List[TempsCAConversion], ErrorPolicy.PROPAGATE, None, annee, commercial)
