"""
Dashboard widgets and global filters

Every widget fetches its report (and the salesperson directory when it
shows names) whenever the year or salesperson filter changes, reshapes
the rows and keeps a loading/error/empty/ready state.

Responses are tagged with a per-widget generation number; a response that
arrives after a newer load was started is discarded.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import asyncio
import logging

from sales_indicators.api.models.report import CAParPays, Commercial, FunnelBucket, TopSale
from sales_indicators.dashboard import gauge, geo, reshaping
from sales_indicators.dashboard.client import DashboardClient, ReportUnavailableError

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Erreur lors du chargement des données"
NO_DATA_MESSAGE = "Aucune donnée disponible"


class WidgetStatus(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"


@dataclass(frozen=True)
class Filters:
    """Global dashboard filters; None means every year / every salesperson"""
    annee: Optional[int] = None
    commercial: Optional[str] = None


@dataclass(frozen=True)
class WidgetConfig:
    """Display settings of a widget; ``emphasis`` is the enlarged focus mode"""
    title: str
    emphasis: bool = False

    @property
    def height(self) -> int:
        return 600 if self.emphasis else 300

    @property
    def font_size(self) -> int:
        return 16 if self.emphasis else 12


@dataclass
class WidgetState:
    status: WidgetStatus = WidgetStatus.LOADING
    data: Any = None
    error: Optional[str] = None


class Widget:
    """
    Base widget

    Subclasses implement ``fetch`` returning the reshaped data; ``is_empty``
    decides between the empty and ready states.
    """

    title = ""

    def __init__(self, config: Optional[WidgetConfig] = None):
        self.config = config or WidgetConfig(title=self.title)
        self.state = WidgetState()
        self._generation = 0

    def set_emphasis(self, emphasis: bool) -> None:
        self.config = replace(self.config, emphasis=emphasis)

    async def fetch(self, client: DashboardClient, filters: Filters) -> Any:
        raise NotImplementedError

    def is_empty(self, data: Any) -> bool:
        return not data

    async def load(self, client: DashboardClient, filters: Filters) -> None:
        self._generation += 1
        generation = self._generation
        self.state = WidgetState(status=WidgetStatus.LOADING)

        try:
            data = await self.fetch(client, filters)
        except ReportUnavailableError as e:
            logger.error(f"{type(self).__name__} failed to load: {str(e)}")
            if generation == self._generation:
                self.state = WidgetState(status=WidgetStatus.ERROR, error=ERROR_MESSAGE)
            return

        if generation != self._generation:
            logger.debug(f"{type(self).__name__}: discarding response for stale filters {filters}")
            return

        status = WidgetStatus.EMPTY if self.is_empty(data) else WidgetStatus.READY
        self.state = WidgetState(status=status, data=data)


# =========================================================================
# WIDGETS
# =========================================================================

@dataclass
class SalespersonBar:
    salesperson_id: str
    name: str
    actual_revenue: float
    target_revenue: float


class OrdersChartWidget(Widget):
    """Ordered revenue vs target per salesperson"""

    title = "CA commandé et objectif par commercial"

    async def fetch(self, client, filters):
        rows, commerciaux = await asyncio.gather(
            client.get_commandes_objectifs(filters.annee, filters.commercial),
            client.get_commerciaux(),
        )
        directory = reshaping.build_directory(commerciaux)

        return [
            SalespersonBar(
                salesperson_id=row.salesperson_id,
                name=reshaping.resolve_name(row.salesperson_id, directory),
                actual_revenue=row.actual_revenue,
                target_revenue=row.target_revenue,
            )
            for row in reshaping.orders_vs_target(rows, filters.annee)
        ]


@dataclass
class ObjectiveGauge:
    summary: reshaping.ObjectiveSummary
    arc: Tuple[float, float]
    color: str


class ObjectiveGaugeWidget(Widget):
    title = "Atteinte de l'objectif"

    async def fetch(self, client, filters):
        rows = await client.get_commandes_objectifs(filters.annee, filters.commercial)
        summary = reshaping.objective_summary(rows)
        return ObjectiveGauge(
            summary=summary,
            arc=gauge.objective_arc(summary.percentage),
            color=gauge.objective_color(summary.percentage),
        )

    def is_empty(self, data):
        return False


@dataclass
class ConversionGauge:
    summary: reshaping.ConversionSummary
    needle: float


class ConversionGaugeWidget(Widget):
    title = "Taux de transformation des offres en commandes"

    async def fetch(self, client, filters):
        rows = await client.get_taux_conversion(filters.annee, filters.commercial)
        if not rows:
            return None
        summary = reshaping.conversion_summary(rows)
        return ConversionGauge(summary=summary, needle=gauge.needle_position(summary.rate))


class MonthlyComparisonWidget(Widget):
    title = "CA par mois"

    async def fetch(self, client, filters):
        rows = await client.get_ca_par_mois(filters.annee, filters.commercial)
        return reshaping.month_over_month(rows)


@dataclass
class WorldMap:
    values: Dict[str, float]
    fills: Dict[str, str]
    names: Dict[str, Optional[str]] = field(default_factory=dict)


class WorldMapWidget(Widget):
    title = "CA par pays"

    async def fetch(self, client, filters):
        rows: List[CAParPays] = await client.get_ca_par_pays(filters.annee, filters.commercial)
        values = geo.revenue_by_numeric_code(rows)
        return WorldMap(
            values=values,
            fills=geo.choropleth_fills(rows),
            names={code: geo.country_name_fr(code) for code in values},
        )

    def is_empty(self, data):
        return not data.values


class MotifPieWidget(Widget):
    title = "Répartition des motifs de commande"

    async def fetch(self, client, filters):
        rows = await client.get_motif_repartition(filters.annee, filters.commercial)
        return reshaping.motif_shares(rows)


@dataclass
class Funnel:
    buckets: Sequence[FunnelBucket]
    layout: List[Tuple[float, float]]
    total: float


class FunnelWidget(Widget):
    title = "Prédiction du CA"

    async def fetch(self, client, filters):
        buckets = await client.get_funnel_data(filters.annee, filters.commercial)
        return Funnel(
            buckets=buckets,
            layout=gauge.funnel_layout(len(buckets)),
            total=reshaping.funnel_total(buckets),
        )

    def is_empty(self, data):
        return not data.buckets


class PredictionWidget(Widget):
    title = "CA prédit"

    async def fetch(self, client, filters):
        prediction = await client.get_prediction_ca(filters.annee, filters.commercial)
        return prediction.total_weighted_revenue

    def is_empty(self, data):
        return False


class TopSalesWidget(Widget):
    title = "Liste des meilleures ventes par année par commercial"

    async def fetch(self, client, filters) -> List[TopSale]:
        return await client.get_top_sales(filters.annee, filters.commercial)


class ConversionTimingWidget(Widget):
    title = "Durée moyenne de transformation et CA moyen par mois"

    async def fetch(self, client, filters):
        rows = await client.get_temps_ca_conversion(filters.annee, filters.commercial)
        return reshaping.conversion_timing_filled(rows)


def default_widgets() -> List[Widget]:
    return [
        OrdersChartWidget(),
        ObjectiveGaugeWidget(),
        ConversionGaugeWidget(),
        MonthlyComparisonWidget(),
        WorldMapWidget(),
        MotifPieWidget(),
        FunnelWidget(),
        PredictionWidget(),
        TopSalesWidget(),
        ConversionTimingWidget(),
    ]


class Dashboard:
    """
    Widgets sharing the year and salesperson filters

    Usage:
        async with DashboardClient() as client:
            dashboard = Dashboard(client)
            years, commerciaux = await dashboard.load_filter_options()
            await dashboard.set_filters(annee=years[0])
    """

    def __init__(self, client: DashboardClient, widgets: Optional[List[Widget]] = None):
        self.client = client
        self.widgets = widgets if widgets is not None else default_widgets()
        self.filters = Filters()

    async def load_filter_options(self) -> Tuple[List[int], List[Commercial]]:
        """Years and salespeople offered by the filter bar"""
        return await asyncio.gather(self.client.get_annees(), self.client.get_commerciaux())

    async def set_filters(self, annee: Optional[int] = None, commercial: Optional[str] = None) -> None:
        self.filters = Filters(annee=annee, commercial=commercial)
        await self.refresh()

    async def refresh(self) -> None:
        await asyncio.gather(*(widget.load(self.client, self.filters) for widget in self.widgets))

    def widget(self, widget_type: type) -> Widget:
        return next(widget for widget in self.widgets if isinstance(widget, widget_type))
