"""
Service layer for sales reports

One function per report. Each builds a fixed SQL template, appends the
optional year/salesperson predicates as bound parameters and maps the rows
to the report's model.

Error policy differs per report and is part of each function's contract:
- SILENT reports log data-access failures and return an empty value
- PROPAGATE reports log and raise ReportQueryError (HTTP 500)
The policy is available on the function as ``error_policy``.
"""

from typing import List, Dict, Any, Optional, Tuple, Callable
from enum import Enum
import functools
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError

from sales_indicators.config.settings import settings
from sales_indicators.db.session import get_db_session
from sales_indicators.api.models.report import (
    CommandeObjectif,
    Commercial,
    TauxConversion,
    CAParPays,
    CAParMois,
    MotifRepartition,
    PredictionCA,
    FunnelLevel,
    FunnelBucket,
    TopSale,
    TempsCAConversion,
)

# Configure logging
logger = logging.getLogger(__name__)

# Failures a report turns into its error policy: the query failing, or a
# row the report model cannot accept
REPORT_ERRORS = (SQLAlchemyError, ValidationError)

# Salesperson filter value meaning "every salesperson"
ALL_COMMERCIAUX = "all"

TOP_SALES_LIMIT = 5
MONTHS = range(1, 13)

# Probability bands, in funnel order
FUNNEL_BUCKETS: List[Tuple[FunnelLevel, str]] = [
    (FunnelLevel.LOW, "p.Probabilite <= 20"),
    (FunnelLevel.MEDIUM, "p.Probabilite > 20 AND p.Probabilite <= 70"),
    (FunnelLevel.HIGH, "p.Probabilite > 70 AND p.Probabilite <= 80"),
    (FunnelLevel.VERY_HIGH, "p.Probabilite > 80"),
]


class ErrorPolicy(str, Enum):
    """How a report reacts to a data-access failure"""
    SILENT = "silent"
    PROPAGATE = "propagate"


class ReportQueryError(Exception):
    """Raised by PROPAGATE reports when the query cannot be executed."""

    def __init__(self, message: str, report: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.report = report


def silent_on_error(default_factory: Callable[[], Any]) -> Callable:
    """
    Decorate a report so data-access failures are logged and replaced by
    ``default_factory()``.

    Example:
        @silent_on_error(list)
        def get_commerciaux():
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except REPORT_ERRORS as e:
                logger.error(f"Error retrieving report {func.__name__}: {str(e)}")
                return default_factory()

        wrapper.error_policy = ErrorPolicy.SILENT
        return wrapper

    return decorator


def propagate_errors(message: str) -> Callable:
    """
    Decorate a report so data-access failures are logged and re-raised as
    ReportQueryError carrying the public ``message``.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except REPORT_ERRORS as e:
                logger.error(f"Error retrieving report {func.__name__}: {str(e)}")
                raise ReportQueryError(message, report=func.__name__) from e

        wrapper.error_policy = ErrorPolicy.PROPAGATE
        return wrapper

    return decorator


def is_commercial_filter_active(commercial: Optional[str]) -> bool:
    """An absent, empty or 'all' salesperson means no filter."""
    return bool(commercial) and commercial != ALL_COMMERCIAUX


def apply_filters(
    query: str,
    annee: Optional[int],
    commercial: Optional[str],
    year_column: str,
    commercial_column: str,
    params: Optional[Dict[str, Any]] = None
) -> Tuple[str, Dict[str, Any]]:
    """
    Append the optional year and salesperson predicates to a query

    Args:
        query: SQL template ending with a WHERE clause
        annee: Year filter, ignored when falsy
        commercial: Salesperson filter, ignored when absent or 'all'
        year_column: Column (or expression) compared to the year
        commercial_column: Column compared to the salesperson id
        params: Parameters already bound by the template

    Returns:
        Tuple of (query, bound parameters)
    """
    params = dict(params or {})

    if annee:
        query += f" AND {year_column} = :annee"
        params["annee"] = annee

    if is_commercial_filter_active(commercial):
        query += f" AND {commercial_column} = :commercial"
        params["commercial"] = commercial

    return query, params


def fetch_all(query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Execute a SELECT on a short-lived session and return rows as dicts"""
    with get_db_session() as session:
        result = session.execute(text(query), params or {})
        return [dict(row) for row in result.mappings()]


# =========================================================================
# REPORTS
# =========================================================================

@silent_on_error(list)
def get_commandes_objectifs(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[CommandeObjectif]:
    """Ordered revenue and target per salesperson and year"""
    query = """
        SELECT co.ID_Commercial, co.CA_Commande, co.CA_Objectif, co.Date_Annee AS Annee
        FROM CA_Commande_Objectif co
        WHERE 1=1
    """
    query, params = apply_filters(query, annee, commercial, "co.Date_Annee", "co.ID_Commercial")
    query += " ORDER BY co.ID_Commercial, co.Date_Annee"

    return [CommandeObjectif(**row) for row in fetch_all(query, params)]


@silent_on_error(list)
def get_commerciaux() -> List[Commercial]:
    """Salesperson directory"""
    query = """
        SELECT ID_Commercial, Nom
        FROM KPI_Commercial
        ORDER BY ID_Commercial
    """
    return [Commercial(**row) for row in fetch_all(query)]


@silent_on_error(list)
def get_annees() -> List[int]:
    """Years with orders, most recent first"""
    query = """
        SELECT DISTINCT co.Date_Annee AS Annee
        FROM CA_Commande_Objectif co
        ORDER BY co.Date_Annee DESC
    """
    return [int(row["Annee"]) for row in fetch_all(query)]


@silent_on_error(list)
def get_taux_conversion(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[TauxConversion]:
    """Quote and order counts with conversion rate per salesperson and year"""
    query = """
        SELECT
            ID,
            Annee_Commande,
            Commercial_ID,
            Nb_Devis,
            Nb_Commandes,
            Taux_Conversion
        FROM Taux_Conversion
        WHERE 1=1
    """
    query, params = apply_filters(query, annee, commercial, "Annee_Commande", "Commercial_ID")
    query += " ORDER BY Commercial_ID, Annee_Commande"

    return [TauxConversion(**row) for row in fetch_all(query, params)]


@silent_on_error(list)
def get_ca_par_pays(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[CAParPays]:
    """Ordered revenue per country"""
    query = """
        SELECT
            Pays,
            SUM(CA_Commande) AS CA_Commande
        FROM [CSID].[dbo].[CA_Commande_Localite]
        WHERE 1=1
    """
    query, params = apply_filters(query, annee, commercial, "Date_Annee", "ID_Commercial")
    query += " GROUP BY Pays ORDER BY Pays"

    return [CAParPays(**row) for row in fetch_all(query, params)]


@propagate_errors("Erreur lors de la récupération des données")
def get_ca_par_mois(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[CAParMois]:
    """Ordered revenue per month"""
    query = """
        SELECT
            Date_Mois AS Mois,
            SUM(CA_Commande) AS CA_Commande
        FROM CA_Commande
        WHERE 1=1
    """
    query, params = apply_filters(query, annee, commercial, "Date_Annee", "ID_Commercial")
    query += " GROUP BY Date_Mois ORDER BY Date_Mois"

    return [CAParMois(**row) for row in fetch_all(query, params)]


@propagate_errors("Erreur lors de la récupération des motifs de commande")
def get_motif_repartition(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[MotifRepartition]:
    """Number of quotes per order reason, largest first"""
    query = """
        SELECT
            ISNULL(Motif, 'NULL') AS Motif,
            SUM(Nb_Devis) AS Nb_Devis
        FROM [CSID].[dbo].[Taux_Motif]
        WHERE 1=1
    """
    query, params = apply_filters(query, annee, commercial, "Date_Annee", "ID_Commercial")
    query += " GROUP BY ISNULL(Motif, 'NULL') ORDER BY SUM(Nb_Devis) DESC, ISNULL(Motif, 'NULL')"

    return [MotifRepartition(**row) for row in fetch_all(query, params)]


@silent_on_error(PredictionCA)
def get_prediction_ca(annee: Optional[int] = None, commercial: Optional[str] = None) -> PredictionCA:
    """Quote revenue weighted by its win probability"""
    query = """
        SELECT ISNULL(SUM(p.CA_Devis * p.Probabilite / 100.0), 0) AS CA_Prediction
        FROM Prediction_CA p
        WHERE 1=1
    """
    query, params = apply_filters(query, annee, commercial, "p.Date_Annee", "p.ID_Commercial")

    rows = fetch_all(query, params)
    if not rows:
        return PredictionCA()
    return PredictionCA(**rows[0])


@propagate_errors("Erreur lors de la récupération des données du funnel")
def get_funnel_data(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[FunnelBucket]:
    """
    Weighted revenue and quote count for each probability band

    Returns:
        Four buckets in funnel order, including empty ones
    """
    buckets = []
    with get_db_session() as session:
        for level, predicate in FUNNEL_BUCKETS:
            query = f"""
                SELECT
                    ISNULL(SUM(p.CA_Devis * p.Probabilite / 100.0), 0) AS CA_Prediction,
                    COUNT(*) AS Nombre_Devis
                FROM Prediction_CA p
                WHERE {predicate}
            """
            query, params = apply_filters(query, annee, commercial, "p.Date_Annee", "p.ID_Commercial")
            row = session.execute(text(query), params).mappings().first() or {}
            buckets.append(FunnelBucket(
                label=level,
                weighted_revenue=row.get("CA_Prediction") or 0,
                quote_count=row.get("Nombre_Devis") or 0,
            ))

    return buckets


@propagate_errors("Erreur lors de la récupération des meilleures ventes")
def get_top_sales(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[TopSale]:
    """Five largest orders whose document number has the configured prefix"""
    query = f"""
        SELECT TOP {TOP_SALES_LIMIT}
            c.CA_Commande AS ca,
            c.Document_De_Vente AS documentDeVente,
            k.Nom AS commercial,
            cl.Nom AS client,
            CAST(c.Date_Commande AS DATE) AS [date],
            cl.Pays AS pays
        FROM Commande c
        JOIN KPI_Commercial k ON k.ID_Commercial = c.ID_Commercial
        JOIN Client cl ON cl.ID_Client = c.ID_Client
        WHERE LEFT(c.Document_De_Vente, 4) = :prefix
    """
    query, params = apply_filters(
        query, annee, commercial, "YEAR(c.Date_Commande)", "c.ID_Commercial",
        params={"prefix": settings.TOP_SALES_DOC_PREFIX}
    )
    query += " ORDER BY c.CA_Commande DESC, c.Document_De_Vente"

    return [TopSale(**row) for row in fetch_all(query, params)]


@propagate_errors("Erreur lors de la récupération des temps de conversion")
def get_temps_ca_conversion(annee: Optional[int] = None, commercial: Optional[str] = None) -> List[TempsCAConversion]:
    """
    Average days from quote to order and average revenue (in thousands)
    per month

    Returns:
        Exactly twelve entries, months without data set to zero
    """
    query = """
        SELECT
            Date_Mois AS Mois,
            AVG(CAST(Duree_Conversion AS FLOAT)) AS Duree_Moyenne,
            AVG(CAST(CA_Commande AS FLOAT)) / 1000 AS CA_Moyen
        FROM Temps_CA_Conversion
        WHERE 1=1
    """
    query, params = apply_filters(query, annee, commercial, "Date_Annee", "ID_Commercial")
    query += " GROUP BY Date_Mois ORDER BY Date_Mois"

    by_month = {int(row["Mois"]): row for row in fetch_all(query, params)}

    return [
        TempsCAConversion(
            month=month,
            avg_days_to_convert=by_month.get(month, {}).get("Duree_Moyenne") or 0,
            avg_revenue_thousands=by_month.get(month, {}).get("CA_Moyen") or 0,
        )
        for month in MONTHS
    ]
