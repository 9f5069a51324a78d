"""
API router for sales reports

One GET endpoint per report. Every filtered endpoint accepts the optional
``annee`` and ``commercial`` query parameters.
"""

from fastapi import APIRouter, Depends
from typing import List
import logging

from sales_indicators.api.models.filters import ReportFilters, report_filters
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
from sales_indicators.api.services import report_service

# Create router
router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/commandes",
    response_model=List[CommandeObjectif],
    summary="Orders vs target",
    description="Ordered revenue and revenue target per salesperson and year"
)
def get_commandes(filters: ReportFilters = Depends(report_filters)):
    """
    Get ordered revenue and target per salesperson and year

    Args:
        filters: Year and salesperson filters

    Returns:
        List[CommandeObjectif]: One row per salesperson and year
    """
    return report_service.get_commandes_objectifs(filters.annee, filters.commercial)


@router.get(
    "/commerciaux",
    response_model=List[Commercial],
    summary="Salesperson directory"
)
def get_commerciaux():
    """Get every salesperson id with its display name"""
    return report_service.get_commerciaux()


@router.get(
    "/annees",
    response_model=List[int],
    summary="Available years"
)
def get_annees():
    """Get the years with orders, most recent first"""
    return report_service.get_annees()


@router.get(
    "/taux-conversion",
    response_model=List[TauxConversion],
    summary="Conversion rates",
    description="Quote and order counts with conversion rate per salesperson and year"
)
def get_taux_conversion(filters: ReportFilters = Depends(report_filters)):
    return report_service.get_taux_conversion(filters.annee, filters.commercial)


@router.get(
    "/ca-par-pays",
    response_model=List[CAParPays],
    summary="Revenue by country"
)
def get_ca_par_pays(filters: ReportFilters = Depends(report_filters)):
    return report_service.get_ca_par_pays(filters.annee, filters.commercial)


@router.get(
    "/ca-par-mois",
    response_model=List[CAParMois],
    summary="Revenue by month"
)
def get_ca_par_mois(filters: ReportFilters = Depends(report_filters)):
    return report_service.get_ca_par_mois(filters.annee, filters.commercial)


@router.get(
    "/motif-repartition",
    response_model=List[MotifRepartition],
    summary="Order reasons",
    description="Number of quotes per order reason, largest first"
)
def get_motif_repartition(filters: ReportFilters = Depends(report_filters)):
    return report_service.get_motif_repartition(filters.annee, filters.commercial)


@router.get(
    "/prediction-ca",
    response_model=PredictionCA,
    summary="Revenue prediction",
    description="Quote revenue weighted by win probability"
)
def get_prediction_ca(filters: ReportFilters = Depends(report_filters)):
    return report_service.get_prediction_ca(filters.annee, filters.commercial)


@router.get(
    "/funnel-data",
    response_model=List[FunnelBucket],
    summary="Prediction funnel",
    description="Weighted revenue and quote count per probability band"
)
def get_funnel_data(filters: ReportFilters = Depends(report_filters)):
    """
    Get the four probability bands of the prediction funnel

    Args:
        filters: Year and salesperson filters

    Returns:
        List[FunnelBucket]: Bands from lowest to highest probability
    """
    return report_service.get_funnel_data(filters.annee, filters.commercial)


@router.get(
    "/top-sales",
    response_model=List[TopSale],
    summary="Top sales"
)
def get_top_sales(filters: ReportFilters = Depends(report_filters)):
    return report_service.get_top_sales(filters.annee, filters.commercial)


@router.get(
    "/temps-ca-conversion",
    response_model=List[TempsCAConversion],
    summary="Conversion timing",
    description="Average days to convert and average revenue per month"
)
def get_temps_ca_conversion(filters: ReportFilters = Depends(report_filters)):
    return report_service.get_temps_ca_conversion(filters.annee, filters.commercial)
