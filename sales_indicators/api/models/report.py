"""
API data models for sales reports

Field aliases are the column names returned by the reporting tables; they
are also the JSON keys the dashboard reads.
"""

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from enum import Enum
from typing import Annotated, Optional, Union
from datetime import date


def _null_as_zero(value):
    return 0 if value is None else value


# Aggregates over empty or unset columns come back as NULL and count as 0
Amount = Annotated[float, BeforeValidator(_null_as_zero)]
Count = Annotated[int, BeforeValidator(_null_as_zero)]


class ReportModel(BaseModel):
    """Base for report rows: populated from database aliases or attribute names"""
    model_config = ConfigDict(populate_by_name=True)


class CommandeObjectif(ReportModel):
    """Orders vs target for one salesperson and year"""
    salesperson_id: str = Field(..., alias="ID_Commercial", description="Salesperson identifier")
    actual_revenue: Amount = Field(0, alias="CA_Commande", description="Ordered revenue")
    target_revenue: Amount = Field(0, alias="CA_Objectif", description="Revenue target, <= 0 when unset")
    year: int = Field(..., alias="Annee", description="Order year")


class Commercial(ReportModel):
    """Salesperson directory entry"""
    id: str = Field(..., alias="ID_Commercial", description="Salesperson identifier")
    name: str = Field(..., alias="Nom", description="Display name")


class TauxConversion(ReportModel):
    """Quote to order conversion for one salesperson and year"""
    id: int = Field(..., alias="ID")
    year: int = Field(..., alias="Annee_Commande")
    salesperson_id: str = Field(..., alias="Commercial_ID")
    quote_count: Count = Field(0, alias="Nb_Devis")
    order_count: Count = Field(0, alias="Nb_Commandes")
    rate: Amount = Field(0, alias="Taux_Conversion", description="Rate computed upstream")


class CAParPays(ReportModel):
    """Revenue for one country"""
    country_code: Optional[str] = Field(None, alias="Pays", description="ISO alpha-2 country code")
    revenue: Amount = Field(0, alias="CA_Commande")


class CAParMois(ReportModel):
    """Revenue for one month"""
    month: Union[int, str] = Field(..., alias="Mois", description="Month number (1-12) or English month name")
    revenue: Amount = Field(0, alias="CA_Commande")


class MotifRepartition(ReportModel):
    """Number of quotes for one order reason"""
    reason: str = Field("NULL", alias="Motif", description="Order reason, 'NULL' when missing")
    quote_count: Count = Field(0, alias="Nb_Devis")


class PredictionCA(ReportModel):
    """Probability-weighted revenue prediction"""
    total_weighted_revenue: Amount = Field(0, alias="CA_Prediction")


class FunnelLevel(str, Enum):
    """Probability bands of the prediction funnel, in display order"""
    LOW = "0-20%"
    MEDIUM = "21-70%"
    HIGH = "71-80%"
    VERY_HIGH = "81-100%"


class FunnelBucket(ReportModel):
    """One band of the prediction funnel"""
    label: FunnelLevel = Field(..., alias="Niveau")
    weighted_revenue: Amount = Field(0, alias="CA_Prediction")
    quote_count: Count = Field(0, alias="Nombre_Devis")


class TopSale(ReportModel):
    """One of the best sales"""
    revenue: Amount = Field(..., alias="ca")
    sales_doc_id: str = Field(..., alias="documentDeVente")
    salesperson_name: Optional[str] = Field(None, alias="commercial")
    customer_name: Optional[str] = Field(None, alias="client")
    sale_date: Optional[date] = Field(None, alias="date")
    country_code: Optional[str] = Field(None, alias="pays")


class TempsCAConversion(ReportModel):
    """Average conversion delay and average revenue for one month"""
    month: int = Field(..., alias="Mois", ge=1, le=12)
    avg_days_to_convert: Amount = Field(0, alias="Duree_Moyenne")
    avg_revenue_thousands: Amount = Field(0, alias="CA_Moyen", description="Average revenue divided by 1000")
