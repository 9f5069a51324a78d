"""
Tests for the report service layer

The database session is replaced by a fake that records every statement
with its bound parameters and answers with canned rows.
"""

import pytest
from contextlib import contextmanager
from datetime import date
from sqlalchemy.exc import SQLAlchemyError

from sales_indicators.api.services import report_service
from sales_indicators.api.services.report_service import (
    ErrorPolicy,
    ReportQueryError,
    apply_filters,
)
from sales_indicators.api.models.report import FunnelLevel, PredictionCA


class FakeMappings:
    def __init__(self, rows):
        self.rows = rows

    def __iter__(self):
        return iter(self.rows)

    def first(self):
        return self.rows[0] if self.rows else None


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def mappings(self):
        return FakeMappings(self.rows)


class FakeSession:
    """Records executed SQL and answers with queued row lists"""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.statements = []

    def execute(self, clause, params=None):
        self.statements.append((str(clause), dict(params or {})))
        rows = self.responses.pop(0) if self.responses else []
        return FakeResult(rows)


@pytest.fixture
def fake_session(monkeypatch):
    """Install a recording session; tests queue rows on ``responses``"""
    session = FakeSession()

    @contextmanager
    def fake_get_db_session():
        yield session

    monkeypatch.setattr(report_service, "get_db_session", fake_get_db_session)
    return session


@pytest.fixture
def failing_session(monkeypatch):
    """Make every query fail as if the server were unreachable"""
    def fail():
        raise SQLAlchemyError("connection refused")

    monkeypatch.setattr(report_service, "get_db_session", fail)


def test_apply_filters_without_filters():
    """No predicate is appended when no filter is active"""
    query, params = apply_filters("SELECT 1 WHERE 1=1", None, None, "Date_Annee", "ID_Commercial")
    assert query == "SELECT 1 WHERE 1=1"
    assert params == {}


def test_apply_filters_with_both_filters():
    query, params = apply_filters("SELECT 1 WHERE 1=1", 2023, "C01", "Date_Annee", "ID_Commercial")
    assert query.endswith(" AND Date_Annee = :annee AND ID_Commercial = :commercial")
    assert params == {"annee": 2023, "commercial": "C01"}


def test_apply_filters_all_means_every_salesperson():
    query, params = apply_filters("SELECT 1 WHERE 1=1", 2023, "all", "Date_Annee", "ID_Commercial")
    assert ":commercial" not in query
    assert params == {"annee": 2023}


def test_apply_filters_keeps_template_params():
    _, params = apply_filters("SELECT 1 WHERE 1=1", None, "C01", "a", "b", params={"prefix": "CMDE"})
    assert params == {"prefix": "CMDE", "commercial": "C01"}


def test_user_input_only_in_bound_params(fake_session):
    """Filter values never appear in the SQL text"""
    hostile = "C01'; DROP TABLE KPI_Commercial; --"
    report_service.get_taux_conversion(2023, hostile)

    sql, params = fake_session.statements[0]
    assert hostile not in sql
    assert params["commercial"] == hostile


def test_get_commandes_objectifs(fake_session):
    fake_session.responses.append([
        {"ID_Commercial": "C01", "CA_Commande": 1500.0, "CA_Objectif": 1000.0, "Annee": 2023},
    ])

    rows = report_service.get_commandes_objectifs(2023, "C01")

    sql, params = fake_session.statements[0]
    assert "FROM CA_Commande_Objectif" in sql
    assert "co.Date_Annee = :annee" in sql
    assert "co.ID_Commercial = :commercial" in sql
    assert params == {"annee": 2023, "commercial": "C01"}

    assert len(rows) == 1
    assert rows[0].salesperson_id == "C01"
    assert rows[0].actual_revenue == 1500.0
    assert rows[0].year == 2023


def test_get_commandes_objectifs_unfiltered(fake_session):
    report_service.get_commandes_objectifs()

    sql, params = fake_session.statements[0]
    assert ":annee" not in sql
    assert ":commercial" not in sql
    assert params == {}


def test_get_annees_most_recent_first(fake_session):
    fake_session.responses.append([{"Annee": 2024}, {"Annee": 2023}])

    assert report_service.get_annees() == [2024, 2023]
    assert "ORDER BY co.Date_Annee DESC" in fake_session.statements[0][0]


def test_get_ca_par_pays_groups_by_country(fake_session):
    fake_session.responses.append([{"Pays": "FR", "CA_Commande": 1200.0}])

    rows = report_service.get_ca_par_pays(None, "C02")

    sql, params = fake_session.statements[0]
    assert "[CSID].[dbo].[CA_Commande_Localite]" in sql
    assert "GROUP BY Pays" in sql
    assert params == {"commercial": "C02"}
    assert rows[0].country_code == "FR"


def test_get_ca_par_pays_tolerates_null_country(fake_session):
    fake_session.responses.append([
        {"Pays": None, "CA_Commande": 10.0},
        {"Pays": "FR", "CA_Commande": None},
    ])

    rows = report_service.get_ca_par_pays()

    assert [(row.country_code, row.revenue) for row in rows] == [(None, 10.0), ("FR", 0)]


def test_get_commandes_objectifs_unset_target_counts_as_zero(fake_session):
    fake_session.responses.append([
        {"ID_Commercial": "C01", "CA_Commande": 1500.0, "CA_Objectif": None, "Annee": 2023},
    ])

    rows = report_service.get_commandes_objectifs()

    assert rows[0].target_revenue == 0
    assert rows[0].actual_revenue == 1500.0


def test_get_taux_conversion_null_counts(fake_session):
    fake_session.responses.append([
        {"ID": 1, "Annee_Commande": 2023, "Commercial_ID": "C01",
         "Nb_Devis": None, "Nb_Commandes": None, "Taux_Conversion": None},
    ])

    row = report_service.get_taux_conversion()[0]

    assert (row.quote_count, row.order_count, row.rate) == (0, 0, 0)


def test_silent_report_swallows_unreadable_rows(fake_session):
    """A row the model rejects degrades like a failed query"""
    fake_session.responses.append([{"ID_Commercial": None, "CA_Commande": 1.0, "Annee": 2023}])

    assert report_service.get_commandes_objectifs() == []


def test_propagating_report_wraps_unreadable_rows(fake_session):
    fake_session.responses.append([{"Mois": 3, "CA_Commande": "not a number"}])

    with pytest.raises(ReportQueryError) as exc_info:
        report_service.get_ca_par_mois()

    assert exc_info.value.message == "Erreur lors de la récupération des données"


def test_get_motif_repartition_null_reason(fake_session):
    fake_session.responses.append([{"Motif": "NULL", "Nb_Devis": 4}])

    rows = report_service.get_motif_repartition(2022)

    sql, _ = fake_session.statements[0]
    assert "ISNULL(Motif, 'NULL')" in sql
    assert rows[0].reason == "NULL"
    assert rows[0].quote_count == 4


def test_get_prediction_ca_empty_total(fake_session):
    fake_session.responses.append([{"CA_Prediction": 0}])

    assert report_service.get_prediction_ca().total_weighted_revenue == 0


def test_get_funnel_data_four_buckets_in_order(fake_session):
    fake_session.responses.extend([
        [{"CA_Prediction": 100.0, "Nombre_Devis": 5}],
        [{"CA_Prediction": None, "Nombre_Devis": 0}],
        [],
        [{"CA_Prediction": 900.0, "Nombre_Devis": 1}],
    ])

    buckets = report_service.get_funnel_data(2023, "all")

    assert [bucket.label for bucket in buckets] == [
        FunnelLevel.LOW, FunnelLevel.MEDIUM, FunnelLevel.HIGH, FunnelLevel.VERY_HIGH,
    ]
    assert [bucket.weighted_revenue for bucket in buckets] == [100.0, 0, 0, 900.0]
    assert [bucket.quote_count for bucket in buckets] == [5, 0, 0, 1]

    # one query per band, all with the same filters
    assert len(fake_session.statements) == 4
    assert "p.Probabilite <= 20" in fake_session.statements[0][0]
    assert "p.Probabilite > 80" in fake_session.statements[3][0]
    assert all(params == {"annee": 2023} for _, params in fake_session.statements)


def test_get_top_sales_prefix_and_limit(fake_session):
    fake_session.responses.append([
        {
            "ca": 50000.0,
            "documentDeVente": "CMDE0042",
            "commercial": "Alice Martin",
            "client": "ACME",
            "date": date(2023, 5, 2),
            "pays": "FR",
        },
    ])

    rows = report_service.get_top_sales(2023)

    sql, params = fake_session.statements[0]
    assert "TOP 5" in sql
    assert "LEFT(c.Document_De_Vente, 4) = :prefix" in sql
    assert "YEAR(c.Date_Commande) = :annee" in sql
    assert sql.rstrip().endswith("ORDER BY c.CA_Commande DESC, c.Document_De_Vente")
    assert params == {"prefix": "CMDE", "annee": 2023}

    assert rows[0].sales_doc_id == "CMDE0042"
    assert rows[0].sale_date == date(2023, 5, 2)


def test_get_temps_ca_conversion_backfills_twelve_months(fake_session):
    fake_session.responses.append([
        {"Mois": 3, "Duree_Moyenne": 12.5, "CA_Moyen": 4.2},
        {"Mois": 7, "Duree_Moyenne": 30.0, "CA_Moyen": 8.0},
    ])

    rows = report_service.get_temps_ca_conversion()

    assert [row.month for row in rows] == list(range(1, 13))
    assert rows[2].avg_days_to_convert == 12.5
    assert rows[6].avg_revenue_thousands == 8.0
    for row in rows:
        if row.month not in (3, 7):
            assert row.avg_days_to_convert == 0
            assert row.avg_revenue_thousands == 0


def test_reports_are_idempotent(fake_session):
    """Same filters, same statement"""
    report_service.get_ca_par_mois(2023, "C01")
    report_service.get_ca_par_mois(2023, "C01")

    assert fake_session.statements[0] == fake_session.statements[1]


@pytest.mark.parametrize("report, empty", [
    (report_service.get_commandes_objectifs, []),
    (report_service.get_commerciaux, []),
    (report_service.get_annees, []),
    (report_service.get_taux_conversion, []),
    (report_service.get_ca_par_pays, []),
])
def test_silent_reports_return_empty(failing_session, report, empty):
    assert report.error_policy is ErrorPolicy.SILENT
    assert report() == empty


def test_silent_prediction_returns_zero(failing_session):
    prediction = report_service.get_prediction_ca(2023)
    assert isinstance(prediction, PredictionCA)
    assert prediction.total_weighted_revenue == 0


@pytest.mark.parametrize("report, message", [
    (report_service.get_ca_par_mois, "Erreur lors de la récupération des données"),
    (report_service.get_motif_repartition, "Erreur lors de la récupération des motifs de commande"),
    (report_service.get_funnel_data, "Erreur lors de la récupération des données du funnel"),
    (report_service.get_top_sales, "Erreur lors de la récupération des meilleures ventes"),
    (report_service.get_temps_ca_conversion, "Erreur lors de la récupération des temps de conversion"),
])
def test_propagating_reports_raise(failing_session, report, message):
    assert report.error_policy is ErrorPolicy.PROPAGATE

    with pytest.raises(ReportQueryError) as exc_info:
        report(2023, "C01")

    assert exc_info.value.message == message
    assert exc_info.value.report == report.__name__
