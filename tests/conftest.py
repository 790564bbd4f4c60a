from datetime import datetime
from decimal import Decimal

import pytest

from app import create_app, db
from app.config import TestConfig
from app.models import CommissionParameter, CommissionVariable, MultiplierBand, SaleRecord
from app.services.aggregator import AgencyAggregate
from app.services.commission_rules import Band, CommissionSettings

RUC = "20100066603"
PERIODO = 202504


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def settings():
    """GOLD: <80 -> 1.0, 80-100 -> 1.2, >=100 -> 1.5; 10% churn tolerance; 60% first payment."""
    return CommissionSettings(
        band_tables={
            "GOLD": (
                Band(Decimal("0"), Decimal("80"), Decimal("1.0")),
                Band(Decimal("80"), Decimal("100"), Decimal("1.2")),
                Band(Decimal("100"), None, Decimal("1.5")),
            ),
            "SILVER": (
                Band(Decimal("100"), None, Decimal("1.4")),
            ),
        },
        churn_threshold_pct={2: Decimal("10"), 3: Decimal("10"), 4: Decimal("10")},
        clawback_threshold_pct={2: Decimal("90"), 3: Decimal("90"), 4: Decimal("90")},
        cut1_payment_fraction=Decimal("0.6"),
    )


@pytest.fixture
def aggregate():
    """10 installs at 100.00 ex-tax; 2 unpaid first receipts, 3 unpaid second and third."""
    return AgencyAggregate(
        ruc=RUC,
        agencia="AGENCIA NORTE SAC",
        altas=10,
        precio_sin_igv_promedio=Decimal("100.00"),
        corte_1=10,
        corte_2=10,
        corte_3=10,
        corte_4=10,
        primer_recibo_pagado=8,
        segundo_recibo_pagado=7,
        tercer_recibo_pagado=7,
    )


@pytest.fixture
def sale_factory(app):
    """Creates sale records installed in April 2025 through the agency channel."""
    counter = {"n": 0}

    def make(ruc=RUC, count=1, price=118.0, canal="Agencias", recibo1=True, recibo2=True, recibo3=True,
             fecha_instalado=datetime(2025, 4, 10), validated=True, asesor="AGENCIA NORTE SAC"):
        records = []
        for _ in range(count):
            counter["n"] += 1
            record = SaleRecord(
                cod_pedido=f"PED-{counter['n']:05d}",
                dni_asesor=ruc,
                asesor=asesor,
                precio_con_igv_externo=price,
                canal=canal,
                fecha_venta=datetime(2025, 4, 1),
                fecha_validacion=datetime(2025, 4, 2) if validated else None,
                fecha_instalado=fecha_instalado,
                recibo1_pagado=datetime(2025, 5, 10) if recibo1 else None,
                recibo2_pagado=datetime(2025, 6, 10) if recibo2 else None,
                recibo3_pagado=datetime(2025, 7, 10) if recibo3 else None,
                corte_1=1,
                corte_2=1,
                corte_3=1,
                corte_4=1,
                periodo=PERIODO,
            )
            db.session.add(record)
            records.append(record)
        db.session.commit()
        return records

    return make


def record_variable(name, value, category):
    db.session.add(CommissionVariable(variable_name=name, variable_value=value, category=category))
    db.session.commit()


@pytest.fixture
def configured(app):
    """
    Stored configuration for the LIMA 202504 scenario: 60% first payment,
    10% churn tolerance at corte 2, no clawback, GOLD band >= 100% -> 1.5.
    """
    record_variable("pagoCorte1Fraccion", 0.6, "PAGOS")
    record_variable("churnUmbralCorte2", 10.0, "PENALIDADES")
    for corte in (2, 3, 4):
        record_variable(f"clawbackUmbralCorte{corte}", 0.0, "CLAWBACKS")

    db.session.add(MultiplierBand(top="GOLD", limite_inferior=Decimal("0"), limite_superior=Decimal("100"), factor=Decimal("1.2")))
    db.session.add(MultiplierBand(top="GOLD", limite_inferior=Decimal("100"), limite_superior=None, factor=Decimal("1.5")))
    db.session.add(CommissionParameter(ruc=RUC, agencia="AGENCIA NORTE SAC", meta=10, top="GOLD", zona="LIMA", periodo=PERIODO))
    db.session.commit()
    return app


@pytest.fixture
def scenario(configured, sale_factory):
    """10 validated installs at 118.00 gross, 2 of them with unpaid receipts."""
    sale_factory(count=8)
    sale_factory(count=2, recibo1=False, recibo2=False, recibo3=False)
    return configured
