# models.py

from . import db
from datetime import datetime
from sqlalchemy.orm import declared_attr
# --------------------------------------------------

# This file defines the structure of the commission tables using Python classes.
# SQLAlchemy will translate these classes into actual database tables.

MONEY = db.Numeric(14, 2)
MULTIPLIER = db.Numeric(6, 3)
PERCENT = db.Numeric(9, 2)


def _column_dict(instance):
    """Maps every column of a model instance to its value."""
    return {column.name: getattr(instance, column.name) for column in instance.__table__.columns}


# --- 1. SALES RECORD MODEL (read-only to the engine) ---

class SaleRecord(db.Model):
    """
    One telecom sale/installation, loaded by the ingestion process.
    The settlement engine only ever reads this table.
    """
    __tablename__ = 'sales_record'

    id = db.Column(db.Integer, primary_key=True)
    cod_pedido = db.Column(db.String(64), unique=True, nullable=False, index=True)
    dni_asesor = db.Column(db.String(20), index=True)  # Agency RUC
    asesor = db.Column(db.String(200))  # Agency name
    dni_cliente = db.Column(db.String(20))

    fecha_venta = db.Column(db.DateTime)
    fecha_validacion = db.Column(db.DateTime)
    fecha_instalado = db.Column(db.DateTime, index=True)

    precio_con_igv_externo = db.Column(db.Float)
    canal = db.Column(db.String(64))
    tipo_venta = db.Column(db.String(64))
    tipo_estado = db.Column(db.String(64))
    oferta = db.Column(db.String(256))

    # Receipt payment timestamps for the first three billing cycles
    recibo1_pagado = db.Column(db.DateTime)
    recibo2_pagado = db.Column(db.DateTime)
    recibo3_pagado = db.Column(db.DateTime)

    # 0/1 flags: does the sale count in cut N
    corte_1 = db.Column(db.Integer)
    corte_2 = db.Column(db.Integer)
    corte_3 = db.Column(db.Integer)
    corte_4 = db.Column(db.Integer)

    periodo = db.Column(db.Integer, index=True)  # YYYYMM

    def to_dict(self):
        data = _column_dict(self)
        for key in ('fecha_venta', 'fecha_validacion', 'fecha_instalado',
                    'recibo1_pagado', 'recibo2_pagado', 'recibo3_pagado'):
            data[key] = data[key].isoformat() if data[key] else None
        return data

    def __repr__(self):
        return f'<SaleRecord {self.cod_pedido} ({self.dni_asesor})>'


# --- 2. COMMISSION PARAMETER MODEL ---

class CommissionParameter(db.Model):
    """
    Quota and tier of an agency for one period and zone.
    At most one row per (ruc, periodo, zona): writes are upserts.
    """
    __tablename__ = 'parametros'
    __table_args__ = (
        db.UniqueConstraint('ruc', 'periodo', 'zona', name='uq_parametros_ruc_periodo_zona'),
    )

    id = db.Column(db.Integer, primary_key=True)
    ruc = db.Column(db.String(20), nullable=False, index=True)
    agencia = db.Column(db.String(200))
    meta = db.Column(db.Integer)
    top = db.Column(db.String(16), nullable=False, default='REGULAR')
    zona = db.Column(db.String(16), nullable=False)
    periodo = db.Column(db.Integer, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        data = _column_dict(self)
        data['updated_at'] = self.updated_at.isoformat() if self.updated_at else None
        return data


# --- 3. MULTIPLIER BAND MODEL ---

class MultiplierBand(db.Model):
    """
    Operator-configured band of the tier/attainment table.
    Matches when limite_inferior <= attainment < limite_superior
    (limite_superior NULL means open ended).
    """
    __tablename__ = 'factor_multiplicador'

    id = db.Column(db.Integer, primary_key=True)
    top = db.Column(db.String(16), nullable=False, index=True)
    limite_inferior = db.Column(PERCENT, nullable=False)
    limite_superior = db.Column(PERCENT, nullable=True)
    factor = db.Column(MULTIPLIER, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'top': self.top,
            'limite_inferior': self.limite_inferior,
            'limite_superior': self.limite_superior,
            'factor': self.factor,
        }


# --- 4. AGENCY FLAG MODELS ---

class AgencyFlagMixin:
    """Boolean per-agency flag for one period and zone."""
    id = db.Column(db.Integer, primary_key=True)
    ruc = db.Column(db.String(20), nullable=False)
    agencia = db.Column(db.String(200))
    periodo = db.Column(db.Integer, nullable=False)
    zona = db.Column(db.String(16), nullable=False)
    activo = db.Column(db.Boolean, nullable=False, default=True)

    @declared_attr
    def __table_args__(cls):
        return (
            db.UniqueConstraint('ruc', 'periodo', 'zona', name=f'uq_{cls.__tablename__}_ruc_periodo_zona'),
        )

    def to_dict(self):
        return _column_dict(self)


class MarchaBlanca(AgencyFlagMixin, db.Model):
    """Ramp-up status of a newly onboarded agency."""
    __tablename__ = 'marcha_blanca'


class BonoArpu(AgencyFlagMixin, db.Model):
    """ARPU bonus eligibility of an agency."""
    __tablename__ = 'bono_arpu'


# --- 5. COMMISSION VARIABLE MODEL ---

class CommissionVariable(db.Model):
    """
    Historical record of the numeric business parameters of the settlement
    (payment fraction, thresholds, bonus and multipliers).
    Every change is a new row; the latest one wins.
    """
    __tablename__ = 'commission_variable'

    id = db.Column(db.Integer, primary_key=True)
    variable_name = db.Column(db.String(64), nullable=False, index=True)
    variable_value = db.Column(db.Float, nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    date_recorded = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    recorded_by = db.Column(db.String(128), nullable=True)
    comment = db.Column(db.String(255), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'variable_name': self.variable_name,
            'variable_value': self.variable_value,
            'category': self.category,
            'date_recorded': self.date_recorded.isoformat(),
            'recorded_by': self.recorded_by,
            'comment': self.comment,
        }


# --- 6. CUT SETTLEMENT MODELS ---

class CutSettlementMixin:
    """
    Columns shared by the four cut tables. Rows are keyed on
    (periodo, zona, ruc) and written with upserts.
    """
    id = db.Column(db.Integer, primary_key=True)
    periodo = db.Column(db.Integer, nullable=False, index=True)
    zona = db.Column(db.String(16), nullable=False)
    ruc = db.Column(db.String(20), nullable=False)
    agencia = db.Column(db.String(200))

    meta = db.Column(db.Integer)
    top = db.Column(db.String(16))
    altas = db.Column(db.Integer, nullable=False, default=0)
    precio_sin_igv_promedio = db.Column(MONEY, nullable=False, default=0)
    corte_1 = db.Column(db.Integer, nullable=False, default=0)
    corte_2 = db.Column(db.Integer, nullable=False, default=0)
    corte_3 = db.Column(db.Integer, nullable=False, default=0)
    corte_4 = db.Column(db.Integer, nullable=False, default=0)

    porcentaje_cumplimiento = db.Column(PERCENT)
    marcha_blanca = db.Column(db.String(2), nullable=False, default='No')
    bono_arpu = db.Column(db.String(2), nullable=False, default='No')
    factor_multiplicador = db.Column(MULTIPLIER, nullable=False)
    multiplicador_final = db.Column(MULTIPLIER, nullable=False)
    comision_total = db.Column(MONEY, nullable=False, default=0)

    @declared_attr
    def __table_args__(cls):
        return (
            db.UniqueConstraint('periodo', 'zona', 'ruc', name=f'uq_{cls.__tablename__}_periodo_zona_ruc'),
        )

    def to_dict(self):
        return _column_dict(self)


class ReviewedCutMixin(CutSettlementMixin):
    """Validation, receipts and carry-forward columns of cuts 2..4."""
    validacion_ok = db.Column(db.Boolean, nullable=False, default=True)
    altas_guardado = db.Column(db.Integer)
    corte_previo_guardado = db.Column(db.Integer)
    altas_actual = db.Column(db.Integer)
    corte_previo_actual = db.Column(db.Integer)

    primer_recibo_pagado = db.Column(db.Integer, nullable=False, default=0)

    altas_penalizadas_acumuladas = db.Column(db.Integer, nullable=False, default=0)
    penalidades_acumuladas = db.Column(MONEY, nullable=False, default=0)
    clawbacks_acumulados = db.Column(MONEY, nullable=False, default=0)


class CutSettlement1(CutSettlementMixin, db.Model):
    __tablename__ = 'resultado_comisiones_corte_1'

    pago_corte_1 = db.Column(MONEY, nullable=False, default=0)
    total_a_pagar_corte_1 = db.Column(MONEY, nullable=False, default=0)


class CutSettlement2(ReviewedCutMixin, db.Model):
    __tablename__ = 'resultado_comisiones_corte_2'

    recibos_no_pagados_corte_2 = db.Column(db.Integer, nullable=False, default=0)

    penalidad_1_churn_pct = db.Column(PERCENT)
    penalidad_1_umbral = db.Column(db.Integer, nullable=False, default=0)
    penalidad_1_altas_penalizadas = db.Column(db.Integer, nullable=False, default=0)
    penalidad_1_monto = db.Column(MONEY, nullable=False, default=0)

    clawback_1_umbral_corte_2 = db.Column(PERCENT)
    clawback_1_cumplimiento_pct = db.Column(PERCENT)
    clawback_1_multiplicador = db.Column(MULTIPLIER)
    clawback_1_monto = db.Column(MONEY, nullable=False, default=0)

    pago_corte_1 = db.Column(MONEY, nullable=False, default=0)
    total_a_pagar_corte_2 = db.Column(MONEY, nullable=False, default=0)


class CutSettlement3(ReviewedCutMixin, db.Model):
    __tablename__ = 'resultado_comisiones_corte_3'

    segundo_recibo_pagado = db.Column(db.Integer, nullable=False, default=0)
    recibos_no_pagados_corte_3 = db.Column(db.Integer, nullable=False, default=0)

    penalidad_2_churn_pct = db.Column(PERCENT)
    penalidad_2_umbral = db.Column(db.Integer, nullable=False, default=0)
    penalidad_2_altas_penalizadas = db.Column(db.Integer, nullable=False, default=0)
    penalidad_2_monto = db.Column(MONEY, nullable=False, default=0)

    clawback_2_umbral_corte_3 = db.Column(PERCENT)
    clawback_2_cumplimiento_pct = db.Column(PERCENT)
    clawback_2_multiplicador = db.Column(MULTIPLIER)
    clawback_2_monto = db.Column(MONEY, nullable=False, default=0)

    total_descuento_corte_3 = db.Column(MONEY, nullable=False, default=0)


class CutSettlement4(ReviewedCutMixin, db.Model):
    __tablename__ = 'resultado_comisiones_corte_4'

    segundo_recibo_pagado = db.Column(db.Integer, nullable=False, default=0)
    tercer_recibo_pagado = db.Column(db.Integer, nullable=False, default=0)
    recibos_no_pagados_corte_4 = db.Column(db.Integer, nullable=False, default=0)

    penalidad_3_churn_pct = db.Column(PERCENT)
    penalidad_3_umbral = db.Column(db.Integer, nullable=False, default=0)
    penalidad_3_altas_penalizadas = db.Column(db.Integer, nullable=False, default=0)
    penalidad_3_monto = db.Column(MONEY, nullable=False, default=0)

    clawback_3_umbral_corte_4 = db.Column(PERCENT)
    clawback_3_cumplimiento_pct = db.Column(PERCENT)
    clawback_3_multiplicador = db.Column(MULTIPLIER)
    clawback_3_monto = db.Column(MONEY, nullable=False, default=0)

    total_descuento_corte_4 = db.Column(MONEY, nullable=False, default=0)
    total_descuentos = db.Column(MONEY, nullable=False, default=0)
    resultado_neto_final = db.Column(MONEY, nullable=False, default=0)


CUT_MODELS = {
    1: CutSettlement1,
    2: CutSettlement2,
    3: CutSettlement3,
    4: CutSettlement4,
}
