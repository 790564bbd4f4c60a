"""Create commission settlement tables

Revision ID: 001_create_commission_tables
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_create_commission_tables'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)
MULTIPLIER = sa.Numeric(6, 3)
PERCENT = sa.Numeric(9, 2)


def _cut_columns():
    """Columns shared by the four resultado_comisiones_corte_N tables."""
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('periodo', sa.Integer(), nullable=False),
        sa.Column('zona', sa.String(length=16), nullable=False),
        sa.Column('ruc', sa.String(length=20), nullable=False),
        sa.Column('agencia', sa.String(length=200), nullable=True),
        sa.Column('meta', sa.Integer(), nullable=True),
        sa.Column('top', sa.String(length=16), nullable=True),
        sa.Column('altas', sa.Integer(), nullable=False),
        sa.Column('precio_sin_igv_promedio', MONEY, nullable=False),
        sa.Column('corte_1', sa.Integer(), nullable=False),
        sa.Column('corte_2', sa.Integer(), nullable=False),
        sa.Column('corte_3', sa.Integer(), nullable=False),
        sa.Column('corte_4', sa.Integer(), nullable=False),
        sa.Column('porcentaje_cumplimiento', PERCENT, nullable=True),
        sa.Column('marcha_blanca', sa.String(length=2), nullable=False),
        sa.Column('bono_arpu', sa.String(length=2), nullable=False),
        sa.Column('factor_multiplicador', MULTIPLIER, nullable=False),
        sa.Column('multiplicador_final', MULTIPLIER, nullable=False),
        sa.Column('comision_total', MONEY, nullable=False),
    ]


def _review_columns():
    """Validation and carry-forward columns of cortes 2..4."""
    return [
        sa.Column('validacion_ok', sa.Boolean(), nullable=False),
        sa.Column('altas_guardado', sa.Integer(), nullable=True),
        sa.Column('corte_previo_guardado', sa.Integer(), nullable=True),
        sa.Column('altas_actual', sa.Integer(), nullable=True),
        sa.Column('corte_previo_actual', sa.Integer(), nullable=True),
        sa.Column('primer_recibo_pagado', sa.Integer(), nullable=False),
        sa.Column('altas_penalizadas_acumuladas', sa.Integer(), nullable=False),
        sa.Column('penalidades_acumuladas', MONEY, nullable=False),
        sa.Column('clawbacks_acumulados', MONEY, nullable=False),
    ]


def _stage_columns(stage, corte):
    return [
        sa.Column(f'recibos_no_pagados_corte_{corte}', sa.Integer(), nullable=False),
        sa.Column(f'penalidad_{stage}_churn_pct', PERCENT, nullable=True),
        sa.Column(f'penalidad_{stage}_umbral', sa.Integer(), nullable=False),
        sa.Column(f'penalidad_{stage}_altas_penalizadas', sa.Integer(), nullable=False),
        sa.Column(f'penalidad_{stage}_monto', MONEY, nullable=False),
        sa.Column(f'clawback_{stage}_umbral_corte_{corte}', PERCENT, nullable=True),
        sa.Column(f'clawback_{stage}_cumplimiento_pct', PERCENT, nullable=True),
        sa.Column(f'clawback_{stage}_multiplicador', MULTIPLIER, nullable=True),
        sa.Column(f'clawback_{stage}_monto', MONEY, nullable=False),
    ]


def _create_cut_table(name, *extra_columns):
    op.create_table(
        name,
        *_cut_columns(),
        *extra_columns,
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('periodo', 'zona', 'ruc', name=f'uq_{name}_periodo_zona_ruc'),
    )
    with op.batch_alter_table(name, schema=None) as batch_op:
        batch_op.create_index(batch_op.f(f'ix_{name}_periodo'), ['periodo'], unique=False)


def _create_flag_table(name):
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ruc', sa.String(length=20), nullable=False),
        sa.Column('agencia', sa.String(length=200), nullable=True),
        sa.Column('periodo', sa.Integer(), nullable=False),
        sa.Column('zona', sa.String(length=16), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ruc', 'periodo', 'zona', name=f'uq_{name}_ruc_periodo_zona'),
    )


def upgrade():
    """
    Creates the sales, parameter, configuration and per-cut result tables.
    """
    op.create_table(
        'sales_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cod_pedido', sa.String(length=64), nullable=False),
        sa.Column('dni_asesor', sa.String(length=20), nullable=True),
        sa.Column('asesor', sa.String(length=200), nullable=True),
        sa.Column('dni_cliente', sa.String(length=20), nullable=True),
        sa.Column('fecha_venta', sa.DateTime(), nullable=True),
        sa.Column('fecha_validacion', sa.DateTime(), nullable=True),
        sa.Column('fecha_instalado', sa.DateTime(), nullable=True),
        sa.Column('precio_con_igv_externo', sa.Float(), nullable=True),
        sa.Column('canal', sa.String(length=64), nullable=True),
        sa.Column('tipo_venta', sa.String(length=64), nullable=True),
        sa.Column('tipo_estado', sa.String(length=64), nullable=True),
        sa.Column('oferta', sa.String(length=256), nullable=True),
        sa.Column('recibo1_pagado', sa.DateTime(), nullable=True),
        sa.Column('recibo2_pagado', sa.DateTime(), nullable=True),
        sa.Column('recibo3_pagado', sa.DateTime(), nullable=True),
        sa.Column('corte_1', sa.Integer(), nullable=True),
        sa.Column('corte_2', sa.Integer(), nullable=True),
        sa.Column('corte_3', sa.Integer(), nullable=True),
        sa.Column('corte_4', sa.Integer(), nullable=True),
        sa.Column('periodo', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('sales_record', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sales_record_cod_pedido'), ['cod_pedido'], unique=True)
        batch_op.create_index(batch_op.f('ix_sales_record_dni_asesor'), ['dni_asesor'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_record_fecha_instalado'), ['fecha_instalado'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_record_periodo'), ['periodo'], unique=False)

    op.create_table(
        'parametros',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ruc', sa.String(length=20), nullable=False),
        sa.Column('agencia', sa.String(length=200), nullable=True),
        sa.Column('meta', sa.Integer(), nullable=True),
        sa.Column('top', sa.String(length=16), nullable=False),
        sa.Column('zona', sa.String(length=16), nullable=False),
        sa.Column('periodo', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ruc', 'periodo', 'zona', name='uq_parametros_ruc_periodo_zona'),
    )
    with op.batch_alter_table('parametros', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_parametros_ruc'), ['ruc'], unique=False)
        batch_op.create_index(batch_op.f('ix_parametros_periodo'), ['periodo'], unique=False)

    op.create_table(
        'factor_multiplicador',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('top', sa.String(length=16), nullable=False),
        sa.Column('limite_inferior', PERCENT, nullable=False),
        sa.Column('limite_superior', PERCENT, nullable=True),
        sa.Column('factor', MULTIPLIER, nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('factor_multiplicador', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_factor_multiplicador_top'), ['top'], unique=False)

    _create_flag_table('marcha_blanca')
    _create_flag_table('bono_arpu')

    op.create_table(
        'commission_variable',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variable_name', sa.String(length=64), nullable=False),
        sa.Column('variable_value', sa.Float(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('date_recorded', sa.DateTime(), nullable=False),
        sa.Column('recorded_by', sa.String(length=128), nullable=True),
        sa.Column('comment', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('commission_variable', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_commission_variable_variable_name'), ['variable_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_commission_variable_category'), ['category'], unique=False)

    _create_cut_table(
        'resultado_comisiones_corte_1',
        sa.Column('pago_corte_1', MONEY, nullable=False),
        sa.Column('total_a_pagar_corte_1', MONEY, nullable=False),
    )
    _create_cut_table(
        'resultado_comisiones_corte_2',
        *_review_columns(),
        *_stage_columns(1, 2),
        sa.Column('pago_corte_1', MONEY, nullable=False),
        sa.Column('total_a_pagar_corte_2', MONEY, nullable=False),
    )
    _create_cut_table(
        'resultado_comisiones_corte_3',
        *_review_columns(),
        sa.Column('segundo_recibo_pagado', sa.Integer(), nullable=False),
        *_stage_columns(2, 3),
        sa.Column('total_descuento_corte_3', MONEY, nullable=False),
    )
    _create_cut_table(
        'resultado_comisiones_corte_4',
        *_review_columns(),
        sa.Column('segundo_recibo_pagado', sa.Integer(), nullable=False),
        sa.Column('tercer_recibo_pagado', sa.Integer(), nullable=False),
        *_stage_columns(3, 4),
        sa.Column('total_descuento_corte_4', MONEY, nullable=False),
        sa.Column('total_descuentos', MONEY, nullable=False),
        sa.Column('resultado_neto_final', MONEY, nullable=False),
    )


def downgrade():
    """
    Drops every table created by upgrade().
    """
    for corte in (4, 3, 2, 1):
        op.drop_table(f'resultado_comisiones_corte_{corte}')
    op.drop_table('commission_variable')
    op.drop_table('bono_arpu')
    op.drop_table('marcha_blanca')
    op.drop_table('factor_multiplicador')
    op.drop_table('parametros')
    op.drop_table('sales_record')
