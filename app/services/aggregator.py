# app/services/aggregator.py
"""
Transaction aggregation.

Groups the sale records of one (zona, periodo) by agency RUC with pandas and
emits one immutable AgencyAggregate per agency. The query layer has already
applied the period, validation and channel filters.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

import pandas as pd

CENT = Decimal('0.01')

SALE_COLUMNS = [
    'cod_pedido', 'dni_asesor', 'asesor', 'precio_con_igv_externo',
    'corte_1', 'corte_2', 'corte_3', 'corte_4',
    'recibo1_pagado', 'recibo2_pagado', 'recibo3_pagado',
]


@dataclass(frozen=True)
class AgencyAggregate:
    ruc: str
    agencia: str = ''
    altas: int = 0
    precio_sin_igv_promedio: Decimal = Decimal('0.00')
    corte_1: int = 0
    corte_2: int = 0
    corte_3: int = 0
    corte_4: int = 0
    primer_recibo_pagado: int = 0
    segundo_recibo_pagado: int = 0
    tercer_recibo_pagado: int = 0

    @classmethod
    def empty(cls, ruc, agencia=''):
        """Aggregate of an agency with no matching records."""
        return cls(ruc=ruc, agencia=agencia or '')

    def corte_count(self, corte):
        return getattr(self, f'corte_{corte}')

    def receipts_paid(self, receipt):
        return (self.primer_recibo_pagado, self.segundo_recibo_pagado, self.tercer_recibo_pagado)[receipt - 1]

    def recibos_no_pagados(self, corte):
        """Installs whose receipt (corte - 1) was not paid by the cut's as-of date."""
        return max(0, self.altas - self.receipts_paid(corte - 1))


@dataclass(frozen=True)
class AggregationResult:
    aggregates: Dict[str, AgencyAggregate]
    skipped: int = 0

    def get(self, ruc, agencia=''):
        return self.aggregates.get(ruc) or AgencyAggregate.empty(ruc, agencia)


def _clean_key(value):
    if value is None:
        return None
    if isinstance(value, float) and value != value:
        return None
    text = str(value).strip()
    return text or None


def _receipt_paid(series, as_of):
    """Timestamp present and strictly before the as-of date."""
    timestamps = pd.to_datetime(series, errors='coerce')
    paid = timestamps.notna()
    if as_of is not None:
        paid &= timestamps < pd.Timestamp(as_of)
    return paid.astype(int)


def aggregate_sales(records, as_of_dates=None, igv_factor='1.18'):
    """
    Aggregates sale records by agency RUC.

    `records` is an iterable of dicts carrying at least SALE_COLUMNS.
    `as_of_dates` maps a cut (2, 3, 4) to the date receipts are checked
    against for it: receipt k counts as paid for cut k + 1. A missing
    entry means "paid whenever a timestamp is present".

    Records without RUC or order id are skipped and counted.
    """
    as_of_dates = as_of_dates or {}
    rows = []
    skipped = 0

    for record in records:
        ruc = _clean_key(record.get('dni_asesor'))
        cod_pedido = _clean_key(record.get('cod_pedido'))
        if ruc is None or cod_pedido is None:
            skipped += 1
            continue
        row = {column: record.get(column) for column in SALE_COLUMNS}
        row['dni_asesor'] = ruc
        row['cod_pedido'] = cod_pedido
        rows.append(row)

    if not rows:
        return AggregationResult(aggregates={}, skipped=skipped)

    df = pd.DataFrame(rows, columns=SALE_COLUMNS)
    # An order counts once even if the load duplicated it
    df = df.drop_duplicates(subset='cod_pedido', keep='first')

    df['precio'] = pd.to_numeric(df['precio_con_igv_externo'], errors='coerce')
    # inf/-inf prices cannot be averaged into a Decimal price
    non_finite = df['precio'].isin([float('inf'), float('-inf')])
    if non_finite.any():
        skipped += int(non_finite.sum())
        df = df[~non_finite].copy()
        if df.empty:
            return AggregationResult(aggregates={}, skipped=skipped)

    for corte in (1, 2, 3, 4):
        column = f'corte_{corte}'
        df[column] = pd.to_numeric(df[column], errors='coerce').fillna(0).astype(int)
    for receipt in (1, 2, 3):
        df[f'pagado_{receipt}'] = _receipt_paid(df[f'recibo{receipt}_pagado'], as_of_dates.get(receipt + 1))

    grouped = df.groupby('dni_asesor', sort=True).agg(
        agencia=('asesor', 'first'),
        altas=('cod_pedido', 'nunique'),
        precio_medio=('precio', 'mean'),
        corte_1=('corte_1', 'sum'),
        corte_2=('corte_2', 'sum'),
        corte_3=('corte_3', 'sum'),
        corte_4=('corte_4', 'sum'),
        pagado_1=('pagado_1', 'sum'),
        pagado_2=('pagado_2', 'sum'),
        pagado_3=('pagado_3', 'sum'),
    )

    igv = Decimal(str(igv_factor))
    aggregates = {}
    for ruc, group in grouped.iterrows():
        mean_price = group['precio_medio']
        if pd.isna(mean_price):
            precio = Decimal('0.00')
        else:
            precio = (Decimal(str(float(mean_price))) / igv).quantize(CENT, rounding=ROUND_HALF_UP)

        agencia = group['agencia']
        aggregates[ruc] = AgencyAggregate(
            ruc=ruc,
            agencia='' if pd.isna(agencia) else str(agencia),
            altas=int(group['altas']),
            precio_sin_igv_promedio=precio,
            corte_1=int(group['corte_1']),
            corte_2=int(group['corte_2']),
            corte_3=int(group['corte_3']),
            corte_4=int(group['corte_4']),
            primer_recibo_pagado=int(group['pagado_1']),
            segundo_recibo_pagado=int(group['pagado_2']),
            tercer_recibo_pagado=int(group['pagado_3']),
        )

    return AggregationResult(aggregates=aggregates, skipped=skipped)
