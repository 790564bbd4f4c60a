# app/services/settlements.py
# (Loads the inputs of a cut from storage, runs the calculators, upserts the results.)

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from app import db
from app.exceptions import PriorCutMissingError, SettlementError, StorageWriteError, InvalidPeriodError
from app.models import SaleRecord, CUT_MODELS
from app.utils.periods import cut_as_of_date, parse_corte, parse_zona, period_bounds, resolve_period
from app.utils.upsert import upsert_rows

# --- Service Dependencies ---
from .aggregator import SALE_COLUMNS, aggregate_sales
from .email_service import send_settlement_review_email
from .parameters import load_flags, load_parameters
from .settlement_engine import (
    AgencyFlags, AgencyParameter, Mismatched, calculate_corte_1, calculate_corte_n, row_validation,
)
from .variables import build_commission_settings

CUT_KEY = ['periodo', 'zona', 'ruc']


@dataclass
class CutComputation:
    corte: int
    zona: str
    periodo: int
    rows: List[dict] = field(default_factory=list)
    skipped: int = 0
    sin_corte_previo: List[str] = field(default_factory=list)
    skipped_agencies: List[str] = field(default_factory=list)
    # Stored rows of this cut that the run did not recompute
    filas_obsoletas: List[str] = field(default_factory=list)

    @property
    def mismatches(self):
        result = []
        for row in self.rows:
            validation = row_validation(self.corte, row)
            if isinstance(validation, Mismatched):
                result.append({
                    'ruc': row['ruc'],
                    'agencia': row.get('agencia'),
                    'expected': {'altas': validation.expected[0], f'corte_{self.corte - 1}': validation.expected[1]},
                    'actual': {'altas': validation.actual[0], f'corte_{self.corte - 1}': validation.actual[1]},
                })
        return result

    def summary(self):
        return {
            'agencias': len(self.rows),
            'skipped': self.skipped,
            'sin_corte_previo': len(self.sin_corte_previo),
            'skipped_agencies': len(self.skipped_agencies),
            'filas_obsoletas': len(self.filas_obsoletas),
            'needs_review': len(self.mismatches),
        }

    def to_dict(self):
        return {
            'corte': self.corte,
            'zona': self.zona,
            'periodo': self.periodo,
            'summary': self.summary(),
            'mismatches': self.mismatches,
            'sin_corte_previo': self.sin_corte_previo,
            'skipped_agencies': self.skipped_agencies,
            'filas_obsoletas': self.filas_obsoletas,
            'rows': self.rows,
        }


# --- HELPER FUNCTIONS ---

def _sales_query(zona, year, month):
    """Validated sales installed within the period (LIMA: agency channel only)."""
    start, end = period_bounds(year, month)
    query = db.session.query(*[getattr(SaleRecord, column) for column in SALE_COLUMNS]).filter(
        SaleRecord.fecha_validacion.isnot(None),
        SaleRecord.fecha_instalado >= start,
        SaleRecord.fecha_instalado < end,
    )
    if zona == 'LIMA':
        query = query.filter(SaleRecord.canal == current_app.config['LIMA_CANAL'])
    return query


def _iter_sales(zona, year, month):
    batch_size = current_app.config['SALES_FETCH_BATCH_SIZE']
    for row in _sales_query(zona, year, month).yield_per(batch_size):
        yield row._asdict()


def _as_of_dates(corte, year, month, as_of=None):
    """As-of date per cut (2..4); `as_of` overrides the date of the cut being run."""
    offsets = current_app.config['CORTE_AS_OF_MONTH_OFFSET']
    dates = {stage: cut_as_of_date(year, month, stage, offsets) for stage in (2, 3, 4)}
    if as_of is not None and corte in dates:
        dates[corte] = as_of
    return dates


def _parse_as_of(as_of):
    if as_of is None or isinstance(as_of, datetime):
        return as_of
    try:
        return datetime.strptime(str(as_of).strip(), '%Y-%m-%d')
    except ValueError:
        raise InvalidPeriodError(f"Invalid as-of date: {as_of!r}. Expected YYYY-MM-DD.")


def compute_cut(corte, zona, year, mes, as_of=None):
    """
    Runs one cut for (zona, periodo) without writing anything.
    Raises SettlementError subclasses on input, configuration or sequencing errors.
    """
    # Input errors surface before any query
    corte = parse_corte(corte)
    zona = parse_zona(zona, current_app.config['ZONAS'])
    periodo, year, month = resolve_period(year, mes)
    as_of = _parse_as_of(as_of)

    settings = build_commission_settings()
    settings.require(corte)

    prior_rows = {}
    if corte > 1:
        prior_model = CUT_MODELS[corte - 1]
        prior_rows = {
            row.ruc: row.to_dict()
            for row in prior_model.query.filter_by(periodo=periodo, zona=zona).all()
        }
        if not prior_rows:
            raise PriorCutMissingError(
                f"Corte {corte - 1} has not been saved for {zona} {periodo}; run it before corte {corte}."
            )

    aggregation = aggregate_sales(
        _iter_sales(zona, year, month),
        as_of_dates=_as_of_dates(corte, year, month, as_of),
        igv_factor=current_app.config['IGV_FACTOR'],
    )
    parameters = load_parameters(periodo, zona)
    flags = load_flags(periodo, zona)

    computation = CutComputation(corte=corte, zona=zona, periodo=periodo, skipped=aggregation.skipped)

    if corte == 1:
        for ruc in sorted(aggregation.aggregates):
            _append_agency_row(
                computation, ruc, calculate_corte_1,
                aggregation.aggregates[ruc],
                parameters.get(ruc, AgencyParameter()),
                flags.get(ruc, AgencyFlags()),
                settings,
            )
    else:
        # Agencies enter the chain at corte 1 only
        computation.sin_corte_previo = sorted(set(aggregation.aggregates) - set(prior_rows))
        for ruc in sorted(prior_rows):
            prior = prior_rows[ruc]
            _append_agency_row(
                computation, ruc, calculate_corte_n,
                corte,
                aggregation.get(ruc, prior.get('agencia')),
                prior,
                parameters.get(ruc, AgencyParameter()),
                flags.get(ruc, AgencyFlags()),
                settings,
            )

    computed = {row['ruc'] for row in computation.rows}
    stored = {
        ruc for (ruc,) in db.session.query(CUT_MODELS[corte].ruc).filter_by(periodo=periodo, zona=zona)
    }
    computation.filas_obsoletas = sorted(stored - computed)

    if computation.skipped:
        current_app.logger.warning(f"Corte {corte} {zona} {periodo}: skipped {computation.skipped} malformed sale record(s)")
    if computation.sin_corte_previo:
        current_app.logger.warning(
            f"Corte {corte} {zona} {periodo}: {len(computation.sin_corte_previo)} agency(ies) without corte {corte - 1} row skipped"
        )
    if computation.skipped_agencies:
        current_app.logger.warning(
            f"Corte {corte} {zona} {periodo}: calculation failed for {', '.join(computation.skipped_agencies)}"
        )
    if computation.filas_obsoletas:
        current_app.logger.warning(
            f"Corte {corte} {zona} {periodo}: stored row(s) not recomputed, left unchanged: "
            f"{', '.join(computation.filas_obsoletas)}"
        )
    return computation


def _append_agency_row(computation, ruc, calculate, *args):
    """Runs one agency's calculation; a failing agency is logged and counted, not fatal."""
    try:
        row = calculate(*args)
    except SettlementError:
        raise
    except Exception as e:
        current_app.logger.error(
            f"Corte {computation.corte} {computation.zona} {computation.periodo}: agency {ruc} skipped: {e}",
            exc_info=True,
        )
        computation.skipped_agencies.append(ruc)
        return
    computation.rows.append({'periodo': computation.periodo, 'zona': computation.zona, **row})


def _persist_cut(computation):
    """Upserts all rows of a cut in one transaction; rolls back on failure."""
    model = CUT_MODELS[computation.corte]
    try:
        written = upsert_rows(model, computation.rows, CUT_KEY)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(
            "Error saving corte %s for %s %s: %s", computation.corte, computation.zona, computation.periodo, str(e),
            exc_info=True,
        )
        raise StorageWriteError(f"Could not save corte {computation.corte}: {str(e)}")

    current_app.logger.info(f"Saved corte {computation.corte} {computation.zona} {computation.periodo}: {written} row(s)")

    mismatches = computation.mismatches
    if mismatches:
        current_app.logger.warning(
            f"Corte {computation.corte} {computation.zona} {computation.periodo}: {len(mismatches)} agency(ies) need review"
        )
        # --- SEND REVIEW EMAIL ---
        try:
            send_settlement_review_email(computation.corte, computation.zona, computation.periodo, mismatches)
        except Exception as e:
            # We log this error but do not fail the save
            current_app.logger.error(f"Corte saved, but review email failed: {str(e)}")
    return written


# --- SETTLEMENT SERVICES ---

def preview_cut(corte, zona, year, mes, as_of=None):
    """Computes a cut and returns its rows without writing them."""
    try:
        computation = compute_cut(corte, zona, year, mes, as_of=as_of)
        return {"success": True, "data": computation.to_dict()}
    except SettlementError as e:
        return e.to_result()
    except Exception as e:
        current_app.logger.error(f"Error previewing corte {corte}: {e}", exc_info=True)
        return {"success": False, "error": f"Error computing corte {corte}: {str(e)}"}, 500


def save_cut(corte, zona, year, mes, as_of=None):
    """Computes a cut and upserts its rows keyed on (periodo, zona, ruc)."""
    try:
        computation = compute_cut(corte, zona, year, mes, as_of=as_of)
        written = _persist_cut(computation)
        data = computation.to_dict()
        data['saved'] = written
        return {"success": True, "data": data}
    except SettlementError as e:
        return e.to_result()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving corte {corte}: {e}", exc_info=True)
        return {"success": False, "error": f"Error saving corte {corte}: {str(e)}"}, 500


def settle_period(zona, year, mes, through=4):
    """
    Runs and saves cuts 1..through in order. Stops at the first failing cut;
    a failed write is never followed by the next cut.
    """
    try:
        through = parse_corte(through)
    except InvalidPeriodError as e:
        return e.to_result()

    stages = []
    for corte in range(1, through + 1):
        try:
            computation = compute_cut(corte, zona, year, mes)
            written = _persist_cut(computation)
        except SettlementError as e:
            current_app.logger.error(f"Settlement of {zona} {year}-{mes} stopped at corte {corte}: {e.message}")
            error, status = e.to_result()
            error["corte"] = corte
            error["completed"] = stages
            return error, status
        stages.append({"corte": corte, "saved": written, **computation.summary()})

    return {"success": True, "data": {"completed": stages}}


def get_base_calculo(zona, year, mes):
    """Count and sample of the sale records a cut of the period would aggregate."""
    try:
        zona = parse_zona(zona, current_app.config['ZONAS'])
        periodo, year, month = resolve_period(year, mes)
    except InvalidPeriodError as e:
        return e.to_result()

    try:
        query = _sales_query(zona, year, month)
        total = query.count()
        sample = query.order_by(SaleRecord.fecha_instalado).limit(current_app.config['BASE_CALCULO_SAMPLE_LIMIT']).all()
        return {
            "success": True,
            "data": {
                "zona": zona,
                "periodo": periodo,
                "total": total,
                "sample": [row._asdict() for row in sample],
            },
        }
    except Exception as e:
        current_app.logger.error(f"Error fetching base de calculo: {e}", exc_info=True)
        return {"success": False, "error": f"Database error: {str(e)}"}, 500
