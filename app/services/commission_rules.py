# app/services/commission_rules.py
"""
Multiplier & tier resolution.

Pure-function module: no queries, no Flask. Band tables and every numeric
business parameter arrive through a CommissionSettings object built by
app.services.variables.build_commission_settings.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Tuple

from app.exceptions import MissingConfigurationError

TIERS = ('GOLD', 'SILVER', 'REGULAR')
DEFAULT_TIER = 'REGULAR'

MULTIPLIER_PLACES = Decimal('0.001')
PERCENT_PLACES = Decimal('0.01')


@dataclass(frozen=True)
class Band:
    """limite_inferior <= pct < limite_superior; limite_superior None is open ended."""
    limite_inferior: Decimal
    limite_superior: Optional[Decimal]
    factor: Decimal

    def matches(self, pct):
        if pct < self.limite_inferior:
            return False
        return self.limite_superior is None or pct < self.limite_superior


@dataclass(frozen=True)
class CommissionSettings:
    """
    Everything the resolver and the cut calculators need that is not sales
    data. Thresholds are keyed by the cut that applies them (2, 3, 4).
    """
    band_tables: Dict[str, Tuple[Band, ...]] = field(default_factory=dict)
    churn_threshold_pct: Dict[int, Optional[Decimal]] = field(default_factory=dict)
    clawback_threshold_pct: Dict[int, Optional[Decimal]] = field(default_factory=dict)
    cut1_payment_fraction: Optional[Decimal] = None
    arpu_bonus_amount: Decimal = Decimal('1.0')
    ramp_up_multiplier: Decimal = Decimal('2.5')
    default_multiplier: Decimal = Decimal('1.3')

    def require(self, corte):
        """Raises MissingConfigurationError when a value needed by `corte` is unset."""
        missing = []
        if self.cut1_payment_fraction is None:
            missing.append('pagoCorte1Fraccion')
        for stage in range(2, corte + 1):
            if self.churn_threshold_pct.get(stage) is None:
                missing.append(f'churnUmbralCorte{stage}')
            if self.clawback_threshold_pct.get(stage) is None:
                missing.append(f'clawbackUmbralCorte{stage}')
        if missing:
            raise MissingConfigurationError(
                f"Missing commission variables for corte {corte}: {', '.join(missing)}"
            )


@dataclass(frozen=True)
class MultiplierResult:
    porcentaje_cumplimiento: Optional[Decimal]
    factor_multiplicador: Decimal
    multiplicador_final: Decimal


def normalize_top(top):
    """'GOLD'/'SILVER' stay; 'NO ES TOP', blank or anything else is REGULAR."""
    token = str(top or '').strip().upper()
    if token in ('GOLD', 'SILVER'):
        return token
    return DEFAULT_TIER


def attainment_pct(altas, meta):
    """altas / meta * 100, or None when there is no positive quota."""
    if not meta or meta <= 0:
        return None
    return Decimal(altas) * Decimal(100) / Decimal(meta)


def round_pct(pct):
    if pct is None:
        return None
    return pct.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def band_factor(top, pct, settings):
    """First matching band of the tier's table, else the default multiplier."""
    if pct is None:
        return settings.default_multiplier
    for band in settings.band_tables.get(normalize_top(top), ()):
        if band.matches(pct):
            return band.factor
    return settings.default_multiplier


def multiplier_at(top, pct, bono_arpu, settings):
    """Final multiplier a non ramp-up agency earns at a given attainment."""
    base = band_factor(top, pct, settings)
    return _final(base, bono_arpu, settings)


def _final(base, bono_arpu, settings):
    bonus = settings.arpu_bonus_amount if bono_arpu else Decimal('0')
    return (base + bonus).quantize(MULTIPLIER_PLACES, rounding=ROUND_HALF_UP)


def resolve_multiplier(meta, altas, top, marcha_blanca, bono_arpu, settings):
    """
    Derives quota attainment and the base/final commission multiplier.

    Ramp-up agencies get the fixed ramp-up multiplier regardless of
    attainment; everyone else goes through the tier's band table.
    """
    pct = attainment_pct(altas, meta)

    if marcha_blanca:
        base = settings.ramp_up_multiplier
    else:
        base = band_factor(top, pct, settings)

    return MultiplierResult(
        porcentaje_cumplimiento=round_pct(pct),
        factor_multiplicador=base.quantize(MULTIPLIER_PLACES, rounding=ROUND_HALF_UP),
        multiplicador_final=_final(base, bono_arpu, settings),
    )
