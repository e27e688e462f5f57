# winefeatures/formulas.py
import logging
import math
import numpy as np
from typing import Callable, Dict, Mapping, Optional
from pydantic import BaseModel

from .config import (
    DEFAULT_AGING_PEAKS, DEFAULT_PRESTIGE_CAP, FALL_LATE_END, FALL_LATE_START,
    GRAPE_PROFILES, MANIFESTATION_SIZE_SCALE, SALE_VALUE_SCALE, SALE_VOLUME_SCALE,
    WEEKS_PER_YEAR, WINTER_LATE_END,
)
from .models import (
    Constant, EventContext, Formula, GameCalendar, MissingContextError,
    PrestigeConfig, Scaled, WineBatch,
)

logger = logging.getLogger(__name__)


class FormulaInput(BaseModel):
    """Everything a named formula may read."""

    batch: WineBatch
    severity: float = 0.0
    elapsed: int = 0
    context: EventContext = EventContext()
    calendar: Optional[GameCalendar] = None

    def require_calendar(self) -> GameCalendar:
        if self.calendar is None:
            raise MissingContextError('calendar')
        return self.calendar


FORMULAS: Dict[str, Callable[[FormulaInput], float]] = {}
PREDICATES: Dict[str, Callable[[FormulaInput], bool]] = {}


def formula(name: str):
    def register(fn):
        FORMULAS[name] = fn
        return fn
    return register


def predicate(name: str):
    def register(fn):
        PREDICATES[name] = fn
        return fn
    return register


def clamp01(value: float, fallback: float = 0.0) -> float:
    """
    Clamp to [0, 1]. Non-finite values (a misbehaving formula) fall back to
    the caller's previous value instead of propagating.
    """
    if value is None or not math.isfinite(value):
        logger.warning("Non-finite value %r clamped to fallback %.4f", value, fallback)
        return fallback
    return float(np.clip(value, 0.0, 1.0))


def resolve(source, inputs: FormulaInput) -> float:
    if isinstance(source, Constant):
        return source.value
    if isinstance(source, Scaled):
        return source.factor * inputs.severity
    if isinstance(source, Formula):
        return float(FORMULAS[source.name](inputs))
    raise TypeError(f"Unknown value source: {source!r}")


def resolve_multiplier(table: Mapping[str, object], state: str, inputs: FormulaInput) -> float:
    """Per-state multiplier; states missing from the table count as 1.0."""
    value = table.get(state, 1.0)
    if isinstance(value, Formula):
        return float(FORMULAS[value.name](inputs))
    return float(value)


def check(condition: Optional[str], inputs: FormulaInput) -> bool:
    if condition is None:
        return True
    return bool(PREDICATES[condition](inputs))


# --- Calendar helpers ---

def lateness_factor(season: str, week: int) -> float:
    """
    How deep into the late-harvest window a date is.
    0 before Fall week 7, rising to 0.5 by the end of Fall and 1.0 by the end of Winter.
    """
    if season == 'Fall':
        if week < FALL_LATE_START:
            return 0.0
        clamped = min(max(week, FALL_LATE_START), FALL_LATE_END)
        progress = (clamped - FALL_LATE_START) / (FALL_LATE_END - FALL_LATE_START)
        return min(0.5, progress * 0.5)
    if season == 'Winter':
        clamped = min(max(week, 1), WINTER_LATE_END)
        progress = (clamped - 1) / (WINTER_LATE_END - 1)
        return min(1.0, 0.5 + progress * 0.5)
    return 0.0


def in_late_harvest_window(season: str, week: int) -> bool:
    return (season == 'Fall' and week >= FALL_LATE_START) or season == 'Winter'


# --- Batch modifiers ---

@formula('oxidation_proneness')
def oxidation_proneness(inputs: FormulaInput) -> float:
    return inputs.batch.prone_to_oxidation


@formula('oxidation_quality_multiplier')
def oxidation_quality_multiplier(inputs: FormulaInput) -> float:
    # Prone grapes lose more on top of the power-law penalty
    return 0.85 - inputs.batch.prone_to_oxidation * 0.2


@formula('noble_rot_lateness')
def noble_rot_lateness(inputs: FormulaInput) -> float:
    cal = inputs.require_calendar()
    return lateness_factor(cal.season, cal.week)


@formula('bottle_aging_curve')
def bottle_aging_curve(inputs: FormulaInput) -> float:
    """
    Weekly growth by age in bottle: fast until the grape's early peak,
    moderate until the late peak, near-flat afterwards.
    """
    profile = GRAPE_PROFILES.get(inputs.batch.grape)
    early, late = (profile['early_peak'], profile['late_peak']) if profile else DEFAULT_AGING_PEAKS
    years = inputs.elapsed / WEEKS_PER_YEAR
    base_rate = 0.003
    if years < early:
        return base_rate * 3.0
    if years < late:
        return base_rate * 1.0
    return base_rate * 0.1


# --- Harvest ---

@predicate('underripe')
def underripe(inputs: FormulaInput) -> bool:
    return inputs.context.require('ripeness') < 0.5


@formula('green_flavor_harvest_risk')
def green_flavor_harvest_risk(inputs: FormulaInput) -> float:
    ripeness = inputs.context.require('ripeness')
    return max(0.0, (0.5 - ripeness) * 0.6)


@predicate('late_harvest_window')
def late_harvest_window(inputs: FormulaInput) -> bool:
    ctx = inputs.context
    return in_late_harvest_window(ctx.require('season'), ctx.require('week'))


@formula('late_harvest_lateness')
def late_harvest_lateness(inputs: FormulaInput) -> float:
    ctx = inputs.context
    season, week = ctx.require('season'), ctx.require('week')
    if season == 'Fall':
        return max(0.0, (week - 6) / 12)
    if season == 'Winter':
        return min(1.0, 0.5 + week / 12)
    return 0.0


# --- Crushing ---

CRUSHING_BASE_RATES = {
    'Hand Press': 0.05,
    'Pneumatic Press': 0.10,
    'Mechanical Press': 0.15,
}


@formula('green_flavor_crushing_risk')
def green_flavor_crushing_risk(inputs: FormulaInput) -> float:
    ctx, batch = inputs.context, inputs.batch
    method = ctx.require('method')
    intensity = ctx.require('pressing_intensity')
    destemming = ctx.require('destemming')

    intensity_mult = 0.5 + intensity
    destem_mult = 0.5 if destemming else 1.0
    # Fragile grapes bruise under pressure
    fragile_mult = 1.0 + batch.fragile * intensity * 0.8
    color_mult = 1.3 if batch.grape_color == 'white' else 1.0

    risk = CRUSHING_BASE_RATES.get(method, 0.10) * intensity_mult * destem_mult * fragile_mult * color_mult
    return min(0.45, risk)


# --- Fermentation ---

TEMPERATURE_MULTIPLIERS = {
    'red': {'Cool': 2.5, 'Ambient': 1.0, 'Warm': 0.5},
    'white': {'Cool': 0.8, 'Ambient': 1.0, 'Warm': 1.5},
}


@formula('stuck_fermentation_risk')
def stuck_fermentation_risk(inputs: FormulaInput) -> float:
    ctx, batch = inputs.context, inputs.batch
    method = ctx.require('method')
    temperature = ctx.require('temperature')
    is_red = batch.grape_color == 'red'

    base = 0.08 if is_red else 0.03
    temp_mult = TEMPERATURE_MULTIPLIERS[batch.grape_color].get(temperature, 1.0)

    method_mult = 1.0
    if method == 'Extended Maceration' and is_red:
        method_mult = 1.5
    elif method == 'Temperature Controlled':
        method_mult = 0.7

    return min(0.30, base * temp_mult * method_mult)


# --- Prestige ---

def _prestige_factor(current: float, weight: float) -> float:
    return math.sqrt(max(1.0, current)) * weight


def cap_prestige(config: PrestigeConfig, amount: float) -> float:
    if config.max_impact is not None:
        cap = config.max_impact
    else:
        cap = -DEFAULT_PRESTIGE_CAP if config.base_amount < 0 else DEFAULT_PRESTIGE_CAP
    return max(cap, amount) if config.base_amount < 0 else min(cap, amount)


def manifestation_prestige(config: PrestigeConfig, batch_size: float,
                           quality: float, current_prestige: float) -> float:
    if config.calculation == 'fixed':
        return cap_prestige(config, config.base_amount)
    size_factor = math.log(batch_size / MANIFESTATION_SIZE_SCALE + 1) * config.size_weight
    quality_factor = (1 + quality) * config.quality_weight
    amount = (config.base_amount * size_factor * quality_factor
              * _prestige_factor(current_prestige, config.prestige_weight))
    return cap_prestige(config, amount)


def sale_prestige(config: PrestigeConfig, volume: float, value: float,
                  current_prestige: float) -> float:
    if config.calculation == 'fixed':
        return cap_prestige(config, config.base_amount)
    volume_factor = math.log(volume / SALE_VOLUME_SCALE + 1) * config.size_weight
    value_factor = math.log(value / SALE_VALUE_SCALE + 1) * config.value_weight
    amount = (config.base_amount * (volume_factor + value_factor)
              * _prestige_factor(current_prestige, config.prestige_weight))
    return cap_prestige(config, amount)
