# winefeatures/models.py
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import DEFAULT_WARNING_THRESHOLDS

BatchState = Literal['grapes', 'must_ready', 'must_fermenting', 'bottled']
EventName = Literal['harvest', 'crushing', 'fermentation', 'bottling']
CustomerSegment = Literal['Restaurant', 'Wine Shop', 'Private Collector', 'Chain Store']
Characteristic = Literal['acidity', 'aroma', 'body', 'spice', 'sweetness', 'tannins']
Season = Literal['Spring', 'Summer', 'Fall', 'Winter']
PrestigeScope = Literal['company', 'vineyard']

SEASONS: Tuple[str, ...] = ('Spring', 'Summer', 'Fall', 'Winter')
WEEKS_PER_SEASON = 12


class MissingContextError(KeyError):
    """An event formula needed a context field the caller did not supply."""


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Tagged value sources ---

class Constant(_Frozen):
    kind: Literal['constant'] = 'constant'
    value: float


class Scaled(_Frozen):
    """factor x severity"""
    kind: Literal['scaled'] = 'scaled'
    factor: float


class Formula(_Frozen):
    """Named entry in the formula registry (see formulas.py)."""
    kind: Literal['formula'] = 'formula'
    name: str


ValueSource = Annotated[Union[Constant, Scaled, Formula], Field(discriminator='kind')]
# Per-state multiplier: plain number or a batch formula
Multiplier = Union[float, Formula]


# --- Calendar & event context ---

class GameCalendar(_Frozen):
    week: int = Field(1, ge=1, le=WEEKS_PER_SEASON)
    season: Season = 'Spring'
    year: int = 2024

    def advance(self) -> 'GameCalendar':
        if self.week < WEEKS_PER_SEASON:
            return GameCalendar(week=self.week + 1, season=self.season, year=self.year)
        idx = SEASONS.index(self.season)
        if idx == len(SEASONS) - 1:
            return GameCalendar(week=1, season='Spring', year=self.year + 1)
        return GameCalendar(week=1, season=SEASONS[idx + 1], year=self.year)

    def label(self) -> str:
        return f"Week {self.week}, {self.season} {self.year}"


class EventContext(BaseModel):
    """
    Options supplied with a production event (harvest timing, crushing and
    fermentation choices). Every field is optional: UI previews routinely
    pass partial context.
    """
    model_config = ConfigDict(extra='allow')

    ripeness: Optional[float] = None
    season: Optional[Season] = None
    week: Optional[int] = None
    method: Optional[str] = None
    pressing_intensity: Optional[float] = None
    destemming: Optional[bool] = None
    temperature: Optional[str] = None

    def require(self, key: str) -> Any:
        value = getattr(self, key, None)
        if value is None:
            raise MissingContextError(key)
        return value


# --- Batch & feature instances ---

class WineCharacteristics(BaseModel):
    acidity: float = 0.5
    aroma: float = 0.5
    body: float = 0.5
    spice: float = 0.5
    sweetness: float = 0.5
    tannins: float = 0.5


class FeatureInstance(BaseModel):
    feature_id: str
    risk: float = 0.0
    is_present: bool = False
    severity: float = 0.0
    weeks_present: int = 0  # ticks elapsed since manifestation


class WineBatch(BaseModel):
    id: str
    vineyard_id: str
    grape: str
    state: BatchState = 'grapes'
    quantity: float = 0.0
    born_quality: float = Field(0.5, ge=0.0, le=1.0)
    fragile: float = 0.0
    prone_to_oxidation: float = 0.0
    grape_color: Literal['red', 'white'] = 'red'
    characteristics: WineCharacteristics = Field(default_factory=WineCharacteristics)
    aging_weeks: int = 0
    features: List[FeatureInstance] = []

    def feature(self, feature_id: str) -> Optional[FeatureInstance]:
        return next((f for f in self.features if f.feature_id == feature_id), None)

    def ensure_feature(self, feature_id: str) -> FeatureInstance:
        """Lazily create the instance on first reference."""
        inst = self.feature(feature_id)
        if inst is None:
            inst = FeatureInstance(feature_id=feature_id)
            self.features.append(inst)
        return inst

    def has_feature(self, feature_id: str) -> bool:
        inst = self.feature(feature_id)
        return inst is not None and inst.is_present


# --- Feature definitions ---

class RiskParams(_Frozen):
    base_rate: float = Field(0.0, ge=0.0)
    state_multipliers: Dict[BatchState, Multiplier] = {}
    compounding: bool = False
    external_modifier: Optional[Formula] = None


class EventTrigger(_Frozen):
    event: EventName
    condition: Optional[str] = None  # named predicate; None means always
    risk_delta: ValueSource


class SeverityGrowth(_Frozen):
    rate: ValueSource = Constant(value=0.0)
    cap: float = Field(1.0, ge=0.0, le=1.0)
    state_multipliers: Dict[BatchState, Multiplier] = {}
    evolves: bool = True


def _negative(source: Optional[ValueSource]) -> bool:
    if isinstance(source, Constant):
        return source.value < 0
    if isinstance(source, Scaled):
        return source.factor < 0
    return False


class QualityEffect(_Frozen):
    shape: Literal['power', 'linear', 'bonus']
    amount: Optional[ValueSource] = None
    exponent: Optional[float] = None
    base_penalty: Optional[float] = None
    multiplier: Optional[ValueSource] = None  # power only

    @model_validator(mode='after')
    def _check_shape(self) -> 'QualityEffect':
        if self.shape == 'power':
            if self.exponent is None or self.base_penalty is None:
                raise ValueError("power quality effect needs exponent and base_penalty")
        else:
            if self.amount is None:
                raise ValueError(f"{self.shape} quality effect needs an amount")
            if self.multiplier is not None:
                raise ValueError(f"{self.shape} quality effect cannot take a multiplier")
        if self.shape == 'bonus' and _negative(self.amount):
            raise ValueError("bonus quality effect must not lower quality")
        return self


class CharacteristicEffect(_Frozen):
    characteristic: Characteristic
    modifier: ValueSource


class PrestigeConfig(_Frozen):
    calculation: Literal['fixed', 'dynamic'] = 'dynamic'
    base_amount: float
    decay_rate: float = Field(gt=0.0, le=1.0)
    max_impact: Optional[float] = None
    size_weight: float = 1.0      # batch size (manifestation) / bottle volume (sale)
    quality_weight: float = 1.0
    value_weight: float = 1.0
    prestige_weight: float = 1.0


class PrestigeEffects(_Frozen):
    on_manifestation: Dict[PrestigeScope, PrestigeConfig] = {}
    on_sale: Dict[PrestigeScope, PrestigeConfig] = {}


class FeatureEffects(_Frozen):
    quality: Optional[QualityEffect] = None
    characteristics: List[CharacteristicEffect] = []
    customer_sensitivity: Dict[CustomerSegment, float]
    prestige: PrestigeEffects = PrestigeEffects()

    @field_validator('customer_sensitivity')
    @classmethod
    def _all_segments(cls, table: Dict[str, float]) -> Dict[str, float]:
        missing = [s for s in CustomerSegment.__args__ if s not in table]
        if missing:
            raise ValueError(f"customer_sensitivity missing segments: {missing}")
        return table


class FeatureDefinition(_Frozen):
    id: str
    name: str
    kind: Literal['fault', 'feature'] = 'fault'
    description: str = ''
    manifestation: Literal['binary', 'graduated']
    trigger: Literal['time_based', 'event_triggered', 'hybrid', 'accumulation']
    risk: Optional[RiskParams] = None
    event_triggers: List[EventTrigger] = []
    initial_severity: Union[Literal['full', 'risk'], float] = 'risk'
    severity_growth: Optional[SeverityGrowth] = None
    effects: FeatureEffects
    requires_present: Optional[str] = None
    halts: Tuple[str, ...] = ()
    warning_thresholds: Tuple[float, ...] = DEFAULT_WARNING_THRESHOLDS
    priority: int = 100

    @property
    def is_time_based(self) -> bool:
        return self.trigger in ('time_based', 'hybrid', 'accumulation')

    @property
    def evolves(self) -> bool:
        return (self.manifestation == 'graduated'
                and self.severity_growth is not None
                and self.severity_growth.evolves)

    def triggers_for(self, event: str) -> List[EventTrigger]:
        return [t for t in self.event_triggers if t.event == event]


# --- Results & signals ---

class ManifestationResult(BaseModel):
    manifested: bool
    risk: float
    severity: float
    deterministic: bool = False


class PrestigeImpact(BaseModel):
    feature_id: str
    scope: PrestigeScope
    magnitude: float
    decay_rate: float
    reason: Literal['manifestation', 'sale']


class FeatureSignal(BaseModel):
    kind: Literal['manifested', 'risk_warning']
    batch_id: str
    feature_id: str
    risk: float
    severity: float = 0.0
    threshold: Optional[float] = None


class FeatureOutcome(BaseModel):
    feature_id: str
    previous_risk: float
    risk: float
    manifested: bool = False
    severity: float = 0.0
    prestige: List[PrestigeImpact] = []


class RiskPreview(BaseModel):
    feature_id: str
    name: str
    current_risk: float
    risk_increase: float
    projected_risk: float
    is_present: bool = False


class TickReport(BaseModel):
    calendar: GameCalendar
    outcomes: Dict[str, List[FeatureOutcome]] = {}
    logs: List[str] = []

    def manifested(self) -> List[Tuple[str, str]]:
        return [(batch_id, o.feature_id)
                for batch_id, items in self.outcomes.items()
                for o in items if o.manifested]
