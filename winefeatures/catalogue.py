# winefeatures/catalogue.py
from .models import (
    CharacteristicEffect, Constant, EventTrigger, FeatureDefinition, FeatureEffects,
    Formula, PrestigeConfig, PrestigeEffects, QualityEffect, RiskParams, Scaled,
    SeverityGrowth,
)
from .registry import FeatureRegistry


def _sensitivity(restaurant, wine_shop, collector, chain):
    return {
        'Restaurant': restaurant,
        'Wine Shop': wine_shop,
        'Private Collector': collector,
        'Chain Store': chain,
    }


def _traits(**modifiers):
    return [CharacteristicEffect(characteristic=name, modifier=Scaled(factor=factor))
            for name, factor in modifiers.items()]


# --- Faults ---

OXIDATION = FeatureDefinition(
    id='oxidation',
    name='Oxidation',
    kind='fault',
    description='Exposure to oxygen flattens aroma and browns the wine.',
    manifestation='binary',
    trigger='time_based',
    risk=RiskParams(
        base_rate=0.002,
        state_multipliers={'grapes': 3.0, 'must_ready': 1.5, 'must_fermenting': 0.8, 'bottled': 0.3},
        compounding=True,
        external_modifier=Formula(name='oxidation_proneness'),
    ),
    effects=FeatureEffects(
        quality=QualityEffect(shape='power', exponent=1.5, base_penalty=0.25,
                              multiplier=Formula(name='oxidation_quality_multiplier')),
        customer_sensitivity=_sensitivity(0.85, 0.80, 0.60, 0.90),
        prestige=PrestigeEffects(
            on_manifestation={
                'company': PrestigeConfig(base_amount=-0.05, decay_rate=0.995, max_impact=-5.0),
                'vineyard': PrestigeConfig(base_amount=-0.5, decay_rate=0.98, max_impact=-10.0),
            },
            on_sale={
                'company': PrestigeConfig(base_amount=-0.1, decay_rate=0.995, max_impact=-10.0),
                'vineyard': PrestigeConfig(base_amount=-0.2, decay_rate=0.98, max_impact=-8.0),
            },
        ),
    ),
    priority=1,
)

GREEN_FLAVOR = FeatureDefinition(
    id='green_flavor',
    name='Green Flavor',
    kind='fault',
    description='Underripe fruit or rough handling leaves vegetal, grassy notes.',
    manifestation='binary',
    trigger='event_triggered',
    event_triggers=[
        EventTrigger(event='harvest', condition='underripe',
                     risk_delta=Formula(name='green_flavor_harvest_risk')),
        EventTrigger(event='crushing', risk_delta=Formula(name='green_flavor_crushing_risk')),
    ],
    effects=FeatureEffects(
        quality=QualityEffect(shape='linear', amount=Constant(value=-0.20)),
        customer_sensitivity=_sensitivity(0.90, 0.85, 0.70, 0.95),
        prestige=PrestigeEffects(
            on_manifestation={
                'company': PrestigeConfig(base_amount=-0.02, decay_rate=0.995, max_impact=-3.0),
                'vineyard': PrestigeConfig(base_amount=-0.3, decay_rate=0.995, max_impact=-8.0),
            },
            on_sale={
                'company': PrestigeConfig(base_amount=-0.05, decay_rate=0.995, max_impact=-8.0),
                'vineyard': PrestigeConfig(base_amount=-0.1, decay_rate=0.995, max_impact=-5.0),
            },
        ),
    ),
    priority=2,
)

STUCK_FERMENTATION = FeatureDefinition(
    id='stuck_fermentation',
    name='Stuck Fermentation',
    kind='fault',
    description='Yeast stalls before finishing, leaving residual sugar and off notes.',
    manifestation='binary',
    trigger='event_triggered',
    event_triggers=[
        EventTrigger(event='fermentation', risk_delta=Formula(name='stuck_fermentation_risk')),
    ],
    effects=FeatureEffects(
        quality=QualityEffect(shape='linear', amount=Constant(value=-0.35)),
        customer_sensitivity=_sensitivity(0.75, 0.70, 0.50, 0.85),
        prestige=PrestigeEffects(
            on_manifestation={
                'company': PrestigeConfig(base_amount=-0.08, decay_rate=0.995, max_impact=-4.0),
                'vineyard': PrestigeConfig(base_amount=-0.4, decay_rate=0.98, max_impact=-9.0),
            },
            on_sale={
                'company': PrestigeConfig(base_amount=-0.08, decay_rate=0.995, max_impact=-9.0),
                'vineyard': PrestigeConfig(base_amount=-0.15, decay_rate=0.98, max_impact=-6.0),
            },
        ),
    ),
    priority=3,
)

GREY_ROT = FeatureDefinition(
    id='grey_rot',
    name='Grey Rot',
    kind='fault',
    description='Botrytis turned destructive: mouldy, vinegary grapes.',
    manifestation='binary',
    trigger='accumulation',
    requires_present='noble_rot',
    risk=RiskParams(
        base_rate=0.05,
        state_multipliers={'grapes': 1.0, 'must_ready': 0.0, 'must_fermenting': 0.0, 'bottled': 0.0},
        compounding=True,
    ),
    effects=FeatureEffects(
        quality=QualityEffect(shape='linear', amount=Constant(value=-0.30)),
        characteristics=_traits(sweetness=0.6, acidity=-0.6, aroma=-0.15),
        customer_sensitivity=_sensitivity(0.80, 0.75, 0.60, 0.85),
    ),
    halts=('noble_rot',),
    priority=1,
)

# --- Positive features ---

TERROIR = FeatureDefinition(
    id='terroir',
    name='Terroir Expression',
    kind='feature',
    description='A sense of place that deepens with time in the cellar.',
    manifestation='graduated',
    trigger='event_triggered',
    event_triggers=[EventTrigger(event='harvest', risk_delta=Constant(value=1.0))],
    initial_severity=0.001,
    severity_growth=SeverityGrowth(
        rate=Constant(value=0.005),
        state_multipliers={'grapes': 0.01, 'must_ready': 3.0, 'must_fermenting': 5.0, 'bottled': 0.3},
    ),
    effects=FeatureEffects(
        quality=QualityEffect(shape='bonus', amount=Scaled(factor=0.15)),
        characteristics=_traits(aroma=0.12, body=0.08, tannins=0.10, spice=0.06, acidity=-0.04),
        customer_sensitivity=_sensitivity(1.15, 1.25, 1.35, 1.05),
        prestige=PrestigeEffects(
            on_sale={
                'company': PrestigeConfig(base_amount=0.05, decay_rate=0.998, max_impact=8.0),
                'vineyard': PrestigeConfig(base_amount=0.08, decay_rate=0.995, max_impact=12.0),
            },
        ),
    ),
    priority=10,
)

BOTTLE_AGING = FeatureDefinition(
    id='bottle_aging',
    name='Bottle Aging',
    kind='feature',
    description='Slow development in bottle: softer acidity, tertiary aromas.',
    manifestation='graduated',
    trigger='event_triggered',
    event_triggers=[EventTrigger(event='bottling', risk_delta=Constant(value=1.0))],
    initial_severity=0.001,
    severity_growth=SeverityGrowth(
        rate=Formula(name='bottle_aging_curve'),
        state_multipliers={'grapes': 0.0, 'must_ready': 0.0, 'must_fermenting': 0.0, 'bottled': 1.0},
    ),
    effects=FeatureEffects(
        quality=QualityEffect(shape='bonus', amount=Scaled(factor=0.10)),
        characteristics=_traits(acidity=-0.08, aroma=0.10, spice=0.08, sweetness=0.06, body=-0.04),
        customer_sensitivity=_sensitivity(1.10, 1.15, 1.30, 1.00),
    ),
    priority=11,
)

LATE_HARVEST = FeatureDefinition(
    id='late_harvest',
    name='Late Harvest',
    kind='feature',
    description='Grapes left on the vine concentrate sugar at the cost of acidity.',
    manifestation='graduated',
    trigger='event_triggered',
    event_triggers=[
        EventTrigger(event='harvest', condition='late_harvest_window',
                     risk_delta=Formula(name='late_harvest_lateness')),
    ],
    initial_severity='risk',
    severity_growth=SeverityGrowth(rate=Constant(value=0.0), evolves=False),
    effects=FeatureEffects(
        characteristics=_traits(sweetness=0.9, acidity=-0.9),
        customer_sensitivity=_sensitivity(1.0, 1.0, 1.0, 1.0),
    ),
    priority=12,
)

NOBLE_ROT = FeatureDefinition(
    id='noble_rot',
    name='Noble Rot',
    kind='feature',
    description='Benign botrytis on late-hanging grapes: honeyed, concentrated sweetness.',
    manifestation='graduated',
    trigger='time_based',
    risk=RiskParams(
        base_rate=0.35,
        state_multipliers={'grapes': 1.0, 'must_ready': 0.0, 'must_fermenting': 0.0, 'bottled': 0.0},
        external_modifier=Formula(name='noble_rot_lateness'),
    ),
    initial_severity='risk',
    severity_growth=SeverityGrowth(
        rate=Constant(value=0.08),
        state_multipliers={'grapes': 1.0, 'must_ready': 0.0, 'must_fermenting': 0.0, 'bottled': 0.0},
    ),
    effects=FeatureEffects(
        quality=QualityEffect(shape='bonus', amount=Scaled(factor=0.15)),
        characteristics=_traits(sweetness=0.20, acidity=-0.20, aroma=0.10),
        customer_sensitivity=_sensitivity(1.05, 1.10, 1.20, 1.0),
    ),
    priority=2,
)

DEFAULT_DEFINITIONS = [
    OXIDATION,
    GREEN_FLAVOR,
    STUCK_FERMENTATION,
    GREY_ROT,
    TERROIR,
    BOTTLE_AGING,
    LATE_HARVEST,
    NOBLE_ROT,
]


def build_default_registry() -> FeatureRegistry:
    return FeatureRegistry(DEFAULT_DEFINITIONS)
