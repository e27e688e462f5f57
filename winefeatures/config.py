# winefeatures/config.py

# Lifecycle
BATCH_STATES = ('grapes', 'must_ready', 'must_fermenting', 'bottled')
PRODUCTION_EVENTS = ('harvest', 'crushing', 'fermentation', 'bottling')

# Market
CUSTOMER_SEGMENTS = ('Restaurant', 'Wine Shop', 'Private Collector', 'Chain Store')
CHARACTERISTICS = ('acidity', 'aroma', 'body', 'spice', 'sweetness', 'tannins')

# Risk
DEFAULT_WARNING_THRESHOLDS = (0.10, 0.30)
AT_RISK_DISPLAY_THRESHOLD = 0.05

# Prestige
DEFAULT_PRESTIGE_CAP = 10.0          # Used when a config declares no max_impact
PRESTIGE_EVENT_MIN_AMOUNT = 0.001    # Ledger entries below this are dropped on decay
MANIFESTATION_SIZE_SCALE = 100.0     # ln(size / scale + 1)
SALE_VOLUME_SCALE = 10.0             # ln(bottles / scale + 1)
SALE_VALUE_SCALE = 1000.0            # ln(value / scale + 1)

# Calendar
WEEKS_PER_YEAR = 48                  # 4 seasons x 12 weeks

# Late harvest window
FALL_LATE_START = 7
FALL_LATE_END = 12
WINTER_LATE_END = 12

# Grape varieties: handling & stability traits plus bottle aging peaks (years)
GRAPE_PROFILES = {
    'Barbera': {
        'fragile': 0.4, 'prone_to_oxidation': 0.4, 'grape_color': 'red',
        'early_peak': 3, 'late_peak': 7,
        'characteristics': {'acidity': 0.7, 'aroma': 0.5, 'body': 0.6,
                            'spice': 0.5, 'sweetness': 0.5, 'tannins': 0.6},
    },
    'Chardonnay': {
        'fragile': 0.6, 'prone_to_oxidation': 0.7, 'grape_color': 'white',
        'early_peak': 2, 'late_peak': 5,
        'characteristics': {'acidity': 0.4, 'aroma': 0.65, 'body': 0.75,
                            'spice': 0.5, 'sweetness': 0.5, 'tannins': 0.35},
    },
    'Pinot Noir': {
        'fragile': 0.7, 'prone_to_oxidation': 0.8, 'grape_color': 'red',
        'early_peak': 3, 'late_peak': 7,
        'characteristics': {'acidity': 0.65, 'aroma': 0.6, 'body': 0.35,
                            'spice': 0.5, 'sweetness': 0.5, 'tannins': 0.4},
    },
    'Primitivo': {
        'fragile': 0.3, 'prone_to_oxidation': 0.3, 'grape_color': 'red',
        'early_peak': 4, 'late_peak': 10,
        'characteristics': {'acidity': 0.5, 'aroma': 0.7, 'body': 0.7,
                            'spice': 0.5, 'sweetness': 0.7, 'tannins': 0.7},
    },
    'Sauvignon Blanc': {
        'fragile': 0.5, 'prone_to_oxidation': 0.9, 'grape_color': 'white',
        'early_peak': 1, 'late_peak': 3,
        'characteristics': {'acidity': 0.8, 'aroma': 0.75, 'body': 0.3,
                            'spice': 0.6, 'sweetness': 0.4, 'tannins': 0.3},
    },
    'Tempranillo': {
        'fragile': 0.45, 'prone_to_oxidation': 0.5, 'grape_color': 'red',
        'early_peak': 3, 'late_peak': 8,
        'characteristics': {'acidity': 0.55, 'aroma': 0.6, 'body': 0.65,
                            'spice': 0.55, 'sweetness': 0.45, 'tannins': 0.65},
    },
}

DEFAULT_AGING_PEAKS = (2, 5)  # Fallback for unknown grapes
