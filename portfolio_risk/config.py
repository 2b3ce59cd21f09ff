# =============================================================================
# config.py - Default settings for the portfolio risk analysis
# =============================================================================
# The CLI reads these as defaults; every value can be overridden by a flag.

# -- Tickers ------------------------------------------------------------------
# Benchmark used for beta.
BENCHMARK = "SPY"

# Instruments in the optimized portfolio. Order fixes the ordering of the
# mean vector and covariance matrix.
TICKERS = [
    "AAPL",  # Apple
    "MSFT",  # Microsoft
    "AMZN",  # Amazon
    "GOOGL", # Alphabet
    "META",  # Meta
    "NVDA",  # Nvidia
    "JPM",   # JPMorgan
    "JNJ",   # Johnson & Johnson
    "XOM",   # ExxonMobil
    "PG",    # Procter & Gamble
]

# -- Annualization ------------------------------------------------------------
TRADING_DAYS = 252

# -- Metric parameters --------------------------------------------------------
ROLLING_VOL_WINDOW = 20      # days, daily report
ALT_ROLLING_VOL_WINDOW = 30  # days, portfolio report
VAR_CONFIDENCE = 0.95
RISK_FREE_RATE = 0.0         # per period of the returns it is applied to
RETURN_SANITY_LIMIT = 0.30   # flag any single-day move beyond +/-30%

# -- Optimizer ----------------------------------------------------------------
N_PORTFOLIOS = 5000
RANDOM_SEED = 42
MIN_WEIGHT = 0.05
MAX_WEIGHT = 0.20
SAMPLING_METHOD = "uniform"  # or "dirichlet"
