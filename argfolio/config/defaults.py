"""Default values for valuation policy, analytics windows, and storage.

Every value here can be overridden from config.yaml; the engine functions
also take these as keyword defaults so they stay usable without a config.
"""

# ---------------------------------------------------------------------------
# FX policy per asset kind (family, side)
# ---------------------------------------------------------------------------
# Side "V" is a sale of foreign currency and resolves to the family's buy
# quote; side "C" is a purchase and resolves to the sell quote.
FX_POLICY = {
    "cash_ars": {"family": "official", "side": "V"},
    "cash_usd": {"family": "official", "side": "V"},
    "wallet_yield": {"family": "official", "side": "V"},
    "plazo_fijo": {"family": "official", "side": "V"},
    "cedear": {"family": "mep", "side": "V"},
    "crypto": {"family": "crypto", "side": "V"},
    "stable": {"family": "crypto", "side": "V"},
    "fci": {"family": "official", "side": "V"},
}

# ---------------------------------------------------------------------------
# Categories (rubros)
# ---------------------------------------------------------------------------
CATEGORY_ORDER = ["wallets", "plazos", "cedears", "crypto", "fci"]

CATEGORY_NAMES = {
    "wallets": "Billeteras",
    "plazos": "Plazos Fijos",
    "cedears": "CEDEARs",
    "crypto": "Cripto",
    "fci": "Fondos (FCI)",
}

CATEGORY_FX_LABELS = {
    "wallets": "Oficial Venta",
    "plazos": "Oficial Venta",
    "cedears": "MEP",
    "crypto": "Cripto",
    "fci": "VCP",
}

# ---------------------------------------------------------------------------
# Account merge (holdings + cash sub-ledger)
# ---------------------------------------------------------------------------
ACCOUNT_MERGE = {
    "cash_suffix": "-cash",
    "cash_name_suffix": " (Liquidez)",
}

# ---------------------------------------------------------------------------
# Drivers / history
# ---------------------------------------------------------------------------
DRIVER_DEFAULTS = {
    "epsilon": 1e-9,
    "timezone": "America/Argentina/Buenos_Aires",
    "default_period": "30D",
}

# ---------------------------------------------------------------------------
# Yield projection
# ---------------------------------------------------------------------------
YIELD_DEFAULTS = {
    "days_per_year": 365,
    "linear_preview_max_days": 90,
}

PROJECTION_HORIZONS = {
    "1D": 1,
    "7D": 7,
    "30D": 30,
    "90D": 90,
    "1Y": 365,
}

# ---------------------------------------------------------------------------
# Risk metrics
# ---------------------------------------------------------------------------
RISK_DEFAULTS = {
    "min_observations": 8,
    "annualization_days": 365,
    "risk_free_annual": 0.0,
}

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
DATABASE_DEFAULTS = {
    "path": "~/.argfolio/argfolio.db",
}
