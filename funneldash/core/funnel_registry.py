"""FunnelDash — Funnel Registry.

Defines the ingestion schema versions and the lookup tables used by the
field extractors. Tables live in an immutable ``ExtractionRules`` object that
callers pass into the extractors, so tests can substitute their own fixtures.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel


class SchemaVersion(str, Enum):
    """Ingestion schema variants observed across integration versions."""

    V1_CSV_FUNNEL = "v1_csv_funnel"  # CSV upload with prelanding/landing columns
    V2_REDTRACK_PIPE = "v2_redtrack_pipe"  # "NT | Gestor | Plataforma | Nicho | Produto | ? | Site | Teste"
    V3_REDTRACK_UNDERSCORE = "v3_redtrack_underscore"  # "NT_Gestor_Plataforma_Site_Nicho_Produto"


class CampaignNaming(str, Enum):
    """How a campaign name is decomposed into funnel attributes."""

    TOKEN_SCAN = "token_scan"
    PIPE = "pipe"
    UNDERSCORE = "underscore"


class SchemaProfile(BaseModel):
    """Population rules for one schema version."""

    version: SchemaVersion
    naming: CampaignNaming
    identity_fields: Tuple[str, ...]
    tracks_purchases: bool = False
    tracks_checkout_cpa: bool = False
    description: str = ""

    model_config = {"frozen": True}


# ─────────────────────────────────────────────
# SCHEMA PROFILES
# ─────────────────────────────────────────────

SCHEMA_PROFILES: Dict[SchemaVersion, SchemaProfile] = {
    SchemaVersion.V1_CSV_FUNNEL: SchemaProfile(
        version=SchemaVersion.V1_CSV_FUNNEL,
        naming=CampaignNaming.TOKEN_SCAN,
        identity_fields=(
            "manager",
            "channel",
            "niche",
            "advertiser",
            "variant",
            "product",
        ),
        tracks_purchases=True,
        tracks_checkout_cpa=True,
        description="CSV upload; advertiser from prelanding, variant/product from landing",
    ),
    SchemaVersion.V2_REDTRACK_PIPE: SchemaProfile(
        version=SchemaVersion.V2_REDTRACK_PIPE,
        naming=CampaignNaming.PIPE,
        identity_fields=("manager", "channel", "niche", "product"),
        tracks_purchases=True,
        description="RedTrack report; positional ' | ' campaign names",
    ),
    SchemaVersion.V3_REDTRACK_UNDERSCORE: SchemaProfile(
        version=SchemaVersion.V3_REDTRACK_UNDERSCORE,
        naming=CampaignNaming.UNDERSCORE,
        identity_fields=("manager", "channel", "niche", "product"),
        tracks_purchases=True,
        description="RedTrack report; manual-entry '_' campaign names",
    ),
}

CATEGORICAL_FIELDS: Tuple[str, ...] = (
    "manager",
    "channel",
    "niche",
    "advertiser",
    "variant",
    "product",
)


# ─────────────────────────────────────────────
# EXTRACTION RULES
# ─────────────────────────────────────────────

DEFAULT_MANAGER_CODES: Dict[str, str] = {
    "CARLOS": "Carlos",
    "LUIGI": "Luigi",
    "ERICK": "Erick",
    "BARROS": "Barros",
}

DEFAULT_MANAGER_PREFIXES: Tuple[str, ...] = ("NTE-", "NTM-")

# Pipe-wrapped tokens that attribute the campaign regardless of the positional manager
DEFAULT_MANAGER_ALIASES: Dict[str, str] = {"GB": "Barros"}

DEFAULT_CHANNEL_CODES: Tuple[str, ...] = ("NB", "TB", "MG", "RC", "OB")

DEFAULT_PRODUCT_NICHES: Dict[str, str] = {
    "memorylift": "Memória",
    "memory lift": "Memória",
    "memogenesis": "Memória",
    "neurocept": "Memória",
    "biobrain": "Memória",
    "neurodyne": "Memória",
    "liporise": "Emagrecimento",
    "gelatide": "Emagrecimento",
    "leanflow": "Emagrecimento",
    "slimdrops": "Emagrecimento",
    "glucosense": "Diabetes",
    "glycopezil": "Diabetes",
    "vitarenew": "Pele",
    "ereforce": "ED",
    "sonuszen": "Tinnitus",
    "prostaguard": "Próstata",
}


def normalize_product_key(value: str) -> str:
    """Lower-case and drop all whitespace: 'Memory Lift' → 'memorylift'."""
    return "".join(value.lower().split())


class ExtractionRules(BaseModel):
    """Immutable allow-lists and lookup tables consumed by the extractors."""

    manager_codes: Dict[str, str] = DEFAULT_MANAGER_CODES
    manager_prefixes: Tuple[str, ...] = DEFAULT_MANAGER_PREFIXES
    manager_aliases: Dict[str, str] = DEFAULT_MANAGER_ALIASES
    channel_codes: Tuple[str, ...] = DEFAULT_CHANNEL_CODES
    product_niches: Dict[str, str] = DEFAULT_PRODUCT_NICHES

    model_config = {"frozen": True}

    def resolve_manager_token(self, token: str) -> Optional[str]:
        """Map 'NTE-BARROS' / 'barros' to the manager's display name."""
        upper = token.strip().upper()
        if upper in self.manager_codes:
            return self.manager_codes[upper]
        for prefix in self.manager_prefixes:
            if upper.startswith(prefix) and upper[len(prefix):] in self.manager_codes:
                return self.manager_codes[upper[len(prefix):]]
        return None

    def niche_for(self, product: str) -> Optional[str]:
        """Look up a product's niche, ignoring case and whitespace."""
        wanted = normalize_product_key(product)
        for key, niche in self.product_niches.items():
            if normalize_product_key(key) == wanted:
                return niche
        return None


DEFAULT_RULES = ExtractionRules()


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────


def get_profile(version: str | SchemaVersion) -> SchemaProfile:
    """Look up a schema profile; raises ValueError for unknown versions."""
    return SCHEMA_PROFILES[SchemaVersion(version)]


def identity_fields_for(version: str | SchemaVersion) -> Tuple[str, ...]:
    """Return the funnel identity fields of a schema version."""
    return get_profile(version).identity_fields
