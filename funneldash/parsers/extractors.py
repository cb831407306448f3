"""FunnelDash — Field Extractors.

Pure functions that pull funnel attributes out of free-text campaign,
prelanding and landing strings. None of them raise: a missing pattern
yields ``None``.
"""

import re
from typing import List, Optional

from pydantic import BaseModel

from funneldash.core.funnel_registry import (
    DEFAULT_RULES,
    CampaignNaming,
    ExtractionRules,
    normalize_product_key,
)

ADVERTISER_PATTERN = re.compile(r"ADV\s*([\d.]+)", re.IGNORECASE)
VARIANT_PATTERN = re.compile(r"VSL\s*([\w.]+)", re.IGNORECASE)
PARENTHESIZED_PATTERN = re.compile(r"\(([^)]+)\)")
TOKEN_SPLIT_PATTERN = re.compile(r"[|_]")

PIPE_DELIMITER = " | "
UNDERSCORE_DELIMITER = "_"
UNDERSCORE_FULL_SEGMENTS = 6


class ExtractedFields(BaseModel):
    """Categorical attributes derived from one record's text fields."""

    manager: Optional[str] = None
    channel: Optional[str] = None
    niche: Optional[str] = None
    advertiser: Optional[str] = None
    variant: Optional[str] = None
    product: Optional[str] = None


class CampaignParts(BaseModel):
    """Positional decomposition of a structured campaign name."""

    manager: Optional[str] = None
    niche: Optional[str] = None
    product: Optional[str] = None
    site: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _pipe_wrapped_tokens(campaign: str) -> List[str]:
    """Segments that have a pipe on both sides ('A | GB | B' → ['GB'])."""
    parts = campaign.split("|")
    return [p.strip().upper() for p in parts[1:-1]]


# ── Campaign Name ──


def extract_manager(
    campaign: Optional[str], rules: ExtractionRules = DEFAULT_RULES
) -> Optional[str]:
    """Manager display name from a campaign name.

    An alias token between pipes takes priority over any manager code found
    elsewhere in the name.
    """
    if not campaign:
        return None

    for token in _pipe_wrapped_tokens(campaign):
        if token in rules.manager_aliases:
            return rules.manager_aliases[token]

    for token in TOKEN_SPLIT_PATTERN.split(campaign):
        manager = rules.resolve_manager_token(token)
        if manager:
            return manager
    return None


def extract_channel(
    campaign: Optional[str], rules: ExtractionRules = DEFAULT_RULES
) -> Optional[str]:
    """Two-letter traffic channel code wrapped in pipes ('| NB |' → 'NB')."""
    if not campaign:
        return None
    for token in _pipe_wrapped_tokens(campaign):
        if token in rules.channel_codes:
            return token
    return None


# ── Prelanding / Landing ──


def extract_advertiser(prelanding: Optional[str]) -> Optional[str]:
    """'ADV 02' → 'adv02', 'adv03.02.' → 'adv03.02'."""
    if not prelanding:
        return None
    match = ADVERTISER_PATTERN.search(prelanding)
    if not match:
        return None
    adv_id = match.group(1).rstrip(".")
    if not adv_id:
        return None
    return f"adv{adv_id}"


def extract_variant(landing: Optional[str]) -> Optional[str]:
    """'VSL 70 (memorylift)' → 'vsl70', 'vsl36.ml1' → 'vsl36.ml1'."""
    if not landing:
        return None
    match = VARIANT_PATTERN.search(landing)
    if not match:
        return None
    variant_id = match.group(1).rstrip(".")
    if not variant_id:
        return None
    return f"vsl{variant_id.lower()}"


def extract_product(
    landing: Optional[str], rules: ExtractionRules = DEFAULT_RULES
) -> Optional[str]:
    """Product from a parenthesized suffix, else the first known product mentioned."""
    if not landing:
        return None
    match = PARENTHESIZED_PATTERN.search(landing)
    if match:
        return _clean(match.group(1).lower())

    haystack = normalize_product_key(landing)
    for product in rules.product_niches:
        if normalize_product_key(product) in haystack:
            return product.lower()
    return None


def lookup_niche(
    product: Optional[str], rules: ExtractionRules = DEFAULT_RULES
) -> Optional[str]:
    if not product:
        return None
    return rules.niche_for(product)


# ── Positional Decomposition ──


def split_pipe_campaign(campaign: Optional[str]) -> CampaignParts:
    """Decompose 'NT | Gestor | Plataforma | Nicho | Produto | ? | Site | Teste'.

    Missing segments come back as None; the manager token is upper-cased.
    """
    if not campaign:
        return CampaignParts()
    parts = campaign.split(PIPE_DELIMITER)

    def at(index: int) -> Optional[str]:
        return _clean(parts[index]) if index < len(parts) else None

    manager = at(1)
    return CampaignParts(
        manager=manager.upper() if manager else None,
        niche=at(3),
        product=at(4),
        site=at(6),
    )


def split_underscore_campaign(campaign: Optional[str]) -> CampaignParts:
    """Decompose 'NT_Gestor_Plataforma_Site_Nicho_Produto'.

    With six or more segments the trailing ones are joined into the product.
    Shorter names are mapped best effort: manager, niche, then product.
    """
    if not campaign:
        return CampaignParts()
    parts = [p.strip() for p in campaign.split(UNDERSCORE_DELIMITER)]

    if len(parts) >= UNDERSCORE_FULL_SEGMENTS:
        manager = _clean(parts[1])
        return CampaignParts(
            manager=manager.upper() if manager else None,
            site=_clean(parts[3]),
            niche=_clean(parts[4]),
            product=_clean(UNDERSCORE_DELIMITER.join(parts[5:])),
        )

    manager = _clean(parts[1]) if len(parts) > 1 else None
    return CampaignParts(
        manager=manager.upper() if manager else None,
        niche=_clean(parts[2]) if len(parts) > 2 else None,
        product=_clean(UNDERSCORE_DELIMITER.join(parts[3:])) if len(parts) > 3 else None,
    )


def split_campaign(campaign: Optional[str], naming: CampaignNaming) -> CampaignParts:
    """Positional decomposition for the pipe or underscore naming convention."""
    if naming == CampaignNaming.UNDERSCORE:
        return split_underscore_campaign(campaign)
    return split_pipe_campaign(campaign)


# ── Pipeline ──


class FieldExtractor:
    """Composes the extractors over one CSV row using injected rules."""

    def __init__(self, rules: ExtractionRules = DEFAULT_RULES):
        self.rules = rules

    def extract(
        self,
        campaign: Optional[str],
        prelanding: Optional[str] = None,
        landing: Optional[str] = None,
    ) -> ExtractedFields:
        product = extract_product(landing, self.rules)
        return ExtractedFields(
            manager=extract_manager(campaign, self.rules),
            channel=extract_channel(campaign, self.rules),
            advertiser=extract_advertiser(prelanding),
            variant=extract_variant(landing),
            product=product,
            niche=lookup_niche(product, self.rules),
        )

    def extract_positional(
        self, campaign: Optional[str], naming: CampaignNaming
    ) -> ExtractedFields:
        """Fields of a structured campaign name; the site segment is the channel."""
        parts = split_campaign(campaign, naming)
        manager = None
        if parts.manager:
            manager = self.rules.resolve_manager_token(parts.manager) or parts.manager
        return ExtractedFields(
            manager=manager,
            channel=parts.site,
            niche=parts.niche,
            product=parts.product,
        )
