"""Matching of reverse geocoded addresses onto the known location hierarchy.

Country matching deliberately keeps the loose substring rule used by the
listing form: a candidate matches when its ISO code equals the address
country code, when the address names one of the candidate's known aliases,
or when the candidate's name occurs inside the address country name. Short
or common names can therefore produce false positives.
"""

import logging
import re
import unicodedata
from collections.abc import Sequence
from typing import Protocol, TypeVar

from listing_location.metrics import ADDRESS_MATCHES
from listing_location.models import AddressMatch, Country, RawAddress

logger = logging.getLogger(__name__)

# Alternative spellings per ISO code (English, Ukrainian, ISO-3 and short forms)
COUNTRY_ALIASES: dict[str, tuple[str, ...]] = {
    "UA": ("ukraine", "україна", "ua", "ukr"),
    "PL": ("poland", "польща", "pl", "pol"),
    "DE": ("germany", "німеччина", "de", "ger", "deu"),
    "RO": ("romania", "румунія", "ro", "rou"),
    "HU": ("hungary", "угорщина", "hu", "hun"),
    "SK": ("slovakia", "словаччина", "sk", "svk"),
    "CZ": ("czech republic", "czechia", "чехія", "cz", "cze"),
    "MD": ("moldova", "молдова", "md", "mda"),
    "BY": ("belarus", "білорусь", "by", "blr"),
    "LT": ("lithuania", "литва", "lt", "ltu"),
    "LV": ("latvia", "латвія", "lv", "lva"),
    "EE": ("estonia", "естонія", "ee", "est"),
}

# Address fields in priority order
SETTLEMENT_FIELDS = ("city", "town", "village", "hamlet", "locality")
SECONDARY_SETTLEMENT_FIELDS = ("municipality", "suburb", "city_district", "county")
REGION_FIELDS = (
    "state",
    "region",
    "province",
    "county",
    "ISO3166-2-lvl4",
    "addr:state",
)
COMMUNITY_FIELDS = (
    "municipality",
    "city_district",
    "district",
    "suburb",
    "addr:district",
    "addr:subdistrict",
    "county",
)

STREET_WORDS = (
    "вулиця",
    "вул",
    "проспект",
    "бульвар",
    "провулок",
    "площа",
    "street",
    "road",
    "avenue",
)

_APOSTROPHES = str.maketrans("", "", "'’ʼ`")
_NON_WORD = re.compile(r"[\W_]+")
ADMIN_WORDS = (
    "область",
    "обл",
    "oblast",
    "region",
    "province",
    "громада",
    "hromada",
    "community",
    "територіальна",
    "raion",
    "район",
    "rayon",
    "municipality",
)

# ranks, lower wins
ISO_MATCH, ALIAS_MATCH, NAME_MATCH = 0, 1, 2
MATCH_TYPES = {ISO_MATCH: "iso", ALIAS_MATCH: "alias", NAME_MATCH: "name"}


def normalize(text: str | None) -> str:
    """Fold case and strip diacritics, apostrophes and punctuation.

    Args:
        text: Raw text, may be None

    Returns:
        Normalized text with single spaces between words
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    folded = stripped.casefold().translate(_APOSTROPHES)
    return _NON_WORD.sub(" ", folded).strip()


_ADMIN_SUFFIX = re.compile(
    r"\b(" + "|".join(re.escape(normalize(word)) for word in ADMIN_WORDS) + r")\b"
)


def strip_admin_suffix(name: str | None) -> str:
    """Normalize an administrative unit name and drop words like "oblast"."""
    cleaned = _ADMIN_SUFFIX.sub(" ", normalize(name))
    return " ".join(cleaned.split())


_NORMALIZED_ALIASES = {
    code: frozenset(normalize(alias) for alias in aliases)
    for code, aliases in COUNTRY_ALIASES.items()
}
_ALL_ALIASES = frozenset().union(*_NORMALIZED_ALIASES.values())


class Named(Protocol):
    name: str


N = TypeVar("N", bound=Named)


def match_named(name: str | None, items: Sequence[N]) -> N | None:
    """Find the hierarchy item best matching a looked-up name.

    Names are compared after normalization and suffix stripping. An equal
    name wins over containment in either direction; ties keep list order.

    Args:
        name: Name from the reverse geocoded address
        items: Loaded regions, communities or settlements

    Returns:
        Matching item or None
    """
    wanted = strip_admin_suffix(name)
    if not wanted:
        return None

    best: N | None = None
    best_rank = 2
    for item in items:
        candidate = strip_admin_suffix(item.name)
        if not candidate:
            continue
        if candidate == wanted:
            return item
        if best_rank > 1 and (candidate in wanted or wanted in candidate):
            best, best_rank = item, 1
    return best


class AddressMatcher:
    """Maps a :class:`RawAddress` onto the known country list."""

    def match(
        self, raw: RawAddress, countries: Sequence[Country]
    ) -> AddressMatch | None:
        """Guess country, region and settlement for a raw address.

        Args:
            raw: Address from the reverse geocoder
            countries: Known countries, in display order

        Returns:
            AddressMatch, or None when no country clears the bar
        """
        country, rank = self.match_country(raw, countries)
        if country is None:
            ADDRESS_MATCHES.labels(match_type="none").inc()
            logger.info(
                f"No known country for address country={raw.country!r} "
                f"code={raw.country_code!r}"
            )
            return None

        ADDRESS_MATCHES.labels(match_type=MATCH_TYPES[rank]).inc()

        region_name = self.extract_region_name(raw)
        return AddressMatch(
            country=country,
            region_name=region_name,
            community_name=self.extract_community_name(raw, region_name),
            settlement_name=self.extract_settlement_name(raw, countries),
        )

    @staticmethod
    def match_country(
        raw: RawAddress, countries: Sequence[Country]
    ) -> tuple[Country | None, int]:
        """Pick the best country candidate.

        Returns:
            Tuple of (country, rank); (None, -1) when nothing matched
        """
        code = normalize(raw.get("country_code"))
        raw_name = normalize(raw.get("country") or raw.get("country_code"))
        if not code and not raw_name:
            return None, -1

        best: Country | None = None
        best_rank = NAME_MATCH + 1
        for country in countries:
            iso = normalize(country.iso_code)
            if iso and iso in (code, raw_name):
                rank = ISO_MATCH
            elif raw_name and raw_name in _NORMALIZED_ALIASES.get(
                country.iso_code.upper(), ()
            ):
                rank = ALIAS_MATCH
            elif (candidate := normalize(country.name)) and candidate in raw_name:
                rank = NAME_MATCH
            else:
                continue

            if rank < best_rank:
                best, best_rank = country, rank
                if rank == ISO_MATCH:
                    break

        if best is None:
            return None, -1
        return best, best_rank

    @staticmethod
    def extract_region_name(raw: RawAddress) -> str:
        return _first_field(raw, REGION_FIELDS)

    @staticmethod
    def extract_community_name(raw: RawAddress, region_name: str = "") -> str:
        for field in COMMUNITY_FIELDS:
            value = raw.get(field)
            if value and value != region_name:
                return value
        return ""

    @staticmethod
    def extract_settlement_name(
        raw: RawAddress, countries: Sequence[Country] = ()
    ) -> str:
        """Settlement name from address fields, falling back to display_name."""
        name = _first_field(raw, SETTLEMENT_FIELDS) or _first_field(
            raw, SECONDARY_SETTLEMENT_FIELDS
        )
        if name or not raw.display_name:
            return name

        country_names = _ALL_ALIASES | {normalize(c.name) for c in countries}
        for part in raw.display_name.split(","):
            part = part.strip()
            folded = normalize(part)
            if len(part) <= 2 or not folded:
                continue
            if folded[0].isdigit() or folded.replace(" ", "").isdigit():
                continue
            if any(word in folded.split() for word in STREET_WORDS):
                continue
            if folded in country_names:
                continue
            return part
        return ""


def _first_field(raw: RawAddress, fields: Sequence[str]) -> str:
    for field in fields:
        value = raw.get(field)
        if value:
            return value
    return ""
