"""Static country reference data: Schengen membership, names, aliases, cities."""

from typing import Dict, Optional

# ISO codes of Schengen members
SCHENGEN_CODES = frozenset({
    "AT", "BE", "BG", "HR", "CZ", "DK", "EE", "FI", "FR", "DE",
    "GR", "HU", "IS", "IT", "LV", "LI", "LT", "LU", "MT", "NL",
    "NO", "PL", "PT", "RO", "SK", "SI", "ES", "SE", "CH",
})

COUNTRY_NAMES: Dict[str, str] = {
    # Schengen
    "AT": "Austria",
    "BE": "Belgium",
    "BG": "Bulgaria",
    "HR": "Croatia",
    "CZ": "Czech Republic",
    "DK": "Denmark",
    "EE": "Estonia",
    "FI": "Finland",
    "FR": "France",
    "DE": "Germany",
    "GR": "Greece",
    "HU": "Hungary",
    "IS": "Iceland",
    "IT": "Italy",
    "LV": "Latvia",
    "LI": "Liechtenstein",
    "LT": "Lithuania",
    "LU": "Luxembourg",
    "MT": "Malta",
    "NL": "Netherlands",
    "NO": "Norway",
    "PL": "Poland",
    "PT": "Portugal",
    "RO": "Romania",
    "SK": "Slovakia",
    "SI": "Slovenia",
    "ES": "Spain",
    "SE": "Sweden",
    "CH": "Switzerland",
    # Common non-Schengen destinations
    "GB": "United Kingdom",
    "IE": "Ireland",
    "CY": "Cyprus",
    "TR": "Turkey",
    "AL": "Albania",
    "RS": "Serbia",
    "ME": "Montenegro",
    "BA": "Bosnia and Herzegovina",
    "MK": "North Macedonia",
    "MA": "Morocco",
    "TN": "Tunisia",
    "EG": "Egypt",
    "IL": "Israel",
    "AE": "United Arab Emirates",
    "US": "United States",
    "CA": "Canada",
    "MX": "Mexico",
    "BR": "Brazil",
    "AR": "Argentina",
    "JP": "Japan",
    "CN": "China",
    "KR": "South Korea",
    "TH": "Thailand",
    "SG": "Singapore",
    "IN": "India",
    "AU": "Australia",
    "NZ": "New Zealand",
    "ZA": "South Africa",
}

# Alternate spellings that should resolve to a country (lower case)
COUNTRY_ALIASES: Dict[str, str] = {
    "czechia": "CZ",
    "holland": "NL",
    "the netherlands": "NL",
    "deutschland": "DE",
    "españa": "ES",
    "espana": "ES",
    "italia": "IT",
    "österreich": "AT",
    "schweiz": "CH",
    "suisse": "CH",
    "great britain": "GB",
    "england": "GB",
    "scotland": "GB",
    "wales": "GB",
    "uk": "GB",
    "united states of america": "US",
    "usa": "US",
    "türkiye": "TR",
    "turkiye": "TR",
    "uae": "AE",
}

# Major cities (lower case) → country code
CITY_TO_COUNTRY: Dict[str, str] = {
    # France
    "paris": "FR", "lyon": "FR", "marseille": "FR",
    "bordeaux": "FR", "toulouse": "FR", "strasbourg": "FR",
    # Italy
    "rome": "IT", "milan": "IT", "florence": "IT", "venice": "IT",
    "naples": "IT", "turin": "IT", "bologna": "IT",
    # Spain
    "barcelona": "ES", "madrid": "ES", "seville": "ES", "valencia": "ES",
    "malaga": "ES", "málaga": "ES", "palma de mallorca": "ES", "bilbao": "ES",
    # Germany
    "berlin": "DE", "munich": "DE", "frankfurt": "DE", "hamburg": "DE",
    "cologne": "DE", "düsseldorf": "DE", "dusseldorf": "DE", "stuttgart": "DE",
    # Benelux
    "amsterdam": "NL", "rotterdam": "NL", "the hague": "NL",
    "brussels": "BE", "antwerp": "BE", "bruges": "BE",
    # Central / Eastern Europe
    "vienna": "AT", "salzburg": "AT", "innsbruck": "AT",
    "prague": "CZ", "budapest": "HU", "warsaw": "PL", "krakow": "PL",
    "kraków": "PL", "bratislava": "SK", "ljubljana": "SI", "zagreb": "HR",
    "dubrovnik": "HR", "bucharest": "RO", "sofia": "BG",
    # Nordics / Baltics
    "copenhagen": "DK", "stockholm": "SE", "gothenburg": "SE", "oslo": "NO",
    "bergen": "NO", "helsinki": "FI", "reykjavik": "IS", "tallinn": "EE",
    "riga": "LV", "vilnius": "LT",
    # Switzerland
    "zurich": "CH", "zürich": "CH", "geneva": "CH", "basel": "CH",
    "bern": "CH", "lausanne": "CH",
    # Southern Europe
    "lisbon": "PT", "porto": "PT", "faro": "PT",
    "athens": "GR", "thessaloniki": "GR", "santorini": "GR",
    "valletta": "MT", "luxembourg city": "LU",
    # Outside Schengen
    "london": "GB", "edinburgh": "GB", "manchester": "GB",
    "dublin": "IE", "istanbul": "TR", "nicosia": "CY",
    "new york": "US", "los angeles": "US", "san francisco": "US",
    "chicago": "US", "washington dc": "US", "miami": "US",
    "toronto": "CA", "montreal": "CA", "vancouver": "CA",
    "mexico city": "MX", "tokyo": "JP", "seoul": "KR", "bangkok": "TH",
    "dubai": "AE", "tel aviv": "IL", "marrakech": "MA",
    "sydney": "AU", "melbourne": "AU",
}


def is_schengen(code: str) -> bool:
    return code.upper() in SCHENGEN_CODES


def name_for(code: str) -> Optional[str]:
    return COUNTRY_NAMES.get(code.upper())


def code_for(name: str) -> Optional[str]:
    lowered = name.strip().lower()
    for code, country_name in COUNTRY_NAMES.items():
        if country_name.lower() == lowered:
            return code
    return COUNTRY_ALIASES.get(lowered)
