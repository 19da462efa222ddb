"""
Geographic Reference Data

Closed vocabularies used to validate reconciled geography. A country or
province that is not listed here (directly or as an alias) is discarded.

Bump REFERENCE_DATA_VERSION whenever an entry is added or removed; stored
rows are re-validated against the current tables at aggregation time.
"""

from typing import Dict, FrozenSet, Optional

REFERENCE_DATA_VERSION = "2025.12"


COUNTRIES: FrozenSet[str] = frozenset({
    "Afghanistan", "Albania", "Algeria", "Andorra", "Angola", "Antigua and Barbuda",
    "Argentina", "Armenia", "Australia", "Austria", "Azerbaijan", "Bahamas", "Bahrain",
    "Bangladesh", "Barbados", "Belarus", "Belgium", "Belize", "Benin", "Bhutan",
    "Bolivia", "Bosnia and Herzegovina", "Botswana", "Brazil", "Brunei", "Bulgaria",
    "Burkina Faso", "Burundi", "Cambodia", "Cameroon", "Canada", "Cape Verde",
    "Central African Republic", "Chad", "Chile", "China", "Colombia", "Comoros",
    "Congo", "Costa Rica", "Croatia", "Cuba", "Cyprus", "Czech Republic",
    "Democratic Republic of the Congo", "Denmark", "Djibouti", "Dominica",
    "Dominican Republic", "Ecuador", "Egypt", "El Salvador", "Equatorial Guinea",
    "Eritrea", "Estonia", "Eswatini", "Ethiopia", "Fiji", "Finland", "France", "Gabon",
    "Gambia", "Georgia", "Germany", "Ghana", "Greece", "Grenada", "Guatemala", "Guinea",
    "Guinea-Bissau", "Guyana", "Haiti", "Honduras", "Hong Kong", "Hungary", "Iceland",
    "India", "Indonesia", "Iran", "Iraq", "Ireland", "Israel", "Italy", "Ivory Coast",
    "Jamaica", "Japan", "Jordan", "Kazakhstan", "Kenya", "Kiribati", "Kosovo", "Kuwait",
    "Kyrgyzstan", "Laos", "Latvia", "Lebanon", "Lesotho", "Liberia", "Libya",
    "Liechtenstein", "Lithuania", "Luxembourg", "Macau", "Madagascar", "Malawi",
    "Malaysia", "Maldives", "Mali", "Malta", "Marshall Islands", "Mauritania",
    "Mauritius", "Mexico", "Micronesia", "Moldova", "Monaco", "Mongolia", "Montenegro",
    "Morocco", "Mozambique", "Myanmar", "Namibia", "Nauru", "Nepal", "Netherlands",
    "New Zealand", "Nicaragua", "Niger", "Nigeria", "North Korea", "North Macedonia",
    "Norway", "Oman", "Pakistan", "Palau", "Palestine", "Panama", "Papua New Guinea",
    "Paraguay", "Peru", "Philippines", "Poland", "Portugal", "Puerto Rico", "Qatar",
    "Romania", "Russia", "Rwanda", "Saint Kitts and Nevis", "Saint Lucia",
    "Saint Vincent and the Grenadines", "Samoa", "San Marino", "Sao Tome and Principe",
    "Saudi Arabia", "Senegal", "Serbia", "Seychelles", "Sierra Leone", "Singapore",
    "Slovakia", "Slovenia", "Solomon Islands", "Somalia", "South Africa", "South Korea",
    "South Sudan", "Spain", "Sri Lanka", "Sudan", "Suriname", "Sweden", "Switzerland",
    "Syria", "Taiwan", "Tajikistan", "Tanzania", "Thailand", "Timor-Leste", "Togo",
    "Tonga", "Trinidad and Tobago", "Tunisia", "Turkey", "Turkmenistan", "Tuvalu",
    "Uganda", "Ukraine", "United Arab Emirates", "United Kingdom", "United States",
    "Uruguay", "Uzbekistan", "Vanuatu", "Vatican City", "Venezuela", "Vietnam",
    "Yemen", "Zambia", "Zimbabwe",
    # Crown dependencies and overseas territories seen in checkout data
    "Isle of Man", "Jersey", "Guernsey", "Gibraltar", "Bermuda", "Cayman Islands",
    "Faroe Islands", "Greenland", "Aland Islands",
})

# Lower-cased alias -> canonical country name
COUNTRY_ALIASES: Dict[str, str] = {
    "uk": "United Kingdom",
    "u.k.": "United Kingdom",
    "gb": "United Kingdom",
    "gbr": "United Kingdom",
    "great britain": "United Kingdom",
    "britain": "United Kingdom",
    "england": "United Kingdom",
    "scotland": "United Kingdom",
    "wales": "United Kingdom",
    "northern ireland": "United Kingdom",
    "united kingdom of great britain and northern ireland": "United Kingdom",
    "us": "United States",
    "u.s.": "United States",
    "usa": "United States",
    "u.s.a.": "United States",
    "united states of america": "United States",
    "america": "United States",
    "ca": "Canada",
    "au": "Australia",
    "aus": "Australia",
    "nz": "New Zealand",
    "ie": "Ireland",
    "republic of ireland": "Ireland",
    "eire": "Ireland",
    "de": "Germany",
    "deutschland": "Germany",
    "fr": "France",
    "es": "Spain",
    "espana": "Spain",
    "españa": "Spain",
    "it": "Italy",
    "italia": "Italy",
    "nl": "Netherlands",
    "the netherlands": "Netherlands",
    "holland": "Netherlands",
    "nederland": "Netherlands",
    "be": "Belgium",
    "ch": "Switzerland",
    "at": "Austria",
    "se": "Sweden",
    "dk": "Denmark",
    "no": "Norway",
    "fi": "Finland",
    "pt": "Portugal",
    "pl": "Poland",
    "czechia": "Czech Republic",
    "uae": "United Arab Emirates",
    "korea, republic of": "South Korea",
    "republic of korea": "South Korea",
    "russian federation": "Russia",
    "viet nam": "Vietnam",
    "türkiye": "Turkey",
    "turkiye": "Turkey",
    "cote d'ivoire": "Ivory Coast",
    "côte d'ivoire": "Ivory Coast",
    "swaziland": "Eswatini",
    "macedonia": "North Macedonia",
    "burma": "Myanmar",
    "east timor": "Timor-Leste",
    "holy see": "Vatican City",
    "åland islands": "Aland Islands",
}

# Historical territory names still present in old address books; kept as-is
HISTORICAL_TERRITORIES: FrozenSet[str] = frozenset({
    "Czechoslovakia",
    "Yugoslavia",
    "Soviet Union",
    "USSR",
    "East Germany",
    "West Germany",
    "Zaire",
    "Rhodesia",
    "Ceylon",
    "Siam",
    "Persia",
})


UK_SUBDIVISIONS: FrozenSet[str] = frozenset({
    # Home nations
    "England", "Scotland", "Wales", "Northern Ireland",
    # English counties
    "Bedfordshire", "Berkshire", "Bristol", "Buckinghamshire", "Cambridgeshire",
    "Cheshire", "City of London", "Cornwall", "Cumbria", "Derbyshire", "Devon",
    "Dorset", "Durham", "County Durham", "East Riding of Yorkshire", "East Sussex",
    "Essex", "Gloucestershire", "Greater London", "Greater Manchester", "Hampshire",
    "Herefordshire", "Hertfordshire", "Isle of Wight", "Kent", "Lancashire",
    "Leicestershire", "Lincolnshire", "Merseyside", "Norfolk", "North Yorkshire",
    "Northamptonshire", "Northumberland", "Nottinghamshire", "Oxfordshire", "Rutland",
    "Shropshire", "Somerset", "South Yorkshire", "Staffordshire", "Suffolk", "Surrey",
    "Tyne and Wear", "Warwickshire", "West Midlands", "West Sussex", "West Yorkshire",
    "Wiltshire", "Worcestershire",
    # Scottish council areas
    "Aberdeenshire", "Angus", "Argyll and Bute", "City of Edinburgh", "Dumfries and Galloway",
    "Fife", "Glasgow City", "Highland", "Lanarkshire", "Moray", "Perth and Kinross",
    "Scottish Borders", "Stirling",
    # Welsh principal areas
    "Cardiff", "Carmarthenshire", "Ceredigion", "Conwy", "Denbighshire", "Flintshire",
    "Gwynedd", "Monmouthshire", "Pembrokeshire", "Powys", "Swansea",
    # Northern Irish counties
    "Antrim", "Armagh", "Down", "Fermanagh", "Londonderry", "Tyrone",
})

US_STATES: FrozenSet[str] = frozenset({
    "Alabama", "Alaska", "Arizona", "Arkansas", "California", "Colorado",
    "Connecticut", "Delaware", "District of Columbia", "Florida", "Georgia", "Hawaii",
    "Idaho", "Illinois", "Indiana", "Iowa", "Kansas", "Kentucky", "Louisiana", "Maine",
    "Maryland", "Massachusetts", "Michigan", "Minnesota", "Mississippi", "Missouri",
    "Montana", "Nebraska", "Nevada", "New Hampshire", "New Jersey", "New Mexico",
    "New York", "North Carolina", "North Dakota", "Ohio", "Oklahoma", "Oregon",
    "Pennsylvania", "Rhode Island", "South Carolina", "South Dakota", "Tennessee",
    "Texas", "Utah", "Vermont", "Virginia", "Washington", "West Virginia", "Wisconsin",
    "Wyoming",
})

CANADIAN_PROVINCES: FrozenSet[str] = frozenset({
    "Alberta", "British Columbia", "Manitoba", "New Brunswick",
    "Newfoundland and Labrador", "Nova Scotia", "Ontario", "Prince Edward Island",
    "Quebec", "Québec", "Saskatchewan", "Northwest Territories", "Nunavut", "Yukon",
})

AUSTRALIAN_STATES: FrozenSet[str] = frozenset({
    "New South Wales", "Victoria", "Queensland", "South Australia",
    "Western Australia", "Tasmania", "Australian Capital Territory",
    "Northern Territory",
})

EU_SUBDIVISIONS: FrozenSet[str] = frozenset({
    # Ireland
    "Dublin", "Cork", "Galway", "Kerry", "Kildare", "Limerick", "Meath", "Wicklow",
    "Wexford", "Waterford", "Donegal", "Mayo", "Louth", "Tipperary", "Clare",
    # Germany
    "Baden-Württemberg", "Bavaria", "Bayern", "Berlin", "Brandenburg", "Bremen",
    "Hamburg", "Hesse", "Hessen", "Lower Saxony", "Niedersachsen",
    "Mecklenburg-Vorpommern", "North Rhine-Westphalia", "Nordrhein-Westfalen",
    "Rhineland-Palatinate", "Saarland", "Saxony", "Sachsen", "Saxony-Anhalt",
    "Schleswig-Holstein", "Thuringia",
    # France
    "Île-de-France", "Ile-de-France", "Auvergne-Rhône-Alpes", "Bourgogne-Franche-Comté",
    "Brittany", "Bretagne", "Centre-Val de Loire", "Corsica", "Grand Est",
    "Hauts-de-France", "Normandy", "Normandie", "Nouvelle-Aquitaine", "Occitanie",
    "Pays de la Loire", "Provence-Alpes-Côte d'Azur",
    # Spain
    "Andalusia", "Andalucía", "Aragon", "Asturias", "Balearic Islands", "Canary Islands",
    "Cantabria", "Castile and León", "Castilla-La Mancha", "Catalonia", "Cataluña",
    "Extremadura", "Galicia", "La Rioja", "Madrid", "Murcia", "Navarre",
    "Basque Country", "Valencia",
    # Italy
    "Abruzzo", "Apulia", "Puglia", "Calabria", "Campania", "Emilia-Romagna", "Lazio",
    "Liguria", "Lombardy", "Lombardia", "Marche", "Piedmont", "Piemonte", "Sardinia",
    "Sicily", "Sicilia", "Tuscany", "Toscana", "Trentino-Alto Adige", "Umbria", "Veneto",
    # Netherlands
    "Drenthe", "Flevoland", "Friesland", "Gelderland", "Groningen", "Limburg",
    "North Brabant", "Noord-Brabant", "North Holland", "Noord-Holland", "Overijssel",
    "South Holland", "Zuid-Holland", "Utrecht", "Zeeland",
})

PROVINCES: FrozenSet[str] = (
    UK_SUBDIVISIONS
    | US_STATES
    | CANADIAN_PROVINCES
    | AUSTRALIAN_STATES
    | EU_SUBDIVISIONS
)


def _fold(value: str) -> str:
    return " ".join(value.split()).casefold()


_COUNTRY_INDEX: Dict[str, str] = {
    **{_fold(name): name for name in COUNTRIES},
    **{_fold(name): name for name in HISTORICAL_TERRITORIES},
    **{_fold(alias): name for alias, name in COUNTRY_ALIASES.items()},
}

_PROVINCE_INDEX: Dict[str, str] = {_fold(name): name for name in PROVINCES}


def canonical_country(value: Optional[str]) -> Optional[str]:
    """Canonical country name for a known name or alias, else None."""
    if not value:
        return None
    return _COUNTRY_INDEX.get(_fold(value))


def canonical_province(value: Optional[str]) -> Optional[str]:
    """Canonical subdivision name for a known province/state/region, else None."""
    if not value:
        return None
    return _PROVINCE_INDEX.get(_fold(value))
