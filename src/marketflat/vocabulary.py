"""Default keyword tables used to recognise hierarchy levels.

These are data, not logic: every table here is the default value of a
:class:`~marketflat.config.ConverterConfig` field and can be replaced or
extended from a YAML/JSON config file without touching the classifier.

Alias matching is case-insensitive and whole-word (an alias never matches
inside a longer word), so ``"india"`` does not fire on ``"Indiana"``.
"""

from __future__ import annotations

GLOBAL_KEYWORDS: list[str] = ["global", "world", "worldwide", "total"]

REGION_ALIASES: dict[str, list[str]] = {
    "North America": ["north america"],
    "Latin America": ["latin america", "south america", "latam"],
    "Europe": ["europe", "emea"],
    "Asia Pacific": ["asia pacific", "asia-pacific", "asiapacific", "apac"],
    "Middle East & Africa": [
        "middle east & africa",
        "middle east and africa",
        "middle east",
        "mea",
        "africa",
    ],
}

COUNTRY_ALIASES: dict[str, list[str]] = {
    # North America
    "U.S.": ["united states", "usa", "u.s.", "us"],
    "Canada": ["canada"],
    # Europe
    "UK": ["united kingdom", "uk", "britain", "england"],
    "Germany": ["germany", "deutschland"],
    "France": ["france"],
    "Italy": ["italy"],
    "Spain": ["spain"],
    "Russia": ["russia"],
    "Netherlands": ["netherlands", "holland"],
    "Sweden": ["sweden"],
    "Bulgaria": ["bulgaria"],
    "Poland": ["poland"],
    "Norway": ["norway"],
    "Denmark": ["denmark"],
    "Austria": ["austria"],
    "Belgium": ["belgium"],
    "Switzerland": ["switzerland"],
    "Finland": ["finland"],
    "Portugal": ["portugal"],
    "Ireland": ["ireland"],
    "Turkiye": ["turkiye", "turkey"],
    "Greece": ["greece"],
    "Luxembourg": ["luxembourg", "luxemborg"],
    "Croatia": ["croatia"],
    "RoE": ["rest of europe", "roe"],
    # Asia Pacific
    "China": ["china"],
    "India": ["india"],
    "Japan": ["japan"],
    "South Korea": ["south korea", "korea"],
    "ANZ": ["australia and new zealand", "australia", "new zealand", "anz"],
    "Taiwan": ["taiwan"],
    "Indonesia": ["indonesia"],
    "Thailand": ["thailand"],
    "Singapore": ["singapore"],
    "Philippines": ["philippines"],
    "Vietnam": ["vietnam"],
    "Malaysia": ["malaysia"],
    "Myanmar": ["myanmar"],
    "RoAPAC": ["rest of asia pacific", "rest of apac", "roapac"],
    # Latin America
    "Brazil": ["brazil"],
    "Mexico": ["mexico"],
    "Argentina": ["argentina"],
    "Peru": ["peru"],
    "Colombia": ["colombia", "columbia"],
    "RoLA": ["rest of latin america", "rola"],
    # Middle East & Africa
    "UAE": ["united arab emirates", "uae"],
    "Saudi Arabia": ["saudi arabia", "saudi"],
    "South Africa": ["south africa"],
    "RoMEA": ["rest of middle east & africa", "rest of middle east", "rest of mea", "romea"],
}

PRODUCT_KEYWORDS: list[str] = [
    "product",
    "products",
    "hardware",
    "software",
    "services",
    "solutions",
    "platform",
    "platforms",
    "components",
    "equipment",
    "devices",
]

SEGMENT_KEYWORDS: list[str] = [
    "segment",
    "segments",
    "category",
    "application",
    "applications",
    "end use",
    "end-use",
    "end user",
    "end-user",
    "vertical",
    "verticals",
    "industry",
    "deployment",
    "distribution channel",
    "type",
]

# Keywords looked up in the sheet name and header text, in hierarchy order.
SHEET_TYPE_KEYWORDS: dict[str, list[str]] = {
    "global": ["global", "worldwide", "world"],
    "regional": ["region", "regional", "regions"],
    "country": ["country", "countries"],
    "product": ["product", "products", "item", "items"],
    "segment": ["segment", "segments", "category", "categories"],
}
