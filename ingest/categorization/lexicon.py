"""Built-in German keyword and merchant lexicon, keyed by category family."""

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "salary": ["gehalt", "lohn", "salär", "vergütung", "entgelt", "bezahlung", "arbeitgeber"],
    "freelance": ["freelance", "freiberufler", "honorar", "rechnung", "dienstleistung", "projekt"],
    "investment": ["dividende", "zinsen", "aktien", "fonds", "anlage", "kapitalertrag", "depot"],
    "rental": ["mieteinnahme", "vermieter", "immobilie", "wohnung"],
    "housing": [
        "miete", "nebenkosten", "strom", "gas", "wasser", "heizung", "wohnung", "immobilie",
        "hausrat",
    ],
    "transportation": [
        "tankstelle", "bahn", "bus", "uber", "taxi", "auto", "benzin", "diesel", "öpnv", "mvg",
        "lufthansa",
    ],
    "food": [
        "supermarkt", "restaurant", "café", "bäckerei", "metzgerei", "lieferando", "mcdonald",
    ],
    "healthcare": [
        "apotheke", "arzt", "krankenhaus", "medikament", "therapie", "zahnarzt", "optiker",
    ],
    "entertainment": [
        "kino", "theater", "konzert", "streaming", "spiel", "sport", "fitness",
    ],
    "shopping": ["media markt", "saturn", "ikea", "douglas", "rossmann"],
    "education": ["schule", "universität", "kurs", "seminar", "buch", "udemy", "coursera"],
    "business": ["büro", "software", "beratung", "steuer", "buchhaltung"],
    "utilities": ["telefon", "internet", "mobilfunk", "rundfunk"],
    "insurance": ["versicherung", "haftpflicht", "kasko"],
}

MERCHANTS: dict[str, list[str]] = {
    "food": ["rewe", "edeka", "aldi", "lidl", "netto", "kaufland", "penny", "norma"],
    "transportation": ["deutsche bahn", "db", "mvg", "bvg", "shell", "aral", "esso", "bp"],
    "shopping": ["amazon", "zalando", "otto", "h&m", "zara", "c&a", "ikea", "dm"],
    "entertainment": ["netflix", "spotify", "amazon prime", "disney+", "sky", "dazn"],
    "healthcare": ["doc morris", "shop apotheke", "zur rose"],
    "utilities": ["telekom", "vodafone", "1&1", "o2", "eon", "rwe", "vattenfall"],
    "insurance": ["allianz", "axa", "generali", "huk", "devk", "signal iduna"],
}

# Category display name fragments -> lexicon family. First match wins.
NAME_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("gehalt", "lohn", "salary"), "salary"),
    (("freelance", "honorar"), "freelance"),
    (("mieteinnahme", "vermietung", "rental"), "rental"),
    (("kapital", "dividende", "investment"), "investment"),
    (("miete", "wohnen", "housing", "rent"), "housing"),
    (("transport", "verkehr", "mobilität"), "transportation"),
    (("essen", "lebensmittel", "groceries", "food"), "food"),
    (("gesundheit", "medizin", "health"), "healthcare"),
    (("unterhaltung", "freizeit", "entertainment"), "entertainment"),
    (("einkauf", "shopping"), "shopping"),
    (("bildung", "ausbildung", "education"), "education"),
    (("geschäft", "büro", "business"), "business"),
    (("nebenkosten", "telefon", "utilities"), "utilities"),
    (("versicherung", "insurance"), "insurance"),
]

# family -> (min exclusive, max exclusive); either bound may be None
AMOUNT_HINTS: dict[str, tuple[float | None, float | None]] = {
    "housing": (500, None),
    "salary": (1000, None),
    "food": (None, 200),
    "transportation": (None, 100),
}

STOPWORDS = frozenset(
    {
        "und", "der", "die", "das", "eine", "ein", "mit", "für", "von", "auf", "in", "zu",
        "an", "bei", "the", "and", "or", "but", "on", "at", "to", "for", "of", "with", "by",
        "sagt", "danke", "kartenzahlung", "lastschrift", "überweisung", "gutschrift",
        "dauerauftrag", "mandatsref", "verwendungszweck",
    }
)


def family_for(category_name: str) -> str | None:
    name = category_name.lower()
    for fragments, family in NAME_HINTS:
        if any(fragment in name for fragment in fragments):
            return family
    return None
