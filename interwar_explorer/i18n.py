"""Labels used by the metadata projections, in English and Polish."""

TRANSLATIONS = {
    "info.none": {"en": "None", "pl": "Brak"},
    "info.pagePrefix": {"en": "p. ", "pl": "str. "},
    "info.pdfSuffix": {"en": " PDF", "pl": " PDF"},
    "info.tableLabel": {"en": "table", "pl": "tabela"},
}


def t(key: str, language: str) -> str:
    entry = TRANSLATIONS.get(key)
    if entry is None:
        return key
    return entry.get(language) or entry["en"]
