"""Экзотические соки для названий турниров серии."""

JUICE_NAMES = [
    "Yuzu",
    "Calamansi",
    "Guava",
    "Passion Fruit",
    "Lychee",
    "Tamarind",
    "Soursop",
    "Mangosteen",
    "Prickly Pear",
    "Acerola",
    "Kumquat",
    "Dragonfruit",
    "Starfruit",
    "Rambutan",
    "Jackfruit",
    "Pomelo",
    "Feijoa",
    "Cherimoya",
    "Sapodilla",
    "Persimmon",
]


def tournament_name(series_index: int) -> str:
    # Имена идут по кругу, номер серии может быть любым неотрицательным.
    return JUICE_NAMES[series_index % len(JUICE_NAMES)]
