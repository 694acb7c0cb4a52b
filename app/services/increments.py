"""Шаг минимального повышения ставки на аукционе."""

# Пороги текущей ставки (в центах) и шаг повышения; граница относится к верхнему уровню.
BID_INCREMENT_TIERS: list[tuple[int, int]] = [
    (6000, 1000),
    (3000, 500),
    (1000, 200),
    (0, 100),
]


def min_increment(current_bid_cents: int) -> int:
    # Ищем первый порог, который текущая ставка уже достигла.
    for threshold, increment in BID_INCREMENT_TIERS:
        if current_bid_cents >= threshold:
            return increment
    return BID_INCREMENT_TIERS[-1][1]


def min_next_bid(current_bid_cents: int) -> int:
    return current_bid_cents + min_increment(current_bid_cents)
