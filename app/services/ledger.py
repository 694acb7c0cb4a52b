"""Журнал кредитов: только вставки, баланс всегда считается суммой строк."""

from decimal import ROUND_HALF_EVEN, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.models.ledger import MATCH_CREDIT_REASONS, CreditLedgerEntry, LedgerReason

CURRENCY_SYMBOL = "€"


async def apply_delta(
    db: AsyncSession,
    player_id: int,
    tournament_id: int,
    delta_cents: int,
    reason: LedgerReason | str,
    *,
    match_id: int | None = None,
    round_id: int | None = None,
    lot_id: int | None = None,
    reverses_entry_id: int | None = None,
    note: str = "",
) -> int:
    """Добавляет строку в журнал и возвращает её id. Коммит остаётся за вызывающим действием."""
    if isinstance(delta_cents, bool) or not isinstance(delta_cents, int):
        raise ValidationError("Credit delta must be an integer amount of cents")
    if delta_cents == 0:
        raise ValidationError("Credit delta must be non-zero")

    entry = CreditLedgerEntry(
        tournament_id=tournament_id,
        player_id=player_id,
        delta_cents=delta_cents,
        reason=LedgerReason(reason).value,
        match_id=match_id,
        round_id=round_id,
        lot_id=lot_id,
        reverses_entry_id=reverses_entry_id,
        note=note[:255],
    )
    db.add(entry)
    await db.flush()
    return entry.id


async def balance(db: AsyncSession, player_id: int, tournament_id: int) -> int:
    total = await db.scalar(
        select(func.coalesce(func.sum(CreditLedgerEntry.delta_cents), 0)).where(
            CreditLedgerEntry.player_id == player_id,
            CreditLedgerEntry.tournament_id == tournament_id,
        )
    )
    return int(total or 0)


async def balances(db: AsyncSession, tournament_id: int) -> dict[int, int]:
    rows = (
        await db.execute(
            select(CreditLedgerEntry.player_id, func.sum(CreditLedgerEntry.delta_cents))
            .where(CreditLedgerEntry.tournament_id == tournament_id)
            .group_by(CreditLedgerEntry.player_id)
        )
    ).all()
    return {player_id: int(total or 0) for player_id, total in rows}


async def player_ledger(db: AsyncSession, player_id: int, tournament_id: int) -> list[CreditLedgerEntry]:
    return list(
        (
            await db.scalars(
                select(CreditLedgerEntry)
                .where(CreditLedgerEntry.player_id == player_id, CreditLedgerEntry.tournament_id == tournament_id)
                .order_by(CreditLedgerEntry.id)
            )
        ).all()
    )


def clamp_balance(cents: int, allow_negative: bool) -> int:
    # Только для отображения и проверок, журнал не переписывается.
    if not allow_negative and cents < 0:
        return 0
    return cents


def format_credits(cents: int, show_decimals: bool = False) -> str:
    sign = "-" if cents < 0 else ""
    units = Decimal(abs(cents)) / Decimal(100)
    if show_decimals:
        return f"{sign}{CURRENCY_SYMBOL}{units.quantize(Decimal('0.01'))}"
    whole = units.quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)
    if whole == 0:
        sign = ""
    return f"{sign}{CURRENCY_SYMBOL}{whole}"


async def reverse_match_entries(db: AsyncSession, match_id: int, note: str = "") -> list[int]:
    """Пишет компенсирующие строки для всех ещё не отменённых начислений за матч."""
    already_reversed = select(CreditLedgerEntry.reverses_entry_id).where(
        CreditLedgerEntry.reverses_entry_id.is_not(None)
    )
    entries = list(
        (
            await db.scalars(
                select(CreditLedgerEntry)
                .where(
                    CreditLedgerEntry.match_id == match_id,
                    CreditLedgerEntry.reason.in_(MATCH_CREDIT_REASONS),
                    CreditLedgerEntry.id.not_in(already_reversed),
                )
                .order_by(CreditLedgerEntry.id)
            )
        ).all()
    )

    reversal_ids: list[int] = []
    for entry in entries:
        reversal_ids.append(
            await apply_delta(
                db,
                player_id=entry.player_id,
                tournament_id=entry.tournament_id,
                delta_cents=-entry.delta_cents,
                reason=LedgerReason.CORRECTION,
                match_id=match_id,
                round_id=entry.round_id,
                reverses_entry_id=entry.id,
                note=note or f"Reversal of entry {entry.id}",
            )
        )
    return reversal_ids
