"""Аукцион залогов после последнего раунда: открытие, ставки и расчет."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.auction import (
    Auction,
    AuctionLot,
    AuctionStatus,
    Bid,
    LotStatus,
    PledgeItem,
    PledgeStatus,
)
from app.models.ledger import LedgerReason
from app.models.player import Player
from app.models.tournament import Tournament, TournamentStatus
from app.services.increments import min_increment, min_next_bid
from app.services.ledger import apply_delta, balance, clamp_balance

logger = logging.getLogger(__name__)


def describe_lot(lot: AuctionLot) -> dict:
    return {
        "lot_id": lot.id,
        "pledge_item_id": lot.pledge_item_id,
        "status": lot.status,
        "current_bid_cents": lot.current_bid_cents,
        "current_winner_player_id": lot.current_winner_player_id,
        "min_next_bid_cents": min_next_bid(lot.current_bid_cents),
    }


def pick_winning_bid(bids: list[Bid]) -> Bid | None:
    # Максимальная сумма; при равенстве побеждает более ранняя ставка.
    if not bids:
        return None
    return min(bids, key=lambda bid: (-bid.amount_cents, bid.created_at, bid.id))


async def start_auction(
    db: AsyncSession,
    tournament_id: int,
    duration_hours: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Фиксирует одобренные залоги как лоты и открывает окно ставок."""
    now = now or datetime.utcnow()
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    if tournament.status != TournamentStatus.AUCTION_OPEN.value:
        raise ConflictError("Tournament must finish all rounds before the auction")

    existing = await db.scalar(select(Auction).where(Auction.tournament_id == tournament.id))
    if existing:
        raise ConflictError(f"Auction already {existing.status.lower()} for this tournament")

    hours = duration_hours or settings.auction_duration_hours
    if hours <= 0:
        raise ValidationError("Auction duration must be positive")

    auction = Auction(
        tournament_id=tournament.id,
        status=AuctionStatus.OPEN.value,
        starts_at=now,
        ends_at=now + timedelta(hours=hours),
    )
    db.add(auction)
    await db.flush()

    pledges = (
        await db.scalars(
            select(PledgeItem)
            .where(PledgeItem.tournament_id == tournament.id, PledgeItem.status == PledgeStatus.APPROVED.value)
            .order_by(PledgeItem.id)
        )
    ).all()
    lots = []
    for pledge in pledges:
        lot = AuctionLot(
            auction_id=auction.id,
            pledge_item_id=pledge.id,
            status=LotStatus.OPEN.value,
            current_bid_cents=0,
        )
        db.add(lot)
        lots.append(lot)
    # Второй параллельный старт упрется в уникальность auctions.tournament_id.
    await db.commit()
    logger.info("Auction %s opened for tournament %s with %s lots", auction.id, tournament.id, len(lots))
    return {
        "auction_id": auction.id,
        "ends_at": auction.ends_at.isoformat(),
        "lots": [describe_lot(lot) for lot in lots],
    }


async def committed_elsewhere(db: AsyncSession, auction_id: int, player_id: int, exclude_lot_id: int) -> int:
    # Сумма ставок, которые игрок сейчас лидирует на других лотах этого аукциона.
    total = await db.scalar(
        select(func.coalesce(func.sum(AuctionLot.current_bid_cents), 0)).where(
            AuctionLot.auction_id == auction_id,
            AuctionLot.status == LotStatus.OPEN.value,
            AuctionLot.current_winner_player_id == player_id,
            AuctionLot.id != exclude_lot_id,
        )
    )
    return int(total or 0)


async def place_bid(
    db: AsyncSession,
    pledge_item_id: int,
    bidder_player_id: int,
    amount_cents: int,
    now: datetime | None = None,
) -> dict:
    """Проверяет ставку и записывает новый максимум одним compare-and-set по версии лота."""
    now = now or datetime.utcnow()
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Bid amount must be a positive integer amount of cents")

    pledge = await db.scalar(select(PledgeItem).where(PledgeItem.id == pledge_item_id))
    if not pledge:
        raise NotFoundError("Pledge item not found")

    auction = await db.scalar(select(Auction).where(Auction.tournament_id == pledge.tournament_id))
    if not auction or auction.status != AuctionStatus.OPEN.value:
        raise ConflictError("Auction is not open")
    if now >= auction.ends_at:
        raise ConflictError("Auction window has closed")

    lot = await db.scalar(
        select(AuctionLot).where(AuctionLot.auction_id == auction.id, AuctionLot.pledge_item_id == pledge.id)
    )
    if not lot or lot.status != LotStatus.OPEN.value:
        raise ConflictError("Pledge item is not listed in the auction")

    bidder = await db.scalar(
        select(Player).where(Player.id == bidder_player_id, Player.tournament_id == pledge.tournament_id)
    )
    if not bidder:
        raise NotFoundError("Bidder not found in this tournament")
    if bidder.id == pledge.owner_player_id:
        raise ValidationError("Cannot bid on your own pledge")
    if lot.current_winner_player_id == bidder.id:
        raise ConflictError("You already hold the highest bid on this lot")

    required = lot.current_bid_cents + min_increment(lot.current_bid_cents)
    if amount_cents < required:
        raise ValidationError(f"Bid too low: minimum is {required} cents")

    tournament = await db.scalar(select(Tournament).where(Tournament.id == pledge.tournament_id))
    available = clamp_balance(
        await balance(db, bidder.id, pledge.tournament_id),
        tournament.allow_negative_balance if tournament else False,
    ) - await committed_elsewhere(db, auction.id, bidder.id, lot.id)
    if amount_cents > available:
        raise ValidationError(f"Insufficient credits: {max(available, 0)} cents available")

    bid = Bid(
        lot_id=lot.id,
        pledge_item_id=pledge.id,
        bidder_player_id=bidder.id,
        amount_cents=amount_cents,
        created_at=now,
    )
    db.add(bid)
    previous_leader = lot.current_winner_player_id
    lot.current_bid_cents = amount_cents
    lot.current_winner_player_id = bidder.id
    # UPDATE ... WHERE version = прочитанной; устаревшее чтение даст StaleDataError и повтор действия.
    await db.flush()
    await db.commit()
    logger.info(
        "Lot %s: bid %s by player %s (outbid %s)",
        lot.id,
        amount_cents,
        bidder.id,
        previous_leader,
    )
    return {"bid_id": bid.id, **describe_lot(lot)}


async def settle_auction(db: AsyncSession, tournament_id: int, now: datetime | None = None) -> dict:
    """Закрывает все открытые лоты разом: списывает победителей, непроданное возвращает в Draft."""
    now = now or datetime.utcnow()
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFoundError("Tournament not found")
    auction = await db.scalar(select(Auction).where(Auction.tournament_id == tournament.id))
    if not auction:
        raise ConflictError("No auction found for this tournament")
    if auction.status != AuctionStatus.OPEN.value:
        raise ConflictError("Auction is already settled")

    lots = list(
        (
            await db.scalars(
                select(AuctionLot)
                .where(AuctionLot.auction_id == auction.id, AuctionLot.status == LotStatus.OPEN.value)
                .order_by(AuctionLot.id)
            )
        ).all()
    )

    results = []
    for lot in lots:
        bids = list((await db.scalars(select(Bid).where(Bid.lot_id == lot.id))).all())
        winning = pick_winning_bid(bids)
        pledge = await db.scalar(select(PledgeItem).where(PledgeItem.id == lot.pledge_item_id))
        if not pledge:
            raise NotFoundError(f"Pledge item {lot.pledge_item_id} not found")

        if winning is None:
            lot.status = LotStatus.UNSOLD.value
            pledge.status = PledgeStatus.DRAFT.value
            results.append({"lot_id": lot.id, "pledge_item_id": pledge.id, "sold": False})
            continue

        lot.status = LotStatus.SOLD.value
        lot.current_bid_cents = winning.amount_cents
        lot.current_winner_player_id = winning.bidder_player_id
        lot.winning_bid_id = winning.id
        await apply_delta(
            db,
            player_id=winning.bidder_player_id,
            tournament_id=tournament.id,
            delta_cents=-winning.amount_cents,
            reason=LedgerReason.AUCTION_DEBIT,
            lot_id=lot.id,
            note=f"Auction win: {pledge.title}",
        )
        results.append(
            {
                "lot_id": lot.id,
                "pledge_item_id": pledge.id,
                "sold": True,
                "winner_player_id": winning.bidder_player_id,
                "amount_cents": winning.amount_cents,
            }
        )

    auction.status = AuctionStatus.SETTLED.value
    auction.settled_at = now
    tournament.status = TournamentStatus.SETTLED.value
    await db.commit()
    logger.info(
        "Auction %s settled: %s sold, %s unsold",
        auction.id,
        sum(1 for r in results if r["sold"]),
        sum(1 for r in results if not r["sold"]),
    )
    return {"auction_id": auction.id, "status": tournament.status, "lots": results}
