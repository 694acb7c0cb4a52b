"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Создаем таблицу турниров с политикой экономики и версией для оптимистической блокировки.
    op.create_table(
        "tournaments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("series_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="SignupOpen"),
        sa.Column("current_round", sa.Integer(), nullable=True),
        sa.Column("round_count", sa.Integer(), nullable=True),
        sa.Column("roster_size", sa.Integer(), nullable=True),
        sa.Column("team_size", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("schedule_seed", sa.String(length=64), nullable=True),
        sa.Column("set_win_credit_cents", sa.Integer(), nullable=False, server_default="300"),
        sa.Column("starting_credits_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("participation_bonus_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("auto_resolved_credit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("allow_negative_balance", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("display_decimals", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("round_duration_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("max_byes_per_player", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("no_show_limit", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tournaments_status", "tournaments", ["status"], unique=False)

    # Создаем таблицу игроков турнира.
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("full_name", sa.String(length=120), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tournament_id", "phone", name="uq_players_tournament_phone"),
    )
    op.create_index("ix_players_id", "players", ["id"], unique=False)
    op.create_index("ix_players_tournament_id", "players", ["tournament_id"], unique=False)
    op.create_index("ix_players_status", "players", ["status"], unique=False)

    # Раунды: один номер раунда на турнир, повторное создание упирается в уникальность.
    op.create_table(
        "rounds",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("index", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Pending"),
        sa.Column("generation", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("starts_at", sa.DateTime(), nullable=True),
        sa.Column("ends_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("tournament_id", "index", name="uq_rounds_tournament_index"),
    )
    op.create_index("ix_rounds_tournament_id", "rounds", ["tournament_id"], unique=False)

    # Матчи раунда, включая записи о пропусках (bye).
    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("round_id", sa.Integer(), sa.ForeignKey("rounds.id", ondelete="CASCADE"), nullable=False),
        sa.Column("side_a_player1_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="SET NULL"), nullable=True),
        sa.Column("side_a_player2_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="SET NULL"), nullable=True),
        sa.Column("side_b_player1_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="SET NULL"), nullable=True),
        sa.Column("side_b_player2_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_bye", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bye_player_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Scheduled"),
        sa.Column("set_scores", sa.JSON(), nullable=True),
        sa.Column("sets_a", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sets_b", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_unfinished", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("played_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_matches_tournament_id", "matches", ["tournament_id"], unique=False)
    op.create_index("ix_matches_round_id", "matches", ["round_id"], unique=False)
    op.create_index("ix_matches_status", "matches", ["status"], unique=False)

    # Залоги игроков для аукциона.
    op.create_table(
        "pledge_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("owner_player_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False),
        sa.Column("round_id", sa.Integer(), sa.ForeignKey("rounds.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Draft"),
        sa.Column("estimate_low_cents", sa.Integer(), nullable=True),
        sa.Column("estimate_high_cents", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_pledge_items_tournament_id", "pledge_items", ["tournament_id"], unique=False)
    op.create_index("ix_pledge_items_owner_player_id", "pledge_items", ["owner_player_id"], unique=False)
    op.create_index("ix_pledge_items_status", "pledge_items", ["status"], unique=False)

    # Аукцион: не больше одного на турнир.
    op.create_table(
        "auctions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Open"),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("settled_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tournament_id", name="uq_auctions_tournament"),
    )
    op.create_index("ix_auctions_tournament_id", "auctions", ["tournament_id"], unique=False)

    op.create_table(
        "auction_lots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("auction_id", sa.Integer(), sa.ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pledge_item_id", sa.Integer(), sa.ForeignKey("pledge_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Open"),
        sa.Column("current_bid_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "current_winner_player_id",
            sa.Integer(),
            sa.ForeignKey("players.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("winning_bid_id", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("auction_id", "pledge_item_id", name="uq_auction_lots_item"),
    )
    op.create_index("ix_auction_lots_auction_id", "auction_lots", ["auction_id"], unique=False)
    op.create_index("ix_auction_lots_pledge_item_id", "auction_lots", ["pledge_item_id"], unique=False)

    op.create_table(
        "bids",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lot_id", sa.Integer(), sa.ForeignKey("auction_lots.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pledge_item_id", sa.Integer(), sa.ForeignKey("pledge_items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("bidder_player_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_bids_lot_id", "bids", ["lot_id"], unique=False)
    op.create_index("ix_bids_pledge_item_id", "bids", ["pledge_item_id"], unique=False)
    op.create_index("ix_bids_bidder_player_id", "bids", ["bidder_player_id"], unique=False)
    op.create_index("ix_bids_created_at", "bids", ["created_at"], unique=False)

    # Журнал кредитов: только вставка, баланс считается суммой строк.
    op.create_table(
        "credit_ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tournament_id", sa.Integer(), sa.ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id", ondelete="CASCADE"), nullable=False),
        sa.Column("delta_cents", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id", ondelete="SET NULL"), nullable=True),
        sa.Column("round_id", sa.Integer(), sa.ForeignKey("rounds.id", ondelete="SET NULL"), nullable=True),
        sa.Column("lot_id", sa.Integer(), sa.ForeignKey("auction_lots.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "reverses_entry_id",
            sa.Integer(),
            sa.ForeignKey("credit_ledger_entries.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("note", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_credit_ledger_entries_tournament_id", "credit_ledger_entries", ["tournament_id"], unique=False)
    op.create_index("ix_credit_ledger_entries_player_id", "credit_ledger_entries", ["player_id"], unique=False)
    op.create_index("ix_credit_ledger_entries_reason", "credit_ledger_entries", ["reason"], unique=False)
    op.create_index("ix_credit_ledger_entries_match_id", "credit_ledger_entries", ["match_id"], unique=False)
    op.create_index("ix_credit_ledger_entries_created_at", "credit_ledger_entries", ["created_at"], unique=False)


def downgrade() -> None:
    # Откатываем схему до пустого состояния.
    op.drop_table("credit_ledger_entries")
    op.drop_table("bids")
    op.drop_table("auction_lots")
    op.drop_table("auctions")
    op.drop_table("pledge_items")
    op.drop_table("matches")
    op.drop_table("rounds")
    op.drop_table("players")
    op.drop_table("tournaments")
