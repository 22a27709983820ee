"""Database models."""

from arena.models.audit import SYSTEM_ACTOR, AuditLog
from arena.models.base import Base, TimestampMixin, UUIDMixin
from arena.models.funding import (
    PaymentMethod,
    RechargeRequest,
    RequestStatus,
    WithdrawalRequest,
)
from arena.models.reward import RewardRecord
from arena.models.settings import PAYMENT_SETTINGS_ID, FeaturedTournament, PaymentAccountSettings
from arena.models.tournament import GameType, Participant, Tournament, TournamentStatus
from arena.models.user import User, UserRole
from arena.models.wallet import TransactionType, WalletTransaction

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # User
    "User",
    "UserRole",
    # Tournament
    "Tournament",
    "TournamentStatus",
    "GameType",
    "Participant",
    # Ledger
    "WalletTransaction",
    "TransactionType",
    "RewardRecord",
    # Funding requests
    "WithdrawalRequest",
    "RechargeRequest",
    "RequestStatus",
    "PaymentMethod",
    # Audit
    "AuditLog",
    "SYSTEM_ACTOR",
    # Settings
    "PaymentAccountSettings",
    "PAYMENT_SETTINGS_ID",
    "FeaturedTournament",
]
