"""Tournament schemas."""

from datetime import datetime

from pydantic import Field

from arena.models.tournament import GameType, TournamentStatus
from arena.schemas.common import BaseSchema


class TournamentCreate(BaseSchema):
    """Tournament fields editable by admins and submitters."""

    name: str = Field(..., min_length=1, max_length=200)
    game_type: GameType = Field(default=GameType.PUBG, alias="gameType")
    scheduled_at: datetime = Field(..., alias="scheduledAt")
    entry_fee: int = Field(default=0, ge=0, alias="entryFee")
    prize_pool: int = Field(default=0, ge=0, alias="prizePool")
    per_kill_amount: int = Field(default=0, ge=0, alias="perKillAmount")
    max_participants: int = Field(..., ge=1, alias="maxParticipants")
    match_details: str | None = Field(default=None, alias="matchDetails")
    rules: str | None = None
    map_name: str | None = Field(default=None, alias="map")
    game_version: str | None = Field(default=None, alias="gameVersion")
    game_logo_url: str | None = Field(default=None, alias="gameLogo")
    is_private: bool = Field(default=False, alias="isPrivate")


class TournamentUpdate(BaseSchema):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    game_type: GameType | None = Field(default=None, alias="gameType")
    scheduled_at: datetime | None = Field(default=None, alias="scheduledAt")
    entry_fee: int | None = Field(default=None, ge=0, alias="entryFee")
    prize_pool: int | None = Field(default=None, ge=0, alias="prizePool")
    per_kill_amount: int | None = Field(default=None, ge=0, alias="perKillAmount")
    max_participants: int | None = Field(default=None, ge=1, alias="maxParticipants")
    match_details: str | None = Field(default=None, alias="matchDetails")
    rules: str | None = None
    map_name: str | None = Field(default=None, alias="map")
    game_version: str | None = Field(default=None, alias="gameVersion")
    game_logo_url: str | None = Field(default=None, alias="gameLogo")
    is_private: bool | None = Field(default=None, alias="isPrivate")


class TournamentReject(BaseSchema):
    reason: str = Field(..., min_length=1, max_length=1000)


class TournamentResult(BaseSchema):
    result_image_url: str | None = Field(default=None, alias="resultImage")
    result_notes: str | None = Field(default=None, alias="resultNotes")


class JoinRequest(BaseSchema):
    username: str = Field(..., max_length=100)


class ParticipantResponse(BaseSchema):
    user_id: str = Field(..., alias="userId")
    email: str
    username: str
    joined_at: datetime = Field(..., alias="joinedAt")


class TournamentResponse(BaseSchema):
    id: str
    name: str
    game_type: str = Field(..., alias="gameType")
    scheduled_at: datetime = Field(..., alias="scheduledAt")
    entry_fee: int = Field(..., alias="entryFee")
    prize_pool: int = Field(..., alias="prizePool")
    per_kill_amount: int = Field(..., alias="perKillAmount")
    max_participants: int = Field(..., alias="maxParticipants")
    participant_count: int = Field(..., alias="participantCount")
    match_details: str | None = Field(default=None, alias="matchDetails")
    rules: str | None = None
    map_name: str | None = Field(default=None, alias="map")
    game_version: str | None = Field(default=None, alias="gameVersion")
    game_logo_url: str | None = Field(default=None, alias="gameLogo")
    is_private: bool = Field(..., alias="isPrivate")
    status: TournamentStatus
    status_updated_at: datetime | None = Field(default=None, alias="statusUpdatedAt")
    result_image_url: str | None = Field(default=None, alias="resultImage")
    result_notes: str | None = Field(default=None, alias="resultNotes")
    created_by: str | None = Field(default=None, alias="createdBy")
    approved: bool
    rejection_reason: str | None = Field(default=None, alias="rejectionReason")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class TournamentDetailResponse(TournamentResponse):
    participants: list[ParticipantResponse] = Field(default_factory=list)


class JoinResponse(BaseSchema):
    tournament_id: str = Field(..., alias="tournamentId")
    username: str
    joined_at: datetime = Field(..., alias="joinedAt")
    wallet_balance: int = Field(..., alias="walletBalance")


class ReconcileResponse(BaseSchema):
    updated_to_live: int = Field(..., alias="updatedToLive")
    updated_to_completed: int = Field(..., alias="updatedToCompleted")
    backfilled: int
    skipped: int
    failed: int


class FeaturedAdd(BaseSchema):
    tournament_id: str = Field(..., min_length=1, alias="tournamentId")
    display_order: int | None = Field(default=None, alias="displayOrder")
    headline: str | None = Field(default=None, max_length=200)


class FeaturedOrder(BaseSchema):
    tournament_ids: list[str] = Field(..., alias="tournamentIds")


class FeaturedTournamentResponse(BaseSchema):
    display_order: int = Field(..., alias="displayOrder")
    headline: str | None = None
    added_at: datetime = Field(..., alias="addedAt")
    tournament: TournamentResponse

    @classmethod
    def from_entry(cls, entry, tournament) -> "FeaturedTournamentResponse":
        return cls(
            display_order=entry.display_order,
            headline=entry.headline,
            added_at=entry.added_at,
            tournament=TournamentResponse.model_validate(tournament),
        )
