"""Wallet, funding request and reward schemas."""

from datetime import datetime

from pydantic import Field

from arena.models.funding import PaymentMethod
from arena.schemas.common import BaseSchema


class BalanceResponse(BaseSchema):
    wallet_balance: int = Field(..., alias="walletBalance")


class TransactionResponse(BaseSchema):
    id: str
    tx_type: str = Field(..., alias="type")
    amount: int
    balance_before: int = Field(..., alias="balanceBefore")
    balance_after: int = Field(..., alias="balanceAfter")
    reference_id: str | None = Field(default=None, alias="referenceId")
    description: str | None = None
    created_at: datetime = Field(..., alias="createdAt")


class WithdrawalCreate(BaseSchema):
    amount: int
    account_name: str = Field(..., alias="accountName", max_length=100)
    account_number: str = Field(..., alias="accountNumber", max_length=100)
    bank_name: str = Field(..., alias="bankName", max_length=100)


class WithdrawalResponse(BaseSchema):
    id: str
    user_id: str = Field(..., alias="userId")
    user_email: str = Field(..., alias="userEmail")
    amount: int
    account_name: str = Field(..., alias="accountName")
    account_number: str = Field(..., alias="accountNumber")
    bank_name: str = Field(..., alias="bankName")
    status: str
    requested_at: datetime = Field(..., alias="requestDate")
    processed_at: datetime | None = Field(default=None, alias="processedDate")
    admin_notes: str | None = Field(default=None, alias="notes")
    proof_image_url: str | None = Field(default=None, alias="proofImageUrl")
    debited_amount: int | None = Field(default=None, alias="debitedAmount")


class RechargeCreate(BaseSchema):
    amount: int
    payment_method: PaymentMethod | None = Field(default=None, alias="paymentMethod")
    transaction_ref: str | None = Field(default=None, alias="transactionId", max_length=100)
    proof_image_url: str | None = Field(default=None, alias="proofImageUrl", max_length=500)


class RechargeResponse(BaseSchema):
    id: str
    user_id: str = Field(..., alias="userId")
    user_email: str = Field(..., alias="userEmail")
    amount: int
    payment_method: str = Field(..., alias="paymentMethod")
    transaction_ref: str = Field(..., alias="transactionId")
    proof_image_url: str = Field(..., alias="proofImageUrl")
    status: str
    requested_at: datetime = Field(..., alias="requestDate")
    processed_at: datetime | None = Field(default=None, alias="processedDate")
    admin_notes: str | None = Field(default=None, alias="notes")


class ReviewRequest(BaseSchema):
    """Admin decision payload for withdrawals and recharges."""

    notes: str | None = Field(default=None, max_length=1000)
    proof_image_url: str | None = Field(default=None, alias="proofImageUrl", max_length=500)


class RewardCreate(BaseSchema):
    user_id: str = Field(..., alias="userId")
    amount: int
    description: str | None = Field(default=None, max_length=500)
    game_name: str | None = Field(default=None, alias="gameName", max_length=100)
    position: str | None = Field(default=None, max_length=50)


class RewardResponse(BaseSchema):
    id: str
    user_id: str = Field(..., alias="userId")
    user_email: str = Field(..., alias="userEmail")
    amount: int
    description: str
    game_name: str | None = Field(default=None, alias="gameName")
    position: str | None = None
    added_by: str = Field(..., alias="addedBy")
    previous_balance: int = Field(..., alias="previousBalance")
    new_balance: int = Field(..., alias="newBalance")
    created_at: datetime = Field(..., alias="timestamp")


class PaymentAccountsUpdate(BaseSchema):
    bank_account_name: str | None = Field(default=None, alias="bankAccountName", max_length=100)
    bank_account_number: str | None = Field(default=None, alias="bankAccountNumber", max_length=100)
    easy_pasa_owner_name: str | None = Field(default=None, alias="easyPasaOwnerName", max_length=100)
    easy_pasa_info: str | None = Field(default=None, alias="easyPasaInfo", max_length=255)


class PaymentAccountsResponse(BaseSchema):
    bank_account_name: str | None = Field(default=None, alias="bankAccountName")
    bank_account_number: str | None = Field(default=None, alias="bankAccountNumber")
    easy_pasa_owner_name: str | None = Field(default=None, alias="easyPasaOwnerName")
    easy_pasa_info: str | None = Field(default=None, alias="easyPasaInfo")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
