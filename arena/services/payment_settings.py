"""Payment account display settings shown on the recharge page."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from arena.models.settings import PAYMENT_SETTINGS_ID, PaymentAccountSettings
from arena.services.audit import AuditService
from arena.utils.errors import MissingFieldError
from arena.utils.sanitize import sanitize_optional

logger = logging.getLogger(__name__)

PAYMENT_SETTING_FIELDS = (
    "bank_account_name",
    "bank_account_number",
    "easy_pasa_owner_name",
    "easy_pasa_info",
)


class PaymentSettingsService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self) -> PaymentAccountSettings | None:
        return await self.session.get(PaymentAccountSettings, PAYMENT_SETTINGS_ID)

    async def update(self, admin_id: str, values: dict[str, str | None]) -> PaymentAccountSettings:
        """Replace the payment account details. At least one field must be set."""
        cleaned = {field: sanitize_optional(values.get(field)) for field in PAYMENT_SETTING_FIELDS}
        if not any(cleaned.values()):
            raise MissingFieldError(
                "payment_accounts",
                "Please provide at least one payment account detail",
            )

        settings = await self.get()
        if settings is None:
            settings = PaymentAccountSettings(id=PAYMENT_SETTINGS_ID)
            self.session.add(settings)

        for field, value in cleaned.items():
            setattr(settings, field, value)
        settings.updated_by = admin_id

        AuditService(self.session).record(
            "settings.payment_accounts",
            admin_id,
            target_type="settings",
            target_id=PAYMENT_SETTINGS_ID,
            context={"fields": sorted(f for f, v in cleaned.items() if v)},
        )
        await self.session.flush()

        logger.info(f"Payment account settings updated by={admin_id[:8]}...")
        return settings
