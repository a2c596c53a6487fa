"""
TenantConfig model representing one tenant's vendor credential and reply templates.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# Token value stored while onboarding has not collected a real token yet
UNSET_TOKEN = "not_set"

# Template value stored while onboarding has not collected a real template yet
PLACEHOLDER_TEMPLATE = "Спасибо за ваш отзыв!"


class TenantConfig(BaseModel):
    """
    Per-tenant configuration, owned by the front end.

    The core reads a snapshot when a tenant's service is constructed and
    never re-reads it mid-cycle.

    Attributes:
        tenant_id: Chat/account identifier of the tenant (PK)
        token: Vendor bearer token
        template_good: Reply text for 4-5 star reviews
        template_bad: Reply text for 1-3 star reviews
        updated_at: Last configuration update
    """

    tenant_id: int
    token: str = ""
    template_good: str = ""
    template_bad: str = ""
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def missing_fields(self) -> list[str]:
        """Names of the settings that still have to be supplied."""
        missing = []
        if not self.token.strip() or self.token.strip() == UNSET_TOKEN:
            missing.append("token")
        if _template_unset(self.template_good):
            missing.append("template_good")
        if _template_unset(self.template_bad):
            missing.append("template_bad")
        return missing

    def is_complete(self) -> bool:
        """True when a processing cycle may be scheduled for this tenant."""
        return not self.missing_fields()

    def masked_token(self) -> str:
        token = self.token.strip()
        if len(token) <= 8:
            return "***"
        return f"{token[:4]}...{token[-4:]}"

    class Config:
        json_schema_extra = {
            "example": {
                "tenant_id": 123456789,
                "token": "eyJhbGciOiJFUzI1NiIs...",
                "template_good": "Thank you for the review!",
                "template_bad": "We are sorry the item did not meet expectations."
            }
        }


def _template_unset(text: str) -> bool:
    text = text.strip()
    return not text or text == PLACEHOLDER_TEMPLATE
