"""
Notification job payload schemas.

Each job type has a fixed set of template variables; the dispatcher validates
payloads against these before queueing.
"""

from pydantic import BaseModel, Field

from apps.events.models import NotificationJob


class AccountLockedPayload(BaseModel):
    first_name: str = Field(description="Recipient first name")
    unlock_at: str = Field(description="ISO timestamp when the lock lifts")


class PasswordResetPayload(BaseModel):
    first_name: str
    reset_url: str = Field(description="Frontend link carrying the raw reset token")
    expires_in: str = Field(description="Human-readable lifetime, e.g. '1 hour'")


class PasswordChangedPayload(BaseModel):
    first_name: str


class EmailVerificationPayload(BaseModel):
    first_name: str
    verify_url: str
    expires_in: str


class InvitationPayload(BaseModel):
    inviter_name: str
    organization_name: str
    role_name: str
    invite_url: str
    expires_in: str


PAYLOAD_SCHEMAS: dict[str, type[BaseModel]] = {
    NotificationJob.JobType.ACCOUNT_LOCKED: AccountLockedPayload,
    NotificationJob.JobType.PASSWORD_RESET: PasswordResetPayload,
    NotificationJob.JobType.PASSWORD_CHANGED: PasswordChangedPayload,
    NotificationJob.JobType.EMAIL_VERIFICATION: EmailVerificationPayload,
    NotificationJob.JobType.INVITATION: InvitationPayload,
}
