"""EmailProvider protocol. Services depend on this, not on the concrete sender."""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class EmailProvider(Protocol):
    async def send_verification_email(
        self, email: str, user_name: Optional[str], token: str, code: str
    ) -> bool: ...

    async def send_welcome_email(
        self, email: str, user_name: Optional[str]
    ) -> bool: ...
