import logging
from typing import Optional

import httpx

from accounts.config import Settings
from accounts.emails import build_otp_email
from accounts.errors import ErrorKind, HandlerError, UpstreamError
from accounts.resend import ResendClient
from accounts.schemas import CallerIdentity, ResponseEnvelope, StoredObject
from accounts.supabase import SupabaseClient

logger = logging.getLogger(__name__)


async def resolve_caller(user_client: SupabaseClient, require_email: bool = False) -> CallerIdentity:
    """
    Map the caller's bearer token to an identity via Supabase Auth.

    Raises UNAUTHENTICATED when there is no token, the lookup fails, or an
    email is required and the identity has none.
    """
    if not user_client.access_token:
        logger.warning("Request rejected: no bearer token")
        raise HandlerError(ErrorKind.UNAUTHENTICATED, "Not authenticated")

    try:
        caller = await user_client.get_user()
    except UpstreamError as e:
        logger.warning(f"Request rejected: token verification failed ({e.message})")
        raise HandlerError(ErrorKind.UNAUTHENTICATED, "Not authenticated")

    if require_email and not caller.email:
        logger.warning(f"Request rejected: user {caller.user_id} has no email")
        raise HandlerError(ErrorKind.UNAUTHENTICATED, "Not authenticated")

    return caller


class AccountEraser:
    """
    Deletes the caller's stored files, then the caller's auth user.

    Storage cleanup is best effort: listing and removal failures are logged
    and skipped so they never block the account deletion itself. Database
    rows tied to the user are removed by the database's own cascades.
    """

    def __init__(
        self,
        user_client: SupabaseClient,
        admin_client: SupabaseClient,
        bucket: str = "prescriptions",
        page_size: int = 100,
        max_pages: int = 1000,
    ):
        self.user_client = user_client
        self.admin_client = admin_client
        self.bucket = bucket
        self.page_size = page_size
        self.max_pages = max_pages

    @classmethod
    def from_settings(
        cls, settings: Settings, access_token: Optional[str], http: httpx.AsyncClient
    ) -> "AccountEraser":
        settings.require("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY")
        return cls(
            user_client=SupabaseClient(
                settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, http, access_token=access_token
            ),
            admin_client=SupabaseClient(
                settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY, http
            ),
            bucket=settings.STORAGE_BUCKET,
            page_size=settings.STORAGE_PAGE_SIZE,
            max_pages=settings.STORAGE_MAX_PAGES,
        )

    async def run(self) -> ResponseEnvelope:
        # 1. Identify caller
        caller = await resolve_caller(self.user_client)
        user_id = caller.user_id
        logger.info(f"Deleting account for user {user_id}")

        # 2. Remove storage objects under "<user_id>/"
        removed = await self.purge_objects(user_id)
        logger.info(f"Removed {removed} stored objects for user {user_id}")

        # 3. Delete the auth user
        try:
            await self.admin_client.delete_user(user_id)
        except UpstreamError as e:
            logger.error(f"Failed to delete auth user {user_id}: {e.message}")
            raise HandlerError(
                ErrorKind.IDENTITY_DELETION_FAILED,
                "Failed to delete user",
                details=e.message,
            )

        logger.info(f"Account deleted for user {user_id}")
        return ResponseEnvelope(ok=True, message="Account deleted")

    async def purge_objects(self, user_id: str) -> int:
        """
        Page through the user's folder and remove each page as one batch.

        Returns the number of object paths successfully submitted for removal.
        """
        offset = 0
        removed = 0

        for _ in range(self.max_pages):
            try:
                entries = await self.admin_client.list_objects(
                    self.bucket, user_id, self.page_size, offset
                )
            except UpstreamError as e:
                logger.warning(
                    f"{ErrorKind.LISTING_FAILED.value}: listing {self.bucket}/{user_id} "
                    f"at offset {offset} failed ({e.message}); skipping remaining storage cleanup"
                )
                break

            if not entries:
                break

            batch = [
                StoredObject.under(user_id, entry["name"])
                for entry in entries
                if isinstance(entry, dict) and entry.get("name")
            ]
            if batch:
                try:
                    await self.admin_client.remove_objects(self.bucket, batch)
                    removed += len(batch)
                except UpstreamError as e:
                    logger.warning(
                        f"Removing {len(batch)} objects from {self.bucket}/{user_id} failed: {e.message}"
                    )

            if len(entries) < self.page_size:
                break
            offset += self.page_size
        else:
            logger.warning(
                f"Stopped storage cleanup for user {user_id} after {self.max_pages} pages"
            )

        return removed


class OtpIssuer:
    """
    Creates a one-time code for the caller and emails it to them.

    The code comes from a database function executed as the caller, which
    also owns storing and later verifying it.
    """

    def __init__(
        self,
        user_client: SupabaseClient,
        mailer: ResendClient,
        sender: str,
        subject: str,
        rpc_function: str = "create_email_otp",
    ):
        self.user_client = user_client
        self.mailer = mailer
        self.sender = sender
        self.subject = subject
        self.rpc_function = rpc_function

    @classmethod
    def from_settings(
        cls, settings: Settings, access_token: Optional[str], http: httpx.AsyncClient
    ) -> "OtpIssuer":
        settings.require("SUPABASE_URL", "SUPABASE_ANON_KEY", "RESEND_API_KEY")
        return cls(
            user_client=SupabaseClient(
                settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, http, access_token=access_token
            ),
            mailer=ResendClient(settings.RESEND_API_KEY, http, base_url=settings.RESEND_API_URL),
            sender=settings.OTP_EMAIL_FROM,
            subject=settings.OTP_EMAIL_SUBJECT,
            rpc_function=settings.OTP_RPC_FUNCTION,
        )

    async def run(self) -> ResponseEnvelope:
        caller = await resolve_caller(self.user_client, require_email=True)

        try:
            code = await self.user_client.rpc(self.rpc_function)
        except UpstreamError as e:
            logger.error(f"OTP generation failed for user {caller.user_id}: {e.message}")
            raise HandlerError(
                ErrorKind.OTP_GENERATION_FAILED, "Failed to create OTP", details=e.message
            )

        if not code or not isinstance(code, (str, int)):
            logger.error(f"OTP generation returned no code for user {caller.user_id}")
            raise HandlerError(ErrorKind.OTP_GENERATION_FAILED, "Failed to create OTP")

        message = build_otp_email(
            str(code), caller.email, sender=self.sender, subject=self.subject
        )

        try:
            message_id = await self.mailer.send(message)
        except UpstreamError as e:
            logger.error(f"OTP email delivery failed for user {caller.user_id}: {e.message}")
            raise HandlerError(
                ErrorKind.DELIVERY_FAILED, "Email sending failed", details=e.body
            )

        logger.info(f"OTP email sent for user {caller.user_id} (message id: {message_id})")
        return ResponseEnvelope(ok=True, message="OTP sent")
