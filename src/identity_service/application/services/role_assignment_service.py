"""Application service replacing the role set of one account."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from identity_service.application.dto.auth_models import AssignRolesRequest, OperationResult
from identity_service.application.errors import StorageError
from identity_service.application.ports.account_store_port import AccountStorePort
from identity_service.application.ports.audit_repository_port import (
    AuditEntryCreateInput,
    AuditRepositoryPort,
)
from identity_service.application.ports.role_store_port import RoleStorePort
from identity_service.domain.auth.audit_actions import AuditAction, AuditSubject
from identity_service.domain.auth.credentials import (
    CredentialValidationError,
    normalize_role_names,
)
from identity_service.domain.auth.failures import AuthFailure

logger = logging.getLogger(__name__)

NowCallable = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class RoleAssignmentService:
    """Make an account's roles equal to a requested set, all or nothing."""

    def __init__(
        self,
        *,
        accounts: AccountStorePort,
        roles: RoleStorePort,
        audits: AuditRepositoryPort,
        now: NowCallable = _utc_now,
    ) -> None:
        self._accounts = accounts
        self._roles = roles
        self._audits = audits
        self._now = now

    async def assign_roles(self, request: AssignRolesRequest) -> OperationResult[tuple[str, ...]]:
        """Replace the account's roles with the requested set."""

        try:
            desired = normalize_role_names(role_names=request.roles)
        except CredentialValidationError as exc:
            return OperationResult.failed(AuthFailure.VALIDATION_ERROR, str(exc))

        try:
            account = await self._accounts.get_by_id(account_id=request.account_id)
            if account is None:
                return OperationResult.failed(AuthFailure.NOT_FOUND)

            unknown = [name for name in desired if not await self._roles.role_exists(name=name)]
            if unknown:
                logger.info(
                    "roles_assign_rejected account_id=%s unknown_roles=%s",
                    account.account_id,
                    ",".join(unknown),
                )
                return OperationResult.failed(
                    AuthFailure.NOT_FOUND,
                    f"Invalid roles: {', '.join(unknown)}",
                )

            current = await self._accounts.get_roles(account_id=account.account_id)
            to_add = [name for name in desired if name not in current]
            to_remove = [name for name in current if name not in desired]

            if to_add:
                await self._accounts.add_roles(account_id=account.account_id, role_names=to_add)
            if to_remove:
                try:
                    await self._accounts.remove_roles(
                        account_id=account.account_id,
                        role_names=to_remove,
                    )
                except StorageError:
                    await self._rollback_added_roles(account_id=account.account_id, added=to_add)
                    raise

            await self._audits.append_entry(
                AuditEntryCreateInput(
                    action=AuditAction.ROLES_ASSIGNED,
                    subject_type=AuditSubject.ACCOUNT,
                    subject_id=account.account_id,
                    detail=f"Roles assigned: {', '.join(desired)}",
                    created_at=self._now(),
                    actor_account_id=request.actor_account_id,
                )
            )
        except StorageError:
            logger.exception("roles_assign_failed account_id=%s", request.account_id)
            return OperationResult.failed(AuthFailure.STORAGE_ERROR)

        logger.info(
            "roles_assigned account_id=%s added=%s removed=%s",
            account.account_id,
            ",".join(to_add),
            ",".join(to_remove),
        )
        return OperationResult.succeeded("Roles assigned successfully", tuple(desired))

    async def _rollback_added_roles(self, *, account_id: UUID, added: list[str]) -> None:
        if not added:
            return
        try:
            await self._accounts.remove_roles(account_id=account_id, role_names=added)
        except StorageError:
            logger.exception("roles_assign_rollback_failed account_id=%s", account_id)
        else:
            logger.warning("roles_assign_rolled_back account_id=%s", account_id)
