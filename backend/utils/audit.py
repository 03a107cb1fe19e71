"""
Structured audit logging for the membership backend.

Every security- or membership-relevant event is written as one JSON line to
the dedicated ``audit`` logger. The request id and the authenticated actor
are tracked in ``ContextVar``s so that helpers called deep inside a request
pick them up without being passed around.

Emails never reach the audit log in clear text; they are recorded as
SHA-256 digests.
"""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from utils.hashing import simple_hash


_request_id_context: ContextVar[Optional[str]] = ContextVar(
    'request_id', default=None
)

# "user:<id>" once a request has been authenticated
_actor_context: ContextVar[Optional[str]] = ContextVar(
    'actor', default=None
)

ANONYMOUS = 'anonymous'


class AuditLogger:
    """
    Writes audit events to the ``audit`` logger.

    ``log`` is the single sink; the ``log_*`` helpers only shape the details
    for the events the routers emit.
    """

    def __init__(self):
        self.logger = logging.getLogger('audit')

    def set_request_id(self, request_id: str) -> None:
        _request_id_context.set(request_id)

    def get_request_id(self) -> Optional[str]:
        return _request_id_context.get()

    def set_actor(self, actor: str) -> None:
        """Set the authenticated principal for this request context."""
        _actor_context.set(actor)

    def get_actor(self) -> Optional[str]:
        return _actor_context.get()

    def log(
        self,
        action: str,
        resource: str,
        resource_id: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> None:
        """
        Emit one structured audit event.

        Args:
            action: What happened (e.g. 'LOGIN', 'REFRESH', 'REVOKE')
            resource: Kind of resource affected (e.g. 'UserDevice', 'StudentMember')
            resource_id: Identifier of the affected resource
            status: 'success', 'failure' or 'denied'
            details: Additional context
            actor: Overrides the actor from the request context
        """
        event = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'action': action,
            'actor': actor or self.get_actor() or ANONYMOUS,
            'resource': resource,
            'resource_id': resource_id,
            'status': status,
            'request_id': self.get_request_id(),
            'details': details or {},
        }
        self.logger.info(json.dumps(event, default=str))

    def log_login(
        self,
        method: str,
        user_id: Optional[int],
        status: str,
        device_id: Optional[int] = None,
        email: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """
        Log a login attempt.

        Args:
            method: 'Google', 'GoogleWorkspace', 'staff' or 'registration'
            user_id: User that logged in, if resolved
            status: 'success' or 'failure'
            device_id: Device registered for the new session
            email: Email presented by the identity provider (hashed)
            reason: Error code for failures
        """
        details: Dict[str, Any] = {'method': method}
        if device_id is not None:
            details['device_id'] = device_id
        if email:
            details['email_hash'] = simple_hash(email)
        if reason:
            details['reason'] = reason

        self.log(
            action='LOGIN',
            resource='User',
            resource_id=str(user_id) if user_id is not None else 'unknown',
            status=status,
            details=details,
            actor=f'user:{user_id}' if user_id is not None else None,
        )

    def log_refresh(
        self,
        user_id: int,
        device_id: int,
        decision: str,
        score: Optional[float] = None,
        activity_id: Optional[int] = None,
    ) -> None:
        """Log the device trust decision taken for a refresh-token use."""
        details: Dict[str, Any] = {'device_id': device_id, 'decision': decision}
        if score is not None:
            details['score'] = score
        if activity_id is not None:
            details['activity_id'] = activity_id

        self.log(
            action='REFRESH',
            resource='UserDevice',
            resource_id=str(device_id),
            status='success' if decision == 'trusted' else 'denied',
            details=details,
            actor=f'user:{user_id}',
        )

    def log_device_revoked(self, device_id: int, owner_id: int) -> None:
        self.log(
            action='REVOKE',
            resource='UserDevice',
            resource_id=str(device_id),
            status='success',
            details={'owner_id': owner_id},
        )

    def log_federated_link(
        self, provider: str, user_id: int, status: str, reason: Optional[str] = None
    ) -> None:
        details: Dict[str, Any] = {'provider': provider}
        if reason:
            details['reason'] = reason
        self.log(
            action='LINK',
            resource='FederatedAccount',
            resource_id=str(user_id),
            status=status,
            details=details,
        )

    def log_member_created(
        self, member_id: str, school_id: int, purchase_channel: str
    ) -> None:
        self.log(
            action='CREATE',
            resource='StudentMember',
            resource_id=member_id,
            status='success',
            details={'school_id': school_id, 'purchase_channel': purchase_channel},
        )

    def log_settings_change(self, member_id: str, fields: list) -> None:
        """Only the names of changed fields are recorded, never their values."""
        self.log(
            action='UPDATE',
            resource='MemberSettings',
            resource_id=member_id,
            status='success',
            details={'fields': sorted(fields)},
        )

    def log_order_change(
        self,
        operation: str,
        order_id: int,
        school_id: int,
        changes: Optional[list] = None,
    ) -> None:
        """
        Log personal membership order creation or update.

        Args:
            operation: 'CREATE' or 'UPDATE'
            order_id: Order identifier
            school_id: School the order was placed for
            changes: Names of updated fields (for UPDATE)
        """
        details: Dict[str, Any] = {'school_id': school_id}
        if changes:
            details['changes'] = sorted(changes)

        self.log(
            action=operation,
            resource='PersonalMembershipOrder',
            resource_id=str(order_id),
            status='success',
            details=details,
            actor=f'orderer:{order_id}' if operation == 'CREATE' else None,
        )

    def log_eligible_students_change(
        self, school_id: int, operation: str, count: int
    ) -> None:
        self.log(
            action=operation,
            resource='EligibleStudents',
            resource_id=str(school_id),
            status='success',
            details={'count': count},
        )


# Global audit logger instance for convenient import
audit = AuditLogger()
