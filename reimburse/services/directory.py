from reimburse.constants import Role
from reimburse.models import User
from reimburse.states import ApprovalLevel

# Which role signs off at which level
LEVEL_ROLES = {
    ApprovalLevel.MANAGER: Role.MANAGER,
    ApprovalLevel.FINANCE: Role.FINANCE,
    ApprovalLevel.ADMIN: Role.ADMIN,
}


class RoleDirectory:
    """Role-indexed lookup of notification recipients."""

    def emails_for_role(self, role):
        users = User.query.filter_by(role=role).order_by(User.id).all()
        return [u.email for u in users if u.email]

    def admin_emails(self):
        return self.emails_for_role(Role.ADMIN)

    def approver_emails(self, level):
        """Users who act at the given level; admins when nobody holds that role."""
        role = LEVEL_ROLES.get(ApprovalLevel(level)) if level else None
        if role is None:
            return self.admin_emails()
        return self.emails_for_role(role) or self.admin_emails()
