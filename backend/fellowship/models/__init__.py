# Import models here so Alembic can discover metadata.
from fellowship.models.user import User  # noqa: F401
from fellowship.models.role import Role, UserRole  # noqa: F401

# groups, memberships, applications, invitations
from fellowship.models.group import Group, GroupMembership, GroupApplication, GroupInvitation  # noqa: F401

# events, RSVPs, attendance, speaker timers
from fellowship.models.event import Event, EventRsvp, Attendance  # noqa: F401
from fellowship.models.timer import Timer, TimerSegment  # noqa: F401

# blog, gallery, notifications
from fellowship.models.content import Post, Album, Image, Notification  # noqa: F401
from fellowship.models.password_reset_token import PasswordResetToken  # noqa: F401
