"""Enums for database models."""
import enum


class UserRole(str, enum.Enum):
    """Account role types."""
    member = "member"
    admin = "admin"


class MemberRole(str, enum.Enum):
    """Event-scoped role granted to a non-owner account."""
    viewer = "viewer"
    contributor = "contributor"
    manager = "manager"


class PlanName(str, enum.Enum):
    """Normalized subscription plans, most restrictive first."""
    free = "free"
    starter = "starter"
    hobby = "hobby"
    pro = "pro"
    business = "business"
