"""
Access resolver: which editing phases an author may open.

Admins and beta testers see everything. Everyone else gets the phases their
completed purchases pay for.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.author_profile import AuthorProfile
from app.models.editing_phase import PHASE_NUMBERS
from app.models.user_purchase import PackageType, UserPurchase

logger = logging.getLogger(__name__)

PACKAGE_ACCESS = {
    PackageType.THREE_PHASE.value: (1, 2, 3),
    PackageType.PUBLISHING.value: (4,),
    PackageType.MARKETING.value: (5,),
    PackageType.COMPLETE.value: PHASE_NUMBERS,
}

PACKAGE_DISPLAY_NAMES = {
    PackageType.THREE_PHASE.value: "Editing Package",
    PackageType.PUBLISHING.value: "Publishing Package",
    PackageType.MARKETING.value: "Marketing Package",
    PackageType.COMPLETE.value: "Complete Package",
}

# Most inclusive first; used to pick the headline package
PACKAGE_RANK = (
    PackageType.COMPLETE.value,
    PackageType.THREE_PHASE.value,
    PackageType.PUBLISHING.value,
    PackageType.MARKETING.value,
)


@dataclass
class UserAccess:
    is_admin: bool = False
    is_beta_tester: bool = False
    purchased_package: Optional[str] = None
    purchased_packages: list[str] = field(default_factory=list)
    has_full_access: bool = False
    available_phases: list[int] = field(default_factory=list)


def _headline_package(packages: list[str]) -> Optional[str]:
    for package in PACKAGE_RANK:
        if package in packages:
            return package
    return None


def resolve_access(profile: Optional[AuthorProfile], packages: list[str]) -> UserAccess:
    """Pure access computation from a profile and its purchased packages."""
    if profile is None:
        return UserAccess()

    is_admin = profile.is_admin
    is_beta_tester = bool(profile.is_beta_tester)
    if is_admin or is_beta_tester:
        phases = set(PHASE_NUMBERS)
    else:
        phases = {phase for package in packages for phase in PACKAGE_ACCESS.get(package, ())}

    return UserAccess(
        is_admin=is_admin,
        is_beta_tester=is_beta_tester,
        purchased_package=_headline_package(packages),
        purchased_packages=sorted(set(packages)),
        has_full_access=phases == set(PHASE_NUMBERS),
        available_phases=sorted(phases),
    )


def _completed_packages(db: Session, profile: AuthorProfile) -> list[str]:
    return [
        row.package
        for row in db.query(UserPurchase.package)
        .filter(UserPurchase.author_id == profile.id, UserPurchase.status == "completed")
        .all()
    ]



def get_user_access(db: Session, auth_user_id: UUID) -> UserAccess:
    profile = db.query(AuthorProfile).filter(AuthorProfile.auth_user_id == auth_user_id).first()
    if profile is None:
        logger.warning("No author profile for auth user %s", auth_user_id)
        return UserAccess()
    return resolve_access(profile, _completed_packages(db, profile))


def get_author_access(db: Session, author_id: UUID) -> UserAccess:
    """Access for an author profile id (e.g. a manuscript's owner)."""
    profile = db.query(AuthorProfile).filter(AuthorProfile.id == author_id).first()
    if profile is None:
        return UserAccess()
    return resolve_access(profile, _completed_packages(db, profile))


def has_phase_access(access: UserAccess, phase_number: int) -> bool:
    return phase_number in access.available_phases


def needs_upgrade_for_phase(access: UserAccess, phase_number: int) -> bool:
    return not has_phase_access(access, phase_number)


def get_package_display_name(package: Optional[str]) -> str:
    return PACKAGE_DISPLAY_NAMES.get(package, "No Package")
