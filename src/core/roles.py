"""
Named role groups used by lifecycle blueprints and service authorization.
"""

from src.core.enums import Role

# Internal staff of the brokerage
BROKER_EMPLOYEES: frozenset[Role] = frozenset(
    {
        Role.SUPER_ADMIN,
        Role.CLAIMS_EMPLOYEE,
        Role.OPERATIONS_EMPLOYEE,
        Role.ADMIN_EMPLOYEE,
    }
)

# Staff allowed to work claims through their lifecycle
SENIOR_CLAIM_MANAGERS: frozenset[Role] = frozenset({Role.SUPER_ADMIN, Role.CLAIMS_EMPLOYEE})

# Top admin tier, the only editor of terminal states
SUPER_ADMIN_ONLY: frozenset[Role] = frozenset({Role.SUPER_ADMIN})

ALL_AUTHORIZED_ROLES: frozenset[Role] = frozenset(Role)


def parse_role(value: str | None) -> Role | None:
    """
    Map a stored role name to a Role.

    Unknown or missing names yield None so membership checks fail closed.
    """
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None
