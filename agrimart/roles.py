"""Role enumeration and the capability checks built on it.

Roles are stored as small integers on ``users.role``. Support (3) is not a
"higher" role than Master (2); it only opens the assistance channel. All
checks therefore test membership instead of comparing numbers.
"""
import enum


class Role(enum.IntEnum):
    USER = 0
    VENDOR = 1
    MASTER = 2
    SUPPORT = 3

    @classmethod
    def parse(cls, value):
        """Coerce an int/str/Role into a Role, or raise ValueError."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f'invalid role: {value!r}')
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise ValueError(f'invalid role: {value!r}') from None
        return cls(int(value))


STAFF_ROLES = frozenset({Role.VENDOR, Role.MASTER})


def _role(value):
    try:
        return Role.parse(value)
    except (TypeError, ValueError):
        return None


def can_manage_catalog(role) -> bool:
    # Vendors add and view their own products; Masters handle everything.
    return _role(role) in STAFF_ROLES


def can_edit_any_product(role) -> bool:
    return _role(role) == Role.MASTER


def can_manage_orders(role) -> bool:
    return _role(role) in STAFF_ROLES


def can_manage_users(role) -> bool:
    return _role(role) == Role.MASTER


def can_manage_content(role) -> bool:
    # Keywords, crop master data, scanner plants, logistics carriers and
    # system notifications.
    return _role(role) == Role.MASTER


def is_support(role) -> bool:
    return _role(role) == Role.SUPPORT


def can_edit_product(role, user_id, product) -> bool:
    if can_edit_any_product(role):
        return True
    return (
        _role(role) == Role.VENDOR
        and product is not None
        and product.created_by == user_id
    )
