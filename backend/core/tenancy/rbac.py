from copy import deepcopy
from typing import Iterable

from django.conf import settings

ROLE_MEMBER = "MEMBER"
ROLE_MANAGER = "MANAGER"
ROLE_OWNER = "OWNER"

VALID_ROLES = frozenset((ROLE_MEMBER, ROLE_MANAGER, ROLE_OWNER))

READ_ROLES = frozenset((ROLE_MEMBER, ROLE_MANAGER, ROLE_OWNER))
WRITE_ROLES = frozenset((ROLE_MANAGER, ROLE_OWNER))
OWNER_ROLES = frozenset((ROLE_OWNER,))
NO_ROLES = frozenset()


def build_role_matrix(
    *,
    read_roles=READ_ROLES,
    post_roles=WRITE_ROLES,
    put_roles=WRITE_ROLES,
    patch_roles=WRITE_ROLES,
    delete_roles=OWNER_ROLES,
):
    return {
        "GET": frozenset(read_roles),
        "HEAD": frozenset(read_roles),
        "OPTIONS": frozenset(read_roles),
        "POST": frozenset(post_roles),
        "PUT": frozenset(put_roles),
        "PATCH": frozenset(patch_roles),
        "DELETE": frozenset(delete_roles),
    }


DEFAULT_RESOURCE_ROLE_MATRICES = {
    # Submit, refresh and cancel are POST actions on the document resource.
    "fiscal_documents": build_role_matrix(
        put_roles=NO_ROLES,
        patch_roles=NO_ROLES,
        delete_roles=NO_ROLES,
    ),
    "fiscal_profile": build_role_matrix(
        read_roles=WRITE_ROLES,
        post_roles=OWNER_ROLES,
        put_roles=OWNER_ROLES,
        patch_roles=OWNER_ROLES,
        delete_roles=NO_ROLES,
    ),
}

DEFAULT_TENANT_ROLE_MATRIX = build_role_matrix()


def _normalize_roles(raw_roles: Iterable[str]) -> frozenset[str]:
    if not isinstance(raw_roles, (list, tuple, set, frozenset)):
        return frozenset()
    normalized = {str(role).upper() for role in raw_roles}
    return frozenset(role for role in normalized if role in VALID_ROLES)


def _apply_overrides(matrices: dict, overrides: dict | None) -> dict:
    if not isinstance(overrides, dict):
        return matrices

    for resource_key, method_map in overrides.items():
        if not isinstance(method_map, dict):
            continue
        resource_matrix = matrices.setdefault(str(resource_key), {})
        for method, raw_roles in method_map.items():
            normalized_roles = _normalize_roles(raw_roles)
            if not normalized_roles:
                continue
            resource_matrix[str(method).upper()] = normalized_roles
    return matrices


def get_resource_role_matrices() -> dict:
    matrices = deepcopy(DEFAULT_RESOURCE_ROLE_MATRICES)
    return _apply_overrides(matrices, getattr(settings, "TENANT_ROLE_MATRICES", {}))


def get_role_matrix_for_resource(resource_key: str) -> dict:
    return get_resource_role_matrices().get(resource_key, DEFAULT_TENANT_ROLE_MATRIX)


def role_can(role_matrix, role, method):
    allowed_roles = role_matrix.get(method, role_matrix.get("*", frozenset()))
    return role in allowed_roles
