"""Centralized role-based access control definitions using django-rules."""

from __future__ import annotations

import rules

from accounts.models import User


def _has_role(user: User, role: str) -> bool:
    return bool(user and user.is_authenticated and user.role == role)


@rules.predicate
def is_authenticated(user: User):  # pragma: no cover - thin wrapper
    return user.is_authenticated


@rules.predicate
def is_super_admin(user: User):
    return bool(user and user.is_authenticated and user.is_super_admin)


@rules.predicate
def is_warehouse_staff(user: User):
    return _has_role(user, User.ROLE_WAREHOUSE_STAFF)


@rules.predicate
def is_faculty_admin(user: User):
    return _has_role(user, User.ROLE_FACULTY_ADMIN)


@rules.predicate
def is_unit_admin(user: User):
    return _has_role(user, User.ROLE_UNIT_ADMIN)


@rules.predicate
def is_unit_staff(user: User):
    return _has_role(user, User.ROLE_UNIT_STAFF)


# Inventory: asset distribution ("dropping")
DISTRIBUTION_MANAGERS = is_super_admin | is_warehouse_staff | is_faculty_admin
DISTRIBUTION_RECEIVERS = is_unit_staff | is_unit_admin

rules.add_perm('inventory.view_distribution', DISTRIBUTION_MANAGERS)
rules.add_perm('inventory.create_distribution', DISTRIBUTION_MANAGERS)
rules.add_perm('inventory.change_distribution', DISTRIBUTION_MANAGERS)
rules.add_perm('inventory.delete_distribution', DISTRIBUTION_MANAGERS)
rules.add_perm('inventory.execute_distribution', DISTRIBUTION_MANAGERS)
rules.add_perm('inventory.view_incoming_distribution', DISTRIBUTION_RECEIVERS)
rules.add_perm('inventory.receive_distribution', DISTRIBUTION_RECEIVERS)
rules.add_perm('inventory.view_fixed_asset', is_authenticated)

# Inventory: stock counts and maintenance
STOCK_KEEPERS = is_warehouse_staff | is_super_admin

rules.add_perm('inventory.view_stock', STOCK_KEEPERS | is_faculty_admin)
rules.add_perm('inventory.stock_opname', STOCK_KEEPERS)
rules.add_perm('inventory.view_maintenance', is_authenticated)
rules.add_perm('inventory.report_damage', is_authenticated)
rules.add_perm('inventory.manage_maintenance', STOCK_KEEPERS | is_faculty_admin | is_unit_admin)

# Requisitions: consumable requests
REQUEST_CREATORS = is_unit_staff | is_unit_admin
REQUEST_APPROVERS = is_unit_admin | is_faculty_admin
REQUEST_HANDLERS = is_warehouse_staff

rules.add_perm('requisitions.view_request', is_authenticated)
rules.add_perm('requisitions.create_request', REQUEST_CREATORS)
rules.add_perm('requisitions.change_request', REQUEST_CREATORS)
rules.add_perm('requisitions.approve_request', REQUEST_APPROVERS)
rules.add_perm('requisitions.reject_request', REQUEST_APPROVERS | REQUEST_HANDLERS)
rules.add_perm('requisitions.handle_request', REQUEST_HANDLERS)

# Requisitions: room usage reports
USAGE_REPORT_VIEWERS = REQUEST_CREATORS | is_faculty_admin | is_super_admin

rules.add_perm('requisitions.view_usage_report', USAGE_REPORT_VIEWERS)
rules.add_perm('requisitions.create_usage_report', REQUEST_CREATORS)
rules.add_perm('requisitions.change_usage_report', REQUEST_CREATORS | is_super_admin)
rules.add_perm('requisitions.delete_usage_report', REQUEST_CREATORS | is_super_admin)

# Requisitions: procurements
PROCUREMENT_CREATORS = is_warehouse_staff
PROCUREMENT_VERIFIERS = is_faculty_admin | is_super_admin

rules.add_perm('requisitions.view_procurement', PROCUREMENT_CREATORS | PROCUREMENT_VERIFIERS)
rules.add_perm('requisitions.create_procurement', PROCUREMENT_CREATORS)
rules.add_perm('requisitions.change_procurement', PROCUREMENT_CREATORS)
rules.add_perm('requisitions.delete_procurement', PROCUREMENT_CREATORS | is_super_admin)
rules.add_perm('requisitions.verify_procurement', PROCUREMENT_VERIFIERS)
rules.add_perm('requisitions.receive_procurement', PROCUREMENT_CREATORS)

# Accounts
rules.add_perm('accounts.view_audit_logs', is_super_admin)
