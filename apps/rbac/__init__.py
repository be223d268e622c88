"""
RBAC (Role-Based Access Control) application.

Provides team access control with:
- Global user identity with a single ranked role (user < manager < admin < owner)
- Capability checks through the permission evaluator
- Signed session tokens for API authentication
- Team member administration
"""
