"""services/ -- Use cases: AuthService, PermissionService, AppService.

Layer rule: services/ may import core/, auth/ and storage.errors, never api/.
Services depend on capability ports, not on storage.store.Storage itself.
"""
