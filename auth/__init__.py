"""auth/ -- Session tokens, password hashing and bearer-token authorization.

Layer rule: auth/ imports only core/, storage.errors and third-party
libraries. It does NOT import from api/ or services/.
services/ and api/ import from auth/, not the other way around.
"""
