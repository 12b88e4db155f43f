"""storage/ -- SQLAlchemy Core adapter behind the capability ports in core/ports.py.

Layer rule: storage/ imports only core/ and third-party libraries.
"""
