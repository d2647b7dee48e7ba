"""identity/ -- Credential, token, and role-based access control package for idgate.

Layer rule: identity/ imports only stdlib + third-party libraries. The one
exception is identity/bootstrap.py, the composition root, which reads
core.config. Every other module receives configuration as plain constructor
arguments so tests can build components from arbitrary fixtures.
"""
