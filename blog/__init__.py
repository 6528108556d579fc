"""blog/ -- Post and comment data access for queryhub.

Layer rule: blog/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or auth/. Ownership checks happen in the api/
routes, which combine blog/ records with auth/ principals.
"""
