"""auth/ -- Membership and authorization package for HomeCinema.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or catalog/.
api/ imports from auth/, not the other way around.
"""
