"""auth/ -- Authentication and authorization core for the helpdesk.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, core/, or tickets/.
api/ imports from auth/, not the other way around.
"""
