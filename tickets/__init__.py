"""tickets/ -- Ticket and comment storage for the helpdesk.

Layer rule: tickets/ imports only stdlib + third-party libraries.
It does NOT import from api/ or auth/. Users are referenced by id.
"""
