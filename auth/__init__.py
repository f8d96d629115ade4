"""auth/ -- User accounts and the login flow that writes the session identity.

Layer rule: auth/ imports only stdlib + third-party libraries + core/ and session/.
It does NOT import from api/ or web/.
api/ and web/ import from auth/, not the other way around.
"""
