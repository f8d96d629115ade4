"""session/ -- Server-side session lifecycle and CSRF defense for TaskFlow.

Layer rule: session/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/, web/, or auth/.
api/, web/ and auth/ import from session/, not the other way around.
"""
