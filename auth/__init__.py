"""auth/ -- Credential check, token lifecycle, and token storage for TokenGate.

Layer rule: auth/ imports only stdlib, third-party libraries, and itself.
It does NOT import from api/, client/, or core/.
api/ imports from auth/, not the other way around.
"""
