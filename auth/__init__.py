"""auth/ -- Credential handling, tokens, and session cookies for the Acquisitions API.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or admission/.
api/ and admission/ import from auth/, not the other way around.
"""
