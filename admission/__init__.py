"""admission/ -- Per-request admission control: bot detection, shield rules,
and role-based moving-window rate limiting.

Layer rule: admission/ imports only stdlib, third-party libraries, and core/.
It knows nothing about FastAPI; api/admission.py adapts it to requests.
"""
