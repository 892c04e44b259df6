"""auth/ -- Accounts, credentials, sessions and OTP verification.

Layer rule: auth/ imports from core/ and third-party libraries only.
It does NOT import from api/. api/ imports from auth/, not the other way around.
auth/dependencies.py is the one module here that knows about FastAPI.
"""
