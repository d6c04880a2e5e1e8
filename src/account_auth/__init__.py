"""
Account auth service: registration, email verification, sign-in, password
reset and Google login with cookie-based sessions
"""
__version__ = "0.1.0"
