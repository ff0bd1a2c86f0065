"""Authentication and authorization.

Learn: Users log in with email/password and receive a signed JWT. Every
protected request presents it as `Authorization: Bearer <token>`; the
gate in dependencies.py verifies it and resolves the user, and the task
service scopes all queries to that user.

Tokens are stateless. There is no server-side revocation: logging out
means the client throws the token away, and it stays valid until exp.
"""
