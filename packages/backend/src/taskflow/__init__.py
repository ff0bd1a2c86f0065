"""TaskFlow — multi-user task tracker backend.

Username/password accounts issuing bearer tokens, and per-user CRUD over
tasks with status filtering and text search. The store connection is
managed with bounded retries and the API keeps serving in degraded mode
when the store never comes up.
"""

__version__ = "0.1.0"
