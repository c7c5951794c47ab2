"""
Service layer: transactions, caching, locking and auditing around the repositories.

Services never run SQL themselves.
"""
