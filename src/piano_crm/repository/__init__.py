"""Postgres-backed CRUD repositories.

Every function takes the SQLAlchemy engine as its first argument so callers
(API handlers, sync jobs, tests) decide which database they talk to.
"""
