"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# All ledger money columns: 12 digits, 2 decimal places, returned as Decimal
MoneyType = Numeric(12, 2)

# Quantities allow fractional units (kg, g, litre)
QuantityType = Numeric(12, 3)

# GST percentage 0.00 - 100.00
PercentType = Numeric(5, 2)
