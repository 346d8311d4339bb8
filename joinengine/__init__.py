"""
Join Inference & Query Model Engine

Infers join relationships for constraint-free data sources and validates
and compiles multi-table query models into parameterized SQL.
"""

__version__ = "1.0.0"
