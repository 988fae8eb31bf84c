"""Antigua and Barbuda payroll engine."""

__version__ = "1.0.0"
