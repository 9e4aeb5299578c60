"""Backoffice Operaciones: work orders, crews and subscription billing."""
