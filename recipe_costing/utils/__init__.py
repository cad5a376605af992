"""Utilities package for the recipe costing application."""
