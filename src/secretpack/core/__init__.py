"""Core package of secretpack."""
