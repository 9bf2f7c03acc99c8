"""Security package of secretpack."""
