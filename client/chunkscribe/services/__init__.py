"""Network, delivery and logging services."""
