"""Domain registry: logical domain names to physical index ids."""
