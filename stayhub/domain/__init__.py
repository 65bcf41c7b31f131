"""Pure domain rules for provider transactions."""
