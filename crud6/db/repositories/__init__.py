"""Repository functions grouped by concern."""
