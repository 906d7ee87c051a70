"""Terminal interface (Typer + Rich)."""
