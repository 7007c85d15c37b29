"""xyte command-line interface (Click)."""
