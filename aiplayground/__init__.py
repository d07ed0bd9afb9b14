"""AI Playground learning engine: progress, lessons and challenges."""
