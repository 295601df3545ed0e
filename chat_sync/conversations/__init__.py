"""Two-party conversations: addressing, message log and fan-out."""
