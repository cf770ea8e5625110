"""Matrix definitions: the A/B/C quadrant domains."""
