"""Protocol libraries bundled with the sequence."""
