"""Helper scripts that talk to the inventory API."""
