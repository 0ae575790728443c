"""Feed synchronization core for the World News reader."""
