"""HTTP surface of the Envelope backend."""
