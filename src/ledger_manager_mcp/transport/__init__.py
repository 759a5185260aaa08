"""Device and relay-channel transports."""
