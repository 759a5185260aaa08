"""Hardware wallet manager: device identity, app inventory, and remote provisioning relay."""
