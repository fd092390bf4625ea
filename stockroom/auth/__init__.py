"""Authentication: employee accounts and credential checks."""
