"""authcore - user registration, login and role-gated access for JSON web APIs."""

__version__ = "1.0.0"
