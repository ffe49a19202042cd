"""dynattr – runtime-declared, typed entity attributes with inheritance-aware queries."""

__version__ = "0.3.0"
