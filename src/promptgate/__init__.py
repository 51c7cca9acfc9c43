"""Human decision requests rendered on interchangeable channels."""

__version__ = "0.3.0"
