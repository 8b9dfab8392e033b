"""rolehop: keep an AWS CLI profile alive by chaining STS role assumptions."""

from .version import __version__

__all__ = ["__version__"]
