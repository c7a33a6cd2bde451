"""gonlineviz: render Go package import graphs over HTTP."""

__version__ = "0.4.0"
