"""tabscribe: render JSON guitar scores as ASCII tablature or alphaTex."""

__version__ = "0.1.0"
