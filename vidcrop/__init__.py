"""vidcrop - subject-following video reframing."""

__version__ = "1.0.0"
