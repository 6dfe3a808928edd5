# In src/dep_loader/source.py
from dataclasses import dataclass

DEFAULT_SCHEME = "pkg"


@dataclass(frozen=True)
class Source:
    """Value identity of a package in the dependency graph."""

    scheme: str
    location: str

    @classmethod
    def parse(cls, text: str) -> "Source":
        """Parse ``scheme:location`` text, e.g. ``git:https://host/repo.git``."""
        text = text.strip()
        if not text:
            raise ValueError("Source identity cannot be empty")
        scheme, sep, location = text.partition(":")
        if not sep:
            return cls(DEFAULT_SCHEME, text)
        if not scheme or not location:
            raise ValueError(f"Invalid source identity: {text!r}")
        return cls(scheme, location)

    def __str__(self) -> str:
        return f"{self.scheme}:{self.location}"
