from abc import ABC, abstractmethod
from pathlib import Path


class ContentStorage(ABC):
    @abstractmethod
    def resolve(self, filename: str) -> Path | None:
        """Return the path of a stored file by bare name, or None if absent."""
        raise NotImplementedError

    def exists(self, filename: str) -> bool:
        return self.resolve(filename) is not None
