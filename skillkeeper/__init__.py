"""skillkeeper - install, update, and remove skills from a shared catalog."""

__version__ = "0.1.0"

from skillkeeper.config import Config
from skillkeeper.manager import SkillManager

__all__ = ["Config", "SkillManager", "__version__"]
