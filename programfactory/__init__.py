"""programfactory: Human-gated generation of multi-part training programs."""

from .config import FactoryConfig, load_config
from .contracts import ProgramBrief, Route, StepDataKey, WorkflowStep
from .factory import ProgramFactory
from .persistence import get_repository
from .progress import ProgressBroadcaster
from .quality import QualityControlLoop
from .templates import PromptCategory, TemplateService, render_template
from .workflow import WorkflowManager

__version__ = "0.1.0"
__all__ = [
    "FactoryConfig",
    "ProgramBrief",
    "ProgramFactory",
    "ProgressBroadcaster",
    "PromptCategory",
    "QualityControlLoop",
    "Route",
    "StepDataKey",
    "TemplateService",
    "WorkflowManager",
    "WorkflowStep",
    "get_repository",
    "load_config",
    "render_template",
]
