"""Project Document Generator - AI-assisted generation of project management documents."""

__version__ = "0.1.0"

from .catalog import FewShotCatalog
from .errors import ErrorKind, GenerationError
from .few_shot import FewShotSelector, resolve_few_shot_config
from .gateway import ModelGateway, ModelResponse, create_gateway
from .models import ChatMessage, DocumentOutput, FewShotConfig, FewShotExample, MessageRole, ProjectContext
from .processor import DocumentDescriptor, DocumentProcessor, generate_documents
from .validator import OutputValidator

__all__ = [
    'ChatMessage',
    'DocumentDescriptor',
    'DocumentOutput',
    'DocumentProcessor',
    'ErrorKind',
    'FewShotCatalog',
    'FewShotConfig',
    'FewShotExample',
    'FewShotSelector',
    'GenerationError',
    'MessageRole',
    'ModelGateway',
    'ModelResponse',
    'OutputValidator',
    'ProjectContext',
    'create_gateway',
    'generate_documents',
    'resolve_few_shot_config',
]
