# Censors the text layer and the metadata of PDF documents.

__version__ = "0.1.0"

from .tokenizer import Tokenizer, TokenDef
from .processor import PdfHandler, PdfProcessor, StreamProcessor
from .engine import CharacterPosition
from .censor import CensorOptions, Finding, PdfCensor, censor, censor_files
