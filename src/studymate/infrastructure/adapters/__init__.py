# Oracle Adapters Package
from .factory import Oracles, build_oracles
from .openai_oracle import OpenAIAnswerGrader, OpenAIQuestionGenerator

__all__ = ["Oracles", "build_oracles", "OpenAIQuestionGenerator", "OpenAIAnswerGrader"]
